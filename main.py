#!/usr/bin/env python3
"""
Geo Mover
Simulates a point moving from the current location toward a chosen target
"""

import sys
import asyncio
import argparse
import signal
import logging
from typing import Any, Dict, Optional

from config import load_settings
from movement import MovementSimulator, Position
from frame_driver import FrameDriver
from location import LocationError, locate
from ascii_renderer import ASCIIRenderer, calculate_bounds, format_position

# Configure logging
logging.basicConfig(
    level=logging.WARNING,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class GeoMoverApp:
    """Local terminal application: one fix, one engine, one frame loop"""

    def __init__(self, settings: Dict[str, Dict[str, Any]], clear_screen: bool = True,
                 max_frames: Optional[int] = None):
        self.settings = settings
        self.clear_screen = clear_screen
        self.max_frames = max_frames
        self.running = False
        self.simulator: Optional[MovementSimulator] = None
        self.renderer: Optional[ASCIIRenderer] = None
        self.driver: Optional[FrameDriver] = None

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals gracefully"""
        logger.info(f"Received signal {signum}, shutting down...")
        self.running = False

    def initialize(self) -> bool:
        """Request the location fix and build the engine; False when no fix was obtained"""
        try:
            fix = locate(self.settings['location'])
        except LocationError as e:
            print(f"Error: {e}")
            return False

        self.simulator = MovementSimulator.from_fix(fix, self.settings['engine'])
        bounds = calculate_bounds(fix, self.settings['display']['region_delta'])
        self.renderer = ASCIIRenderer(bounds, self.settings['display'], self.settings['engine'])
        logger.info(f"Engine initialised at {format_position(fix)}")
        return True

    def _on_frame(self, state):
        if self.max_frames is not None and self.driver.frames >= self.max_frames:
            logger.info(f"Frame limit {self.max_frames} reached")
            self.driver.stop()

    async def _run_session(self):
        loop = asyncio.get_running_loop()
        display = self.settings['display']
        self.driver = FrameDriver(self.simulator, loop, display['frame_rate'], on_frame=self._on_frame)
        if self.max_frames is not None and self.max_frames <= 0:
            logger.info(f"Frame limit {self.max_frames} reached")
        else:
            self.driver.start()

        try:
            self.running = True
            while self.running:
                state = self.simulator.snapshot()
                self.renderer.display(state, clear_screen=self.clear_screen)
                if not state.moving:
                    break
                await asyncio.sleep(display['render_interval'])
        finally:
            self.driver.close()

    def run(self, target: Optional[Position] = None, speed: Optional[float] = None) -> int:
        """Run until arrival, Ctrl+C or the frame limit"""
        if self.simulator is None and not self.initialize():
            return 1

        if target is not None:
            self.simulator.set_target(target)
        if speed is not None:
            stored = self.simulator.set_speed(speed)
            if stored != speed:
                print(f"Speed {speed} is outside the slider range, using {stored}")

        # Setup signal handlers for graceful shutdown
        previous = {sig: signal.signal(sig, self._signal_handler) for sig in (signal.SIGINT, signal.SIGTERM)}
        try:
            asyncio.run(self._run_session())
        except KeyboardInterrupt:
            pass
        finally:
            for sig, handler in previous.items():
                signal.signal(sig, handler)
            print(f"\nStopped at {format_position(self.simulator.current)}")

        return 0


def parse_position(value: str) -> Position:
    """Parse a position string like 'lat,lon'"""
    try:
        parts = value.split(',')
        if len(parts) != 2:
            raise ValueError("Position must have 2 values")
        return Position(*map(float, parts))

    except (ValueError, TypeError) as e:
        raise argparse.ArgumentTypeError(f"Invalid position format: {e}")


def build_settings(args) -> Dict[str, Dict[str, Any]]:
    """Layer command line options over the config file"""
    settings = load_settings(args.config)

    location = settings['location']
    if args.lat is not None or args.lon is not None:
        if args.lat is None or args.lon is None:
            raise argparse.ArgumentTypeError("--lat and --lon must be given together")
        location.update({'source': 'fixed', 'latitude': args.lat, 'longitude': args.lon})
    if args.ip:
        location['source'] = 'ip'
    if args.deny_location:
        location['allow'] = False

    if args.clamp_step:
        settings['engine']['clamp_step'] = True
    if args.fps is not None:
        if args.fps <= 0:
            raise ValueError(f"--fps must be positive, got {args.fps}")
        settings['display']['frame_rate'] = args.fps
    return settings


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(
        description="Geo Mover - move a simulated position toward a target",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --target 44.428,26.104               # Move from the configured fix
  python main.py --lat 0 --lon 0 --target 0.001,0 --speed 0.0001
  python main.py --ip --target 44.43,26.10            # Start from an IP lookup
  python main.py --clamp-step --target 44.428,26.104  # Never overshoot the target
        """
    )

    parser.add_argument('--config', type=str, default=None,
                        help='YAML settings file (default: config.yaml)')
    parser.add_argument('--lat', type=float, help='Latitude of the starting fix')
    parser.add_argument('--lon', type=float, help='Longitude of the starting fix')
    parser.add_argument('--ip', action='store_true',
                        help='Obtain the starting fix from an IP geolocation lookup')
    parser.add_argument('--deny-location', action='store_true',
                        help='Behave as if location permission was refused')
    parser.add_argument('--target', type=parse_position,
                        help='Target position as lat,lon')
    parser.add_argument('--speed', type=float,
                        help='Degrees per frame (clamped to the configured range)')
    parser.add_argument('--clamp-step', action='store_true',
                        help='Clamp each step to the remaining distance')
    parser.add_argument('--fps', type=float, help='Engine frames per second')
    parser.add_argument('--max-frames', type=int, help='Stop after this many frames')
    parser.add_argument('--no-clear', action='store_true',
                        help='Do not clear the screen between frames')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable verbose logging')

    args = parser.parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.INFO)

    try:
        settings = build_settings(args)
    except (ValueError, argparse.ArgumentTypeError) as e:
        parser.error(str(e))

    app = GeoMoverApp(settings, clear_screen=not args.no_clear, max_frames=args.max_frames)

    try:
        return app.run(target=args.target, speed=args.speed)

    except Exception as e:
        logger.error(f"Application error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
