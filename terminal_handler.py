"""
Shared terminal handler for both telnet and SSH connections.
Each connection gets its own movement engine, frame driver and ASCII map;
keystrokes are the input surface (toggle motion, change speed, move target).
"""

import asyncio
import re
import time
import logging
from typing import Optional

from config import load_settings
from movement import MovementSimulator, Position
from frame_driver import FrameDriver
from location import LocationError, WAITING_MESSAGE, locate_async
from ascii_renderer import ASCIIRenderer, calculate_bounds

logger = logging.getLogger(__name__)

# Load config file at module level
config = load_settings()

ANSI_PATTERN = re.compile(r'\x1b\[[0-9;]*m')
ANSI_SPLIT = re.compile(r'(\x1b\[[0-9;]*m)')

# Target nudges in grid cells: (rows up, columns right)
TARGET_MOVES = {
    'w': (1, 0), 'k': (1, 0),
    's': (-1, 0), 'j': (-1, 0),
    'a': (0, -1), 'h': (0, -1),
    'd': (0, 1), 'l': (0, 1),
}

# Speed changes in slider steps
SPEED_KEYS = {'+': 1, '=': 1, '-': -1, '_': -1, ']': 10, '[': -10}


def process_colored_line(line, terminal_width, use_colors):
    """Fit a line containing ANSI colors to the terminal width"""
    if not use_colors:
        clean_line = ANSI_PATTERN.sub('', line)[:terminal_width]
        return clean_line.rstrip() + '\r\n'

    visible_chars = 0
    result = ""

    for segment in ANSI_SPLIT.split(line):
        if ANSI_PATTERN.fullmatch(segment):
            result += segment
            continue
        remaining_width = terminal_width - visible_chars
        if remaining_width <= 0:
            break
        result += segment[:remaining_width]
        visible_chars += min(len(segment), remaining_width)

    return result.rstrip() + '\r\n'


class MoverSession:
    """Per-connection engine state"""

    def __init__(self):
        self.running = False
        self.simulator: Optional[MovementSimulator] = None
        self.driver: Optional[FrameDriver] = None
        self.renderer: Optional[ASCIIRenderer] = None
        self.message: Optional[str] = WAITING_MESSAGE
        self.error = False

    def close(self):
        if self.driver is not None:
            self.driver.close()


def apply_key(key: str, session: MoverSession) -> bool:
    """
    Map one keystroke onto the engine API

    Returns True when the key changed something worth redrawing.
    """
    simulator = session.simulator
    if simulator is None or session.driver is None:
        return False

    if key == ' ':
        session.driver.toggle()
        return True

    if key in SPEED_KEYS:
        step = config['engine']['speed_step']
        # Raw slider value goes through unclamped; set_speed clamps it
        simulator.set_speed(simulator.speed + SPEED_KEYS[key] * step)
        return True

    if key in TARGET_MOVES:
        rows, cols = TARGET_MOVES[key]
        lat_cell, lon_cell = session.renderer.cell_size()
        origin = simulator.target if simulator.target is not None else simulator.current
        simulator.set_target(Position(origin.latitude + rows * lat_cell,
                                      origin.longitude + cols * lon_cell))
        return True

    if key == 'c':
        simulator.set_target(session.renderer.map_center())
        return True

    return False


async def reader_task(reader, queue):
    """Reads data from the client and puts it into a queue."""
    while True:
        try:
            char = await reader.read(1)
            if not char:
                await queue.put(None)  # Signal EOF
                break
            if isinstance(char, bytes):
                char = char.decode('utf-8', errors='ignore')
            await queue.put(char)
        except (ConnectionResetError, BrokenPipeError, asyncio.IncompleteReadError):
            await queue.put(None)
            break
        except Exception as e:
            logger.error(f"Reader task error: {e}")
            await queue.put(None)
            break


async def handle_input(queue, session, on_refresh, force_update):
    """Handles user input from the queue."""
    debug = config['server'].get('debug', False)
    while session.running:
        try:
            char = await asyncio.wait_for(queue.get(), timeout=0.1)
        except asyncio.TimeoutError:
            continue

        if char is None:  # EOF
            session.running = False
            break

        if debug:
            print(f"Input received: {repr(char)} (len={len(char)})")

        if len(char) != 1 or not char.isprintable():
            continue

        key = char.lower()
        if key == 'q':
            print("Quit command received.")
            session.running = False
        elif key == 'r':
            await on_refresh()
        elif apply_key(key, session):
            force_update.set()


async def detect_terminal_size(reader, writer):
    """Detect current terminal size using cursor position query."""
    try:
        # Save cursor, move to bottom-right corner, and query position
        writer.write('\x1b[s\x1b[999;999H\x1b[6n')
        await writer.drain()

        response = await asyncio.wait_for(reader.read(20), timeout=1.0)
        if isinstance(response, bytes):
            response = response.decode('utf-8', errors='ignore')

        match = re.search(r'\x1b\[(\d+);(\d+)R', response)
        if match:
            rows, cols = int(match.group(1)), int(match.group(2))
            if rows > 0 and cols > 0:
                return cols, rows

    except asyncio.TimeoutError:
        print("Terminal size detection timed out.")
    except Exception as e:
        print(f"Error during terminal size detection: {e}")
    finally:
        try:
            writer.write('\x1b[u')
            await writer.drain()
        except Exception:
            pass

    return None, None


async def negotiated_terminal_size(reader, writer, protocol):
    """Terminal size from config, NAWS/SSH, cursor query, then a default"""
    server = config['server']
    if server.get('terminal_width') and server.get('terminal_height'):
        return int(server['terminal_width']), int(server['terminal_height'])

    width = height = None
    if protocol == 'telnet' and hasattr(writer, 'get_extra_info'):
        # telnetlib3 handles NAWS negotiation automatically
        await writer.drain()
        await asyncio.sleep(0.1)
        width, height = writer.get_extra_info('columns'), writer.get_extra_info('lines')
    elif protocol == 'ssh' and hasattr(writer, 'get_terminal_size'):
        width, height = writer.get_terminal_size()

    if not width or not height:
        print(f"{protocol.upper()} size detection failed, trying cursor position query...")
        width, height = await detect_terminal_size(reader, writer)

    if not width or not height:
        width, height = 120, 40
        print(f"All detection methods failed. Using default size: {width}x{height}")

    return width, height


async def handle_terminal_session(reader, writer, peername, protocol='telnet'):
    """
    Main terminal session handler that works for both telnet and SSH.

    Args:
        reader: Stream reader (telnet or SSH)
        writer: Stream writer (telnet or SSH)
        peername: Client connection info
        protocol: 'telnet' or 'ssh'
    """
    print(f"Client connected via {protocol} from {peername}")

    input_queue = asyncio.Queue()
    force_update = asyncio.Event()
    session = MoverSession()
    display = dict(config['display'])
    use_colors = display.get('use_colors', True)

    # Give client time to establish connection
    await asyncio.sleep(0.2)

    terminal_width, terminal_height = await negotiated_terminal_size(reader, writer, protocol)
    print(f"Terminal size for {peername}: {terminal_width}x{terminal_height}")
    display.update({'terminal_width': terminal_width, 'terminal_height': terminal_height})

    # Start the reader task AFTER terminal size detection
    rtask = asyncio.create_task(reader_task(reader, input_queue))
    input_task = None

    async def write_screen(text):
        writer.write("\x1b[H")
        lines = text.split('\n')
        for i, line in enumerate(lines):
            if i == len(lines) - 1 and not line:
                continue
            writer.write(process_colored_line(line, terminal_width, use_colors))
        await writer.drain()

    async def refresh():
        writer.write("\x1b[2J\x1b[1;1H\x1b[?25l")
        await writer.drain()
        force_update.set()

    def on_frame(state):
        if not state.moving:
            force_update.set()

    try:
        session.running = True
        input_task = asyncio.create_task(handle_input(input_queue, session, refresh, force_update))

        writer.write("\x1b[2J\x1b[1;1H\x1b[?25l")
        placeholder = ASCIIRenderer(calculate_bounds(Position(0.0, 0.0), display['region_delta']), display)
        await write_screen(placeholder.render_message(WAITING_MESSAGE))

        # One fix per session; a refusal leaves the engine unbuilt
        try:
            fix = await locate_async(config['location'])
        except LocationError as e:
            print(f"Location unavailable for {peername}: {e}")
            session.message, session.error = str(e), True
        else:
            session.message = None
            session.simulator = MovementSimulator.from_fix(fix, config['engine'])
            session.renderer = ASCIIRenderer(calculate_bounds(fix, display['region_delta']),
                                             display, config['engine'])
            session.driver = FrameDriver(session.simulator, asyncio.get_running_loop(),
                                         display['frame_rate'], on_frame=on_frame)

        last_keepalive = time.time()
        keepalive_interval = config['server'].get('keepalive_interval', 30)

        while session.running:
            if writer.is_closing():
                print(f"Client {peername} connection closed.")
                break

            current_time = time.time()
            if keepalive_interval > 0 and current_time - last_keepalive > keepalive_interval:
                writer.write('')
                await writer.drain()
                last_keepalive = current_time

            if session.renderer is not None:
                screen = session.renderer.render_to_string(session.simulator.snapshot())
            else:
                screen = placeholder.render_message(session.message, error=session.error)
            await write_screen(screen)

            try:
                await asyncio.wait_for(force_update.wait(), timeout=display['render_interval'])
            except asyncio.TimeoutError:
                pass
            force_update.clear()

    except (ConnectionResetError, BrokenPipeError, OSError) as e:
        print(f"Client {peername} disconnected: {e}")
    except asyncio.CancelledError:
        print("Terminal session cancelled.")
    finally:
        print(f"Closing connection for {peername}")
        session.close()
        rtask.cancel()
        if input_task is not None:
            input_task.cancel()
        if not writer.is_closing():
            try:
                writer.write("\x1b[?25h")  # Show cursor
                if protocol == 'telnet':
                    writer.close()
            except Exception:
                pass
