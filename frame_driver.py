"""
Frame Driver
Calls MovementSimulator.step() once per display frame while motion is active
"""

import logging
from typing import Any, Callable, Optional

from movement import MovementSimulator, MovementState

logger = logging.getLogger(__name__)


class FrameDriver:
    """
    Cooperative, cancelable frame loop with at most one pending callback

    The scheduler is anything exposing call_later(delay, callback) that
    returns a handle with cancel(); an asyncio event loop fits. After
    close() the driver drops its simulator, so a callback that still
    fires does nothing.
    """

    def __init__(self, simulator: MovementSimulator, scheduler: Any,
                 frame_rate: float = 60, on_frame: Optional[Callable[[MovementState], None]] = None):
        if frame_rate <= 0:
            raise ValueError(f"frame_rate must be positive, got {frame_rate}")
        self.simulator: Optional[MovementSimulator] = simulator
        self.scheduler = scheduler
        self.frame_interval = 1.0 / frame_rate
        self.on_frame = on_frame
        self.frames = 0
        self._handle = None

    @property
    def pending(self) -> bool:
        """True while a frame callback is scheduled"""
        return self._handle is not None

    @property
    def closed(self) -> bool:
        return self.simulator is None

    def start(self):
        """Start motion and begin scheduling frames"""
        if self.closed:
            return
        self.simulator.start()
        self._schedule()

    def stop(self):
        """Stop motion; no further frame is scheduled"""
        if self.closed:
            return
        self.simulator.stop()
        self._cancel()

    def toggle(self) -> bool:
        """Toggle control: start when idle, stop when moving"""
        if self.closed:
            return False
        if self.simulator.is_moving:
            self.stop()
            return False
        self.start()
        return True

    def sync(self):
        """Resume scheduling if the simulator was started directly"""
        if self.closed:
            return
        if self.simulator.is_moving:
            self._schedule()
        else:
            self._cancel()

    def close(self):
        """Teardown: cancel any pending frame and release the simulator"""
        self._cancel()
        if self.simulator is not None:
            logger.debug(f"Frame driver closed after {self.frames} frames")
        self.simulator = None
        self.on_frame = None

    def _schedule(self):
        if self._handle is None:
            self._handle = self.scheduler.call_later(self.frame_interval, self._run_frame)

    def _cancel(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _run_frame(self):
        self._handle = None
        simulator = self.simulator
        if simulator is None:
            return

        state = simulator.step()
        self.frames += 1

        if self.on_frame is not None:
            self.on_frame(state)

        # on_frame may have closed or stopped the driver
        if self.simulator is not None and state.moving and self.simulator.is_moving:
            self._schedule()
