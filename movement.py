"""
Movement Simulation Engine
Advances a simulated position toward a target, one fixed-length step per frame
"""

import math
import threading
import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, NamedTuple, Optional

from config import ENGINE_CONFIG

logger = logging.getLogger(__name__)


class Position(NamedTuple):
    """A (latitude, longitude) pair in degrees"""
    latitude: float
    longitude: float


def planar_distance(a: Position, b: Position) -> float:
    """Euclidean distance in coordinate-degree space (no geodesic correction)"""
    return math.hypot(b.latitude - a.latitude, b.longitude - a.longitude)


@dataclass
class MovementState:
    """Everything the engine knows about the simulated point"""
    current: Position
    target: Optional[Position]
    speed: float
    moving: bool = False


class PositionStore:
    """Holds the MovementState behind a single lock and hands out snapshots"""

    FIELDS = ('current', 'target', 'speed', 'moving')

    def __init__(self, state: MovementState, min_speed: Optional[float] = None,
                 max_speed: Optional[float] = None):
        self.min_speed = min_speed
        self.max_speed = max_speed
        self._lock = threading.Lock()
        self._state = replace(state, **self._bounded({'speed': state.speed}))

    def _bounded(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Keep any speed written through the store inside the configured bounds"""
        if 'speed' in fields:
            speed = fields['speed']
            if self.max_speed is not None:
                speed = min(self.max_speed, speed)
            if self.min_speed is not None:
                speed = max(self.min_speed, speed)
            fields = dict(fields, speed=speed)
        return fields

    def get(self) -> MovementState:
        """Snapshot copy of the current state"""
        with self._lock:
            return replace(self._state)

    def set(self, **fields):
        """Replace one or more fields atomically"""
        unknown = set(fields) - set(self.FIELDS)
        if unknown:
            raise TypeError(f"Unknown MovementState fields: {', '.join(sorted(unknown))}")
        with self._lock:
            self._state = replace(self._state, **self._bounded(fields))

    def update(self, func: Callable[[MovementState], Optional[Dict[str, Any]]]) -> MovementState:
        """
        Atomic read-modify-write

        func receives a snapshot and returns the fields to change (or None).
        Returns the resulting snapshot.
        """
        with self._lock:
            changes = func(replace(self._state))
            if changes:
                self._state = replace(self._state, **self._bounded(changes))
            return replace(self._state)


def validate_engine_config(engine_config: Dict[str, Any]):
    """Reject option combinations the engine cannot honour"""
    epsilon = engine_config['epsilon']
    min_speed = engine_config['min_speed']
    max_speed = engine_config['max_speed']

    if not epsilon > 0:
        raise ValueError(f"epsilon must be positive, got {epsilon}")
    if not min_speed > 0 or not max_speed > 0:
        raise ValueError(f"Speed bounds must be positive, got [{min_speed}, {max_speed}]")
    if min_speed > max_speed:
        raise ValueError(f"Invalid speed bounds: min_speed {min_speed} > max_speed {max_speed}")


class MovementSimulator:
    """
    Idle/Moving state machine over a PositionStore

    step() is meant to be called once per display frame by a FrameDriver.
    Every mutation goes through the store, so snapshots taken by the
    renderer are always consistent.
    """

    def __init__(self, current: Position, target: Optional[Position] = None,
                 speed: Optional[float] = None, engine_config: Optional[Dict[str, Any]] = None):
        options = dict(ENGINE_CONFIG)
        if engine_config:
            options.update(engine_config)
        validate_engine_config(options)

        self.epsilon = float(options['epsilon'])
        self.min_speed = float(options['min_speed'])
        self.max_speed = float(options['max_speed'])
        self.clamp_step = bool(options.get('clamp_step', False))

        initial_speed = options['default_speed'] if speed is None else speed
        self.store = PositionStore(MovementState(
            current=Position(*current),
            target=Position(*target) if target is not None else None,
            speed=self.clamp_speed(initial_speed),
        ), min_speed=self.min_speed, max_speed=self.max_speed)

    @classmethod
    def from_fix(cls, fix: Position, engine_config: Optional[Dict[str, Any]] = None) -> 'MovementSimulator':
        """Engine initialised from the location provider's first fix"""
        return cls(fix, target=fix, engine_config=engine_config)

    def clamp_speed(self, value: float) -> float:
        return max(self.min_speed, min(self.max_speed, value))

    # Read side

    def snapshot(self) -> MovementState:
        return self.store.get()

    @property
    def current(self) -> Position:
        return self.store.get().current

    @property
    def target(self) -> Optional[Position]:
        return self.store.get().target

    @property
    def speed(self) -> float:
        return self.store.get().speed

    @property
    def is_moving(self) -> bool:
        return self.store.get().moving

    def distance_to_target(self) -> Optional[float]:
        state = self.store.get()
        if state.target is None:
            return None
        return planar_distance(state.current, state.target)

    # Mutation API

    def start(self):
        """Idle -> Moving. A missing target is allowed; step() then does nothing"""
        self.store.set(moving=True)
        logger.info("Motion started")

    def stop(self):
        """Moving -> Idle. The current position is left where it is"""
        self.store.set(moving=False)
        logger.info("Motion stopped")

    def toggle(self) -> bool:
        """Flip the motion flag and return the new value"""
        def flip(state):
            return {'moving': not state.moving}

        moving = self.store.update(flip).moving
        logger.info(f"Motion {'started' if moving else 'stopped'}")
        return moving

    def set_target(self, target: Position):
        """Retarget; the next step heads for the new position"""
        target = Position(*target)
        self.store.set(target=target)
        logger.info(f"Target set to {target.latitude:.6f},{target.longitude:.6f}")

    def set_speed(self, value: float) -> float:
        """Store value clamped into [min_speed, max_speed] and return what was stored"""
        speed = self.clamp_speed(value)
        if speed != value:
            logger.debug(f"Speed {value} clamped to {speed}")
        self.store.set(speed=speed)
        return speed

    def snap(self, position: Position):
        """Teleport the current position without stepping"""
        self.store.set(current=Position(*position))

    # Core algorithm

    def _advance(self, state: MovementState) -> Optional[Dict[str, Any]]:
        if not state.moving or state.target is None:
            return None

        delta_lat = state.target.latitude - state.current.latitude
        delta_lng = state.target.longitude - state.current.longitude
        distance = math.sqrt(delta_lat ** 2 + delta_lng ** 2)

        if distance < self.epsilon:
            logger.info(f"Arrived at {state.current.latitude:.6f},{state.current.longitude:.6f}")
            return {'moving': False}

        step = min(state.speed, distance) if self.clamp_step else state.speed
        current = Position(
            state.current.latitude + (delta_lat / distance) * step,
            state.current.longitude + (delta_lng / distance) * step,
        )

        changes = {'current': current}
        # Arrival is reported on the frame that lands inside the threshold
        if planar_distance(current, state.target) < self.epsilon:
            logger.info(f"Arrived at {current.latitude:.6f},{current.longitude:.6f}")
            changes['moving'] = False
        return changes

    def step(self) -> MovementState:
        """Advance one frame. Never raises; returns the resulting snapshot"""
        return self.store.update(self._advance)
