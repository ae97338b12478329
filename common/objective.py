"""
Objective and particle value types plus reference-canvas geometry.
"""

import math
import time

from common.config import REFERENCE_WIDTH, REFERENCE_HEIGHT, REFERENCE_VERSION


LIFE_EPSILON = 1e-9         # tolerance for accumulated tick rounding


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


class ReferenceFrame:
    """The canvas spawn coordinates are expressed against."""

    __slots__ = ('width', 'height', 'version')

    def __init__(self, width: int = REFERENCE_WIDTH,
                 height: int = REFERENCE_HEIGHT,
                 version: int = REFERENCE_VERSION):
        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid reference frame {width}x{height}")
        self.width = width
        self.height = height
        self.version = version

    @property
    def min_dimension(self) -> int:
        return min(self.width, self.height)

    @staticmethod
    def from_dict(data: dict, default: 'ReferenceFrame' = None) -> 'ReferenceFrame':
        """Read an embedded ``ref`` block, falling back to *default*."""
        default = default or DEFAULT_REFERENCE
        if not isinstance(data, dict):
            return default
        try:
            return ReferenceFrame(
                int(data.get('width', default.width)),
                int(data.get('height', default.height)),
                int(data.get('version', default.version)),
            )
        except (TypeError, ValueError, OverflowError):
            return default

    def __eq__(self, other):
        if not isinstance(other, ReferenceFrame):
            return NotImplemented
        return (self.width, self.height, self.version) == \
               (other.width, other.height, other.version)

    def __repr__(self):
        return (f"ReferenceFrame({self.width}x{self.height}, "
                f"v{self.version})")


DEFAULT_REFERENCE = ReferenceFrame()


class Objective:
    """A spawned target in normalized reference-canvas space."""

    __slots__ = ('objective_id', 'normalized_x', 'normalized_y',
                 'normalized_radius', 'created_at')

    def __init__(self, objective_id: str, normalized_x: float,
                 normalized_y: float, normalized_radius: float,
                 created_at: float = None):
        self.objective_id = objective_id
        self.normalized_x = _clamp01(normalized_x)
        self.normalized_y = _clamp01(normalized_y)
        self.normalized_radius = _clamp01(normalized_radius)
        self.created_at = time.time() if created_at is None else created_at

    def age(self, now: float) -> float:
        return max(0.0, now - self.created_at)

    def to_screen(self, width: float, height: float) -> tuple:
        """Return (x, y, radius) in pixels for a canvas of the given size."""
        return (self.normalized_x * width,
                self.normalized_y * height,
                self.normalized_radius * min(width, height))

    def to_dict(self) -> dict:
        return {
            'id': self.objective_id,
            'x': self.normalized_x, 'y': self.normalized_y,
            'radius': self.normalized_radius,
            'created_at': self.created_at,
        }

    def __eq__(self, other):
        if not isinstance(other, Objective):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return (f"Objective(id={self.objective_id!r}, "
                f"x={self.normalized_x:.3f}, y={self.normalized_y:.3f}, "
                f"r={self.normalized_radius:.3f})")


def spawn_payload_to_objective(payload: dict,
                               reference: ReferenceFrame = None,
                               created_at: float = None) -> Objective:
    """
    Convert a SPAWN payload ``{spawnId, cx, cy, r, ref?}`` into an Objective.

    Raises ValueError if the id or coordinates are missing or not numeric.
    """
    if not isinstance(payload, dict):
        raise ValueError("Spawn payload must be an object")
    spawn_id = payload.get('spawnId')
    if not spawn_id:
        raise ValueError("Spawn payload has no spawnId")

    frame = ReferenceFrame.from_dict(payload.get('ref'), reference)
    try:
        cx = float(payload['cx'])
        cy = float(payload['cy'])
        r = float(payload['r'])
    except (KeyError, TypeError, ValueError) as exc:
        raise ValueError(f"Spawn payload {spawn_id!r} malformed: {exc}")

    if created_at is None and 'createdAt' in payload:
        try:
            created_at = float(payload['createdAt'])
        except (TypeError, ValueError):
            created_at = None

    return Objective(
        str(spawn_id),
        cx / frame.width,
        cy / frame.height,
        r / frame.min_dimension,
        created_at,
    )


class Particle:
    """A transient hit particle; lives only in the animation engine."""

    __slots__ = ('x', 'y', 'vx', 'vy', 'remaining_life', 'size')

    def __init__(self, x: float, y: float, vx: float, vy: float,
                 remaining_life: float, size: float):
        self.x = x
        self.y = y
        self.vx = vx
        self.vy = vy
        self.remaining_life = remaining_life
        self.size = size

    @property
    def alive(self) -> bool:
        return self.remaining_life > LIFE_EPSILON

    @property
    def alpha(self) -> float:
        return _clamp01(self.remaining_life)

    def step(self, dt: float, gravity: float):
        """Integrate one tick: move, accelerate downward, age."""
        self.x += self.vx * dt
        self.y += self.vy * dt
        self.vy += gravity * dt
        self.remaining_life -= dt

    @staticmethod
    def burst(x: float, y: float, count: int, speed_range: tuple,
              life_range: tuple, size_range: tuple, rng) -> list:
        """Evenly spaced ring of particles with randomized speed/life/size."""
        particles = []
        for i in range(count):
            angle = (i / count) * 2.0 * math.pi
            speed = rng.uniform(*speed_range)
            particles.append(Particle(
                x, y,
                math.cos(angle) * speed,
                math.sin(angle) * speed,
                rng.uniform(*life_range),
                rng.uniform(*size_range),
            ))
        return particles

    def __repr__(self):
        return (f"Particle(x={self.x:.1f}, y={self.y:.1f}, "
                f"life={self.remaining_life:.3f})")
