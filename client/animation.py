"""
Objective animation and hit detection.

Renders the current objective as a pulsing target with a time-remaining
arc, a placement ripple and a particle burst on a local hit. The engine is
driven by a cooperative per-frame tick and never blocks; the only thing it
sends outward is the id of a tapped objective.
"""

import math
import random
import time

from common.config import (
    OBJECTIVE_LIFETIME, PULSE_AMPLITUDE, PULSE_CYCLES, ARC_MARGIN,
    RIPPLE_GROWTH, RIPPLE_FADE_FACTOR,
    PARTICLE_COUNT, PARTICLE_SPEED, PARTICLE_LIFE, PARTICLE_SIZE,
    PARTICLE_GRAVITY, COLOR_PLENTY, COLOR_HURRY, COLOR_CRITICAL,
)
from common.objective import Particle


def pulse_scale(age: float, lifetime: float = OBJECTIVE_LIFETIME) -> float:
    """Radius multiplier; keeps oscillating past the nominal lifetime."""
    phase = (age / lifetime) * PULSE_CYCLES * 2.0 * math.pi
    return 1.0 + PULSE_AMPLITUDE * math.sin(phase)


def remaining_fraction(age: float, lifetime: float = OBJECTIVE_LIFETIME) -> float:
    return 1.0 - min(max(age, 0.0) / lifetime, 1.0)


def indicator_color(remaining: float) -> tuple:
    if remaining > 0.5:
        return COLOR_PLENTY
    elif remaining > 0.25:
        return COLOR_HURRY
    return COLOR_CRITICAL


class ObjectiveFrame:
    """Screen-space description of the objective for one frame."""

    __slots__ = ('objective_id', 'x', 'y', 'radius', 'remaining',
                 'sweep_angle', 'arc_radius', 'arc_color')

    def __init__(self, objective_id, x, y, radius, remaining):
        self.objective_id = objective_id
        self.x = x
        self.y = y
        self.radius = radius
        self.remaining = remaining
        self.sweep_angle = 360.0 * remaining
        self.arc_radius = radius + ARC_MARGIN
        self.arc_color = indicator_color(remaining)


class AnimationHitEngine:
    """
    Per-objective animation state plus screen-space hit testing.

    Args:
        request_frame: called (at most once per pending frame) when another
            tick is needed
        on_objective_tapped: called with the objective id on a local hit
        clock: returns the current time in the objective's time base
        rng: random source for particle bursts
    """

    def __init__(self, width: float = 0.0, height: float = 0.0,
                 request_frame=None, on_objective_tapped=None,
                 clock=time.time, rng: random.Random = None,
                 lifetime: float = OBJECTIVE_LIFETIME):
        self.width = width
        self.height = height
        self.request_frame = request_frame
        self.on_objective_tapped = on_objective_tapped
        self.clock = clock
        self.rng = rng or random.Random()
        self.lifetime = lifetime

        self.objective = None
        self.particles = []
        self.ripple_radius = 0.0
        self.ripple_alpha = 0.0
        self.frame_pending = False

    # -- inputs -------------------------------------------------------------

    def set_canvas_size(self, width: float, height: float):
        self.width = width
        self.height = height
        self._invalidate()

    def set_objective(self, objective):
        """
        Show *objective*, or clear the canvas when None.

        Re-sending the objective already on screen leaves the animation
        alone; a different one re-arms the ripple.
        """
        if objective is None:
            if self.objective is not None or self.particles:
                self.objective = None
                self.particles.clear()
                self.ripple_alpha = 0.0
                self._invalidate()
            return

        if self.objective is not None and \
                self.objective.objective_id == objective.objective_id:
            return
        self.objective = objective
        self._arm_ripple()
        self._invalidate()

    def on_pointer_down(self, px: float, py: float, now: float = None) -> bool:
        """Hit-test a pointer-down; on a hit, burst and report the objective."""
        if self.objective is None:
            return False
        now = self.clock() if now is None else now
        x, y, _ = self._screen_geometry()
        if not self.hit_test(px, py, now):
            return False

        self.particles.extend(Particle.burst(
            x, y, PARTICLE_COUNT, PARTICLE_SPEED, PARTICLE_LIFE,
            PARTICLE_SIZE, self.rng
        ))
        self._arm_ripple()
        self._invalidate()
        if self.on_objective_tapped:
            self.on_objective_tapped(self.objective.objective_id)
        return True

    # -- geometry -------------------------------------------------------------

    def _screen_geometry(self) -> tuple:
        return self.objective.to_screen(self.width, self.height)

    def current_radius(self, now: float = None) -> float:
        """The pulse-scaled on-screen radius, 0 without an objective."""
        if self.objective is None:
            return 0.0
        now = self.clock() if now is None else now
        _, _, radius = self._screen_geometry()
        return radius * pulse_scale(self.objective.age(now), self.lifetime)

    def hit_test(self, px: float, py: float, now: float = None) -> bool:
        """
        True iff the point lies within the objective's current animated
        radius, boundary included.
        """
        if self.objective is None:
            return False
        x, y, _ = self._screen_geometry()
        distance = math.hypot(px - x, py - y)
        return distance <= self.current_radius(now)

    def frame(self, now: float = None) -> ObjectiveFrame:
        """Render description of the objective, or None."""
        if self.objective is None:
            return None
        now = self.clock() if now is None else now
        x, y, _ = self._screen_geometry()
        age = self.objective.age(now)
        return ObjectiveFrame(self.objective.objective_id, x, y,
                              self.current_radius(now),
                              remaining_fraction(age, self.lifetime))

    # -- animation loop ---------------------------------------------------------

    def _arm_ripple(self):
        self.ripple_radius = 0.0
        self.ripple_alpha = 1.0

    def _invalidate(self):
        """Ask for a frame unless one is already pending."""
        if self.frame_pending:
            return
        self.frame_pending = True
        if self.request_frame:
            self.request_frame()

    @property
    def ripple_visible(self) -> bool:
        return self.objective is not None and self.ripple_alpha > 0.0

    def is_animating(self, now: float = None) -> bool:
        if self.ripple_visible or self.particles:
            return True
        if self.objective is None:
            return False
        now = self.clock() if now is None else now
        return self.objective.age(now) < self.lifetime

    def tick(self, dt: float, now: float = None) -> bool:
        """
        Advance ripple and particles by *dt* seconds.

        Returns True (and requests another frame) while anything is still
        animating.
        """
        self.frame_pending = False
        now = self.clock() if now is None else now

        if self.ripple_visible:
            self.ripple_radius += RIPPLE_GROWTH * dt
            nominal = self.objective.to_screen(self.width, self.height)[2]
            span = nominal * RIPPLE_FADE_FACTOR
            fade = 1.0 - self.ripple_radius / span if span > 0 else 0.0
            self.ripple_alpha = max(0.0, min(self.ripple_alpha, fade))

        alive = []
        for p in self.particles:
            p.step(dt, PARTICLE_GRAVITY)
            if p.alive:
                alive.append(p)
        self.particles = alive

        animating = self.is_animating(now)
        if animating:
            self._invalidate()
        return animating
