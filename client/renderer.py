"""
Pygame renderer for the tap duel.
Draws the objective with its time arc, the ripple, hit particles and a
score HUD, and reports pointer-down positions.
"""

import math

import pygame

from common.config import WINDOW_WIDTH, WINDOW_HEIGHT, FRAME_RATE
from common.snapshot import SessionStatus

BACKGROUND = (24, 26, 33)
OBJECTIVE_INNER = (255, 107, 107)
OBJECTIVE_OUTER = (255, 71, 87)
OBJECTIVE_STROKE = (255, 255, 255)
RIPPLE_COLOR = (78, 205, 196)
PARTICLE_COLOR = (255, 217, 61)
SHADOW_COLOR = (0, 0, 0, 50)


class GameRenderer:
    """Pygame-based renderer for local play."""

    def __init__(self, width: int = WINDOW_WIDTH, height: int = WINDOW_HEIGHT):
        pygame.init()
        self.width = width
        self.height = height
        self.screen = pygame.display.set_mode((width, height))
        pygame.display.set_caption("Tap Duel")
        self.font = pygame.font.SysFont('monospace', 16)
        self.big_font = pygame.font.SysFont('monospace', 28, bold=True)
        self.clock = pygame.time.Clock()
        self.overlay = pygame.Surface((width, height), pygame.SRCALPHA)

    def tick(self) -> float:
        """Wait for the next frame; returns elapsed seconds."""
        return self.clock.tick(FRAME_RATE) / 1000.0

    def poll_input(self) -> tuple:
        """Returns (quit_requested, [pointer-down positions])."""
        quit_requested = False
        taps = []
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                quit_requested = True
            elif event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE:
                quit_requested = True
            elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                taps.append(event.pos)
            elif event.type == pygame.FINGERDOWN:
                taps.append((event.x * self.width, event.y * self.height))
        return quit_requested, taps

    def render(self, engine, state, local_id: str, banner: str = None):
        """Render one frame."""
        self.screen.fill(BACKGROUND)
        self.overlay.fill((0, 0, 0, 0))

        if state.status == SessionStatus.IN_GAME:
            frame = engine.frame()
            if frame is not None:
                self._draw_objective(frame)
                if engine.ripple_visible:
                    alpha = int(engine.ripple_alpha * 255)
                    pygame.draw.circle(self.overlay, RIPPLE_COLOR + (alpha,),
                                       (int(frame.x), int(frame.y)),
                                       max(1, int(engine.ripple_radius)), 6)

        for p in engine.particles:
            alpha = int(p.alpha * 255)
            pygame.draw.circle(self.overlay, PARTICLE_COLOR + (alpha,),
                               (int(p.x), int(p.y)), max(1, int(p.size)))

        self.screen.blit(self.overlay, (0, 0))
        self._draw_hud(state, local_id)
        if banner:
            self._draw_banner(banner)
        pygame.display.flip()

    def _draw_objective(self, frame):
        center = (int(frame.x), int(frame.y))
        radius = max(1, int(frame.radius))

        pygame.draw.circle(self.overlay, SHADOW_COLOR,
                           (center[0] + 10, center[1] + 10), radius)
        # Two-step fill approximates the radial gradient
        pygame.draw.circle(self.screen, OBJECTIVE_OUTER, center, radius)
        pygame.draw.circle(self.screen, OBJECTIVE_INNER, center,
                           max(1, int(radius * 0.6)))
        pygame.draw.circle(self.screen, OBJECTIVE_STROKE, center, radius, 8)

        if frame.sweep_angle > 0:
            r = frame.arc_radius
            rect = pygame.Rect(frame.x - r, frame.y - r, 2 * r, 2 * r)
            # Clockwise from 12 o'clock; pygame angles run counter-clockwise
            start = math.radians(90.0 - frame.sweep_angle)
            stop = math.radians(90.0)
            pygame.draw.arc(self.screen, frame.arc_color, rect, start, stop, 12)

    def _draw_hud(self, state, local_id: str):
        panel = pygame.Surface((self.width, 64))
        panel.set_alpha(180)
        panel.fill((0, 0, 0))
        self.screen.blit(panel, (0, 0))

        for slot, pid in enumerate((state.player1_id, state.player2_id)):
            if pid is None:
                continue
            name = "YOU" if pid == local_id else "OPPONENT"
            text = self.font.render(f"{name}: {state.score_of(pid)}", True,
                                    (230, 230, 230))
            self.screen.blit(text, (10 + slot * (self.width // 2), 10))

        if state.status == SessionStatus.LOBBY:
            status = f"Room {state.room_code}  waiting ({state.player_count}/2)"
        elif state.status == SessionStatus.IN_GAME:
            status = f"Round {state.round}/{state.max_rounds}"
        else:
            status = "Match finished"
        text = self.font.render(status, True, (150, 255, 150))
        self.screen.blit(text, (10, 36))

    def _draw_banner(self, message: str):
        text = self.big_font.render(message, True, (255, 255, 255))
        rect = text.get_rect(center=(self.width // 2, self.height // 2))
        self.screen.blit(text, rect)

    def close(self):
        pygame.quit()
