"""
Session and animation constants.
"""

# Reference canvas spawn coordinates are expressed against
REFERENCE_WIDTH = 1080
REFERENCE_HEIGHT = 1920
REFERENCE_VERSION = 1

# Room defaults
DEFAULT_MAX_ROUNDS = 5
MAX_PLAYERS = 2

# Session timing (seconds)
SETTLE_DELAY = 0.5          # Let subscriptions establish before the seed fetch
SEED_RETRIES = 3
SEED_RETRY_DELAY = 0.5
POLL_INTERVAL = 1.0         # Lobby fallback polling period
HIT_WORKERS = 2

# Objective animation
OBJECTIVE_LIFETIME = 2.5    # Nominal lifetime in seconds
PULSE_AMPLITUDE = 0.1
PULSE_CYCLES = 2            # Full sine periods across the nominal lifetime
ARC_MARGIN = 30.0           # Indicator arc distance outside the objective
RIPPLE_GROWTH = 500.0       # px per second
RIPPLE_FADE_FACTOR = 3.0    # Ripple is gone at this multiple of the radius

# Hit particles
PARTICLE_COUNT = 20
PARTICLE_SPEED = (200.0, 400.0)
PARTICLE_LIFE = (0.5, 1.0)
PARTICLE_SIZE = (8.0, 16.0)
PARTICLE_GRAVITY = 500.0    # px per second squared

# Indicator colours
COLOR_PLENTY = (0, 255, 0)
COLOR_HURRY = (255, 255, 0)
COLOR_CRITICAL = (255, 0, 0)

# Local play window
WINDOW_WIDTH = 540
WINDOW_HEIGHT = 960
FRAME_RATE = 60
