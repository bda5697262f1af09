"""
voice-fx settings

Global constants for rendering, monitoring and logging. Values marked with an
environment variable can be overridden from the process environment or a
``.env`` file in the working directory.
"""

import os

from dotenv import load_dotenv

load_dotenv()

# Audio
DEFAULT_SAMPLE_RATE: int = int(os.getenv("VOICE_FX_SAMPLE_RATE", "44100"))
DEFAULT_CHANNELS: int = int(os.getenv("VOICE_FX_CHANNELS", "1"))
# Frames per render block; also the shortest delay a feedback loop can have
BLOCK_SIZE: int = int(os.getenv("VOICE_FX_BLOCK_SIZE", "128"))
BIT_DEPTH: int = 16

# Reverb impulse noise is seeded so exports are reproducible
REVERB_SEED: int = int(os.getenv("VOICE_FX_REVERB_SEED", "0"))

# Graph safety
MAX_FEEDBACK_GAIN: float = 0.6

# Monitoring levels applied after the effect
PREVIEW_LEVEL: float = 0.7
RECORD_LEVEL: float = 0.6

# Selection defaults
DEFAULT_EFFECT: str = "delay"
DEFAULT_INTENSITY: int = 50

# Logging
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
