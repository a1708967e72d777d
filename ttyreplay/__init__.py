"""Terminal emulation, recording formats and timelines for replaying terminal sessions."""

__version__ = "0.1.0"