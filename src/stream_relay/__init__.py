"""Resilient supervisor for ffmpeg-based stream relays."""

__version__ = "0.1.0"
