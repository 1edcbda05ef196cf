"""Live OBS status dashboard over obs-websocket."""

__version__ = "0.3.0"
