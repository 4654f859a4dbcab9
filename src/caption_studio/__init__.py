"""Generate, edit and burn in video captions."""

__version__ = "0.1.0"
