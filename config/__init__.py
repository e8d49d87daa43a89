"""Configuration package for the Whisper TFLite transcriber."""

from config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
