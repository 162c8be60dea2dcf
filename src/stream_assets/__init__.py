"""Stream Assets - video asset compatibility and conversion service."""

__version__ = "0.1.0"
