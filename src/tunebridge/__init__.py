"""TuneBridge - cross-platform music link resolution."""

__version__ = "0.1.0"
