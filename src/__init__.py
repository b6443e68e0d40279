"""OmniForge: phased application bootstrapper."""

from omniforge.version import __version__

__all__ = ["__version__"]
