"""TCP forward and reverse proxy with per-port statistics and a terminal dashboard."""

__version__ = "0.1.0"
__all__ = ["__version__"]