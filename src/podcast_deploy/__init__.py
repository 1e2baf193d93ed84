"""Multi-destination artifact deployment engine for podcasts."""

__version__ = "0.1.0"
