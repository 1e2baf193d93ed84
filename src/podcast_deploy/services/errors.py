# src/podcast_deploy/services/errors.py
"""Exceptions shared by the deployment services."""

from __future__ import annotations


class DeployError(RuntimeError):
    """Base exception raised for deployment failures."""


class ConfigurationError(DeployError):
    """Raised when a destination config is missing or has invalid fields."""


class DestinationNotFound(DeployError):
    """Raised when a destination id does not resolve to a stored destination."""

    def __init__(self, destination_id: str) -> None:
        super().__init__(f"Destination not found: {destination_id}")
        self.destination_id = destination_id


class DestinationModeChangeError(DeployError):
    """Raised when an update tries to change a destination's mode."""


class PathEscapeError(DeployError):
    """Raised when a local source file resolves outside its allowed root."""


__all__ = [
    "ConfigurationError",
    "DeployError",
    "DestinationModeChangeError",
    "DestinationNotFound",
    "PathEscapeError",
]
