# src/podcast_deploy/models/__init__.py
"""SQLAlchemy models for the deployment engine."""

from .deploy_run import DeployRun, RunStatus
from .destination import Destination, DestinationMode

__all__ = [
    "Destination", "DestinationMode",
    "DeployRun", "RunStatus",
]
