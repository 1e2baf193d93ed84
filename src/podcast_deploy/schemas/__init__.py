# src/podcast_deploy/schemas/__init__.py
"""
Pydantic schemas for destination payloads and deploy results.
"""

from .deploy import DeployEpisode, DeployResult, RunRecord, RunResult, TestResult
from .destination import (
    DestinationCreate,
    DestinationRead,
    DestinationUpdate,
    parse_destination_create,
)

__all__ = [
    "DeployEpisode", "DeployResult", "RunRecord", "RunResult", "TestResult",
    "DestinationCreate", "DestinationRead", "DestinationUpdate",
    "parse_destination_create",
]
