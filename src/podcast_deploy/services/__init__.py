# src/podcast_deploy/services/__init__.py
"""Deployment services: vault, destinations, adapters, ledger and orchestration."""

from .destinations import DestinationService
from .errors import (
    ConfigurationError,
    DeployError,
    DestinationModeChangeError,
    DestinationNotFound,
    PathEscapeError,
)
from .ledger import RunAlreadyFinished, RunLedger, RunNotFound
from .orchestrator import DeployOrchestrator
from .vault import CredentialVault, DecryptionFailed, get_vault

__all__ = [
    "ConfigurationError",
    "CredentialVault",
    "DecryptionFailed",
    "DeployError",
    "DeployOrchestrator",
    "DestinationModeChangeError",
    "DestinationNotFound",
    "DestinationService",
    "PathEscapeError",
    "RunAlreadyFinished",
    "RunLedger",
    "RunNotFound",
    "get_vault",
]
