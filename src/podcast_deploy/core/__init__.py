"""Core configuration for the deployment engine."""
