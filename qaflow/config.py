"""
Centralized Configuration
=========================
Configuration values for qaflow runs.

This module provides:
- Tracing configuration
- Runner defaults (output root, file-exchange polling, logging level)
- Review defaults (which reviewer the CLI wires in)

All values are read from the environment once, at import time.
"""

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class TracingConfig:
    """Tracing configuration."""

    SERVICE_NAME: str = "qaflow"
    OTLP_ENDPOINT: str = os.getenv("OTLP_ENDPOINT", "http://localhost:4318/v1/traces")
    ENABLED: bool = os.getenv("ENABLE_TRACING", "false").lower() == "true"


@dataclass(frozen=True)
class RunnerConfig:
    """Process runner configuration."""

    # Root folder for run records when the CLI is not given --output-dir
    OUTPUT_ROOT: str = os.getenv("QAFLOW_OUTPUT_ROOT", "qaflow-runs")

    # Seconds between checks for an agent's result.json
    POLL_INTERVAL: float = float(os.getenv("QAFLOW_POLL_INTERVAL", "2.0"))

    # Seconds to wait for a file-exchange lock
    LOCK_TIMEOUT: float = float(os.getenv("QAFLOW_LOCK_TIMEOUT", "30"))

    LOG_LEVEL: str = os.getenv("QAFLOW_LOG_LEVEL", "INFO").upper()


@dataclass(frozen=True)
class ReviewConfig:
    """Human review configuration."""

    # One of: auto, console, file
    MODE: str = os.getenv("QAFLOW_REVIEW_MODE", "auto").lower()


# Global singleton instances
TRACING = TracingConfig()
RUNNER = RunnerConfig()
REVIEW = ReviewConfig()
