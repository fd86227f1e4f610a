"""
Processing defaults and named environment profiles.

``get_processing_defaults`` sizes a run for the host it executes on;
profiles are bundles of environment variables applied before the loader
reads the environment.
"""

from typing import Any, Dict, List
import os
from enum import Enum

import psutil


class ProfileType(str, Enum):
    """Available configuration profiles."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"
    MEMORY_OPTIMIZED = "memory_optimized"


class ConfigurationProfile:
    """Predefined environment bundles for different scenarios."""

    DEVELOPMENT = {
        "ENVIRONMENT": "development",
        "INGEST_LOG_LEVEL": "debug",
        "INGEST_MAX_CONCURRENT_BATCHES": "3",
        "INGEST_ASYNC_POOL_MAX_SIZE": "5",
    }

    PRODUCTION = {
        "ENVIRONMENT": "production",
        "INGEST_LOG_LEVEL": "info",
        "INGEST_USE_TRANSACTION": "true",
        "INGEST_USE_PG_COPY_STREAM": "true",
        "INGEST_ASYNC_POOL_MAX_SIZE": "20",
    }

    TESTING = {
        "ENVIRONMENT": "testing",
        "INGEST_LOG_LEVEL": "error",
        "INGEST_USE_WORKERS": "false",
        "INGEST_USE_PG_COPY_STREAM": "false",
        "INGEST_ASYNC_POOL_MAX_SIZE": "2",
    }

    # Small batches and few in flight; trades throughput for a flat RSS.
    MEMORY_OPTIMIZED = {
        "INGEST_BATCH_SIZE": "100",
        "INGEST_MAX_CONCURRENT_BATCHES": "2",
        "INGEST_CHUNK_SIZE_LINES": "10000",
    }

    @classmethod
    def get_profile(cls, profile: str) -> Dict[str, str]:
        try:
            return dict(getattr(cls, ProfileType(profile).name))
        except ValueError:
            available = ", ".join(p.value for p in ProfileType)
            raise ValueError(f"Unknown profile '{profile}'. Available: {available}") from None


def apply_profile(profile: str, override_existing: bool = False) -> List[str]:
    """
    Export a profile's variables into ``os.environ``.

    Returns:
        Names of the variables actually set.
    """
    applied = []
    for key, value in ConfigurationProfile.get_profile(profile).items():
        if override_existing or key not in os.environ:
            os.environ[key] = value
            applied.append(key)
    return applied


def get_processing_defaults() -> Dict[str, Any]:
    """
    Processing defaults derived from CPU count and free memory.

    Batch size scales with free memory (one row per 100MB free, between 100
    and 500), worker processes leave one core to the event loop, and the
    in-flight batch cap follows half the cores within [3, 10].
    """
    cpu_count = psutil.cpu_count(logical=True) or os.cpu_count() or 1
    free_mb = psutil.virtual_memory().available // (1024 * 1024)

    return {
        "batch_size": min(500, max(100, int(free_mb // 100))),
        "max_concurrent_batches": min(10, max(3, cpu_count // 2)),
        "use_transaction": True,
        "use_workers": cpu_count > 1,
        "worker_count": max(1, cpu_count - 1),
        "chunk_size_lines": 50000,
        "use_pg_copy_stream": True,
        "log_level": "info",
    }
