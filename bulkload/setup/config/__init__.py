from .loader import ConfigLoader, get_config_loader
from .models import DatabaseConfig, PoolConfig, ProcessorConfig, ProcessorOptions
from .profiles import get_processing_defaults

__all__ = [
    "ConfigLoader",
    "get_config_loader",
    "DatabaseConfig",
    "PoolConfig",
    "ProcessorConfig",
    "ProcessorOptions",
    "get_processing_defaults",
]
