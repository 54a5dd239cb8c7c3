from .loader import load_config
from .models import (
    OutputConfig,
    SnapshotConfig,
    StrataConfig,
)

__all__ = [
    "OutputConfig",
    "SnapshotConfig",
    "StrataConfig",
    "load_config",
]
