from __future__ import annotations

# Runtime package version, taken from the installed distribution metadata.
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version

try:
    __version__ = _pkg_version("destkit")
except PackageNotFoundError:  # pragma: no cover
    # running from a source checkout without an install
    __version__ = "0.0.0"

from .core.config import DestinationConfig
from .runtime.destination import Destination, WriteResult

__all__ = [
    "Destination",
    "DestinationConfig",
    "WriteResult",
    "__version__",
]
