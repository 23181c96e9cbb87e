"""Host metrics collector with an HTTP query API."""
from importlib.metadata import PackageNotFoundError, version

from .api import create_app

__all__ = ["create_app", "__version__"]

try:
    __version__ = version("metrics-monitor")
except PackageNotFoundError:  # pragma: no cover - running from a source checkout
    __version__ = "0.1.0"
