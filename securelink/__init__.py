"""
securelink Python Package

Time- and use-limited delivery links with license bindings and access logs.
"""

__version__ = "0.1.0"

from .core.config import Config
from .links.engine import LinkEngine
from .links.sweeper import ReclamationSweeper
from .licensing.bindings import BindingManager
from .audit.access_log import AccessLogger
from .store.factory import create_store
from .server.app import create_app

__all__ = [
    "Config",
    "LinkEngine",
    "ReclamationSweeper",
    "BindingManager",
    "AccessLogger",
    "create_store",
    "create_app",
]
