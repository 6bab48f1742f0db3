"""Lightning Out auth server.

OAuth backend that lets an external web page embed Salesforce Lightning
Web Components through Lightning Out.
"""

from .app import create_app
from .config import ServerConfig, get_config

__version__ = "0.1.0"

__all__ = ["ServerConfig", "create_app", "get_config"]
