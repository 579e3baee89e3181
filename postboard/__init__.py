"""postboard: posts, reactions and comments against a hosted relational backend."""
from .clients import create_remote_service
from .config import Settings, get_settings
from .services import AppSession

__all__ = ["AppSession", "Settings", "create_remote_service", "get_settings"]

__version__ = "0.1.0"
