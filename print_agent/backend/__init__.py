from .api import AuthClient

__all__ = ["AuthClient"]
