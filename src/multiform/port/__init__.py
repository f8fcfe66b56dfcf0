from .provider import BaseProvider

__all__ = ["BaseProvider"]
