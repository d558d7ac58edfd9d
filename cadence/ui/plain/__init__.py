from .interface import PlainUI

__all__ = ["PlainUI"]
