from .engine import SearchEngine

__all__ = ["SearchEngine"]
