from .resolver import LexicalResolver

__all__ = ["LexicalResolver"]
