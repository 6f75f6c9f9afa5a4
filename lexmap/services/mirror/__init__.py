from .mirror import MIRROR_ERRORS, IndexMirror

__all__ = ["IndexMirror", "MIRROR_ERRORS"]
