from .lock import ReadWriteLock
from .vocabulary import DEFAULT_TERM_WEIGHT, Vocabulary

__all__ = ["DEFAULT_TERM_WEIGHT", "ReadWriteLock", "Vocabulary"]
