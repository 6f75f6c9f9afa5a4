from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

import jieba

from .lock import ReadWriteLock

logger = logging.getLogger(__name__)

# jieba logs dictionary loading at DEBUG on its own stderr handler.
jieba.setLogLevel(logging.INFO)

DEFAULT_TERM_WEIGHT = 99999


class Vocabulary:
    """
    Segmenter dictionary shared by every resolution in the process.

    Wraps a private ``jieba.Tokenizer`` so that terms added here never leak into
    the module-level jieba singleton other code may be using. Segmentation runs
    in precise mode with HMM disabled: a run of Han characters the dictionary
    does not know comes back one character at a time instead of being guessed
    into a new word.
    """

    def __init__(self, dictionary_path: Optional[Path] = None, default_weight: int = DEFAULT_TERM_WEIGHT) -> None:
        if dictionary_path is not None:
            self._tokenizer = jieba.Tokenizer(dictionary=str(dictionary_path))
        else:
            self._tokenizer = jieba.Tokenizer()
        self._tokenizer.initialize()
        self._default_weight = default_weight
        self._lock = ReadWriteLock()
        # term -> frequency it had in the base dictionary before we overrode it (None if absent)
        self._overrides: dict[str, Optional[int]] = {}

    def segment(self, text: str) -> list[str]:
        with self._lock.read():
            return list(self._tokenizer.cut(text, HMM=False))

    def add_term(self, term: str, weight: Optional[int] = None) -> None:
        term = term.strip()
        if not term:
            return
        with self._lock.write():
            self._add_locked(term, weight)

    def load_terms(self, terms: Iterable[str], weight: Optional[int] = None) -> int:
        """Add many terms under a single write lock; returns how many were applied."""
        cleaned = [term.strip() for term in terms if term and term.strip()]
        with self._lock.write():
            for term in cleaned:
                self._add_locked(term, weight)
        return len(cleaned)

    def remove_term(self, term: str) -> None:
        term = term.strip()
        with self._lock.write():
            if term not in self._overrides:
                return
            self._set_freq_locked(term, self._overrides.pop(term))
        logger.debug("Retracted vocabulary term %s", term)

    def _add_locked(self, term: str, weight: Optional[int]) -> None:
        if term not in self._overrides:
            self._overrides[term] = self._tokenizer.FREQ.get(term) or None
        self._set_freq_locked(term, weight or self._default_weight)

    def _set_freq_locked(self, term: str, freq: Optional[int]) -> None:
        # jieba adds the new frequency to its running total without taking the old one off
        self._tokenizer.total -= self._tokenizer.FREQ.get(term, 0)
        if freq:
            self._tokenizer.add_word(term, freq=freq)
        else:
            self._tokenizer.del_word(term)

    def __contains__(self, term: object) -> bool:
        with self._lock.read():
            return term in self._overrides

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._overrides)
