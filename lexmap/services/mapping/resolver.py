from __future__ import annotations

import logging

from lexmap.core.errors import InputValidationError
from lexmap.core.models import Resolution
from lexmap.services.storage import CatalogStorage
from lexmap.services.vocabulary import Vocabulary

logger = logging.getLogger(__name__)

_SEPARATOR = "_"


class LexicalResolver:
    """Maps a free-form phrase to an identifier built from word root abbreviations."""

    def __init__(self, vocabulary: Vocabulary, storage: CatalogStorage) -> None:
        self.vocabulary = vocabulary
        self.storage = storage

    def resolve(self, phrase: str) -> Resolution:
        """
        Segment ``phrase`` and look every token up in the catalog.

        A matched token contributes the root's abbreviation; an unmatched one is
        kept verbatim in brackets (``[token]``) and listed in ``missing``, so
        ``价格猫咪`` resolves to ``PRC_[猫咪]`` when only 价格 is known.
        Blocking: call from a worker thread inside the event loop.
        """
        if not phrase or not phrase.strip():
            raise InputValidationError("phrase must not be empty")

        parts: list[str] = []
        missing: list[str] = []
        matched_ids: list[int] = []
        tokens: list[str] = []

        for raw in self.vocabulary.segment(phrase.strip()):
            token = raw.strip()
            if not token:
                continue
            tokens.append(token)
            root = self.storage.find_root_for_token(token)
            if root is not None:
                parts.append(root.en_abbr)
                matched_ids.append(root.id)
            else:
                parts.append(f"[{token}]")
                missing.append(token)

        if missing:
            logger.debug("Unresolved tokens for %r: %s", phrase, missing)
        return Resolution(
            identifier=_SEPARATOR.join(parts),
            missing=missing,
            matched_ids=matched_ids,
            tokens=tokens,
        )
