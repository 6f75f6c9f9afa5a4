from unittest.mock import MagicMock

import pytest

from lexmap.core.errors import CatalogUnavailableError, InputValidationError
from lexmap.services.mapping import LexicalResolver

from .conftest import root


def test_resolves_known_tokens(resolver, seeded):
    result = resolver.resolve("价格日期")
    assert result.identifier == "PRC_DT"
    assert result.missing == []
    assert result.matched_ids == [seeded["price"].id, seeded["date"].id]
    assert result.tokens == ["价格", "日期"]


def test_unknown_token_is_bracketed_and_reported(resolver, seeded):
    result = resolver.resolve("价格猫咪")
    assert result.identifier == "PRC_[猫咪]"
    assert result.missing == ["猫咪"]
    assert result.matched_ids == [seeded["price"].id]


def test_synonym_resolves_to_root(resolver, seeded):
    assert resolver.resolve("费用日期").identifier == "PRC_DT"


def test_whitespace_tokens_are_skipped(resolver, seeded):
    result = resolver.resolve("  价格 日期 ")
    assert result.identifier == "PRC_DT"
    assert result.tokens == ["价格", "日期"]


def test_unknown_characters_fall_back_one_by_one(resolver, seeded):
    result = resolver.resolve("价格折扣")
    assert result.identifier == "PRC_[折]_[扣]"
    assert result.missing == ["折", "扣"]


def test_exact_name_beats_synonym(resolver, storage, vocabulary):
    storage.insert_root(root("金额", "AMT", associated_terms="价格"))
    storage.insert_root(root("价格", "PRC"))
    vocabulary.load_terms(["金额", "价格"])
    assert resolver.resolve("价格").identifier == "PRC"


def test_resolution_is_deterministic(resolver, seeded):
    first = resolver.resolve("价格猫咪日期")
    assert all(resolver.resolve("价格猫咪日期") == first for _ in range(5))


@pytest.mark.parametrize("phrase", ["", "   ", "\t\n"])
def test_empty_phrase_rejected_before_store_access(vocabulary, phrase):
    storage = MagicMock()
    with pytest.raises(InputValidationError):
        LexicalResolver(vocabulary, storage).resolve(phrase)
    storage.find_root_for_token.assert_not_called()


def test_catalog_failure_propagates(vocabulary):
    storage = MagicMock()
    storage.find_root_for_token.side_effect = CatalogUnavailableError("catalog unavailable")
    with pytest.raises(CatalogUnavailableError):
        LexicalResolver(vocabulary, storage).resolve("价格")


def test_synonyms_match_on_word_boundaries(resolver, storage, vocabulary):
    storage.insert_root(root("金额", "AMT", associated_terms="费 价格"))
    vocabulary.load_terms(["金额"])
    assert resolver.resolve("费").identifier == "AMT"
    result = resolver.resolve("费用")
    assert result.identifier == "[费用]"
    assert result.missing == ["费用"]


@pytest.mark.parametrize("phrase", ["价格日期", "价格猫咪", "猫咪 折扣", "费用价格日期"])
def test_every_token_is_matched_or_missing(resolver, seeded, phrase):
    result = resolver.resolve(phrase)
    assert len(result.matched_ids) + len(result.missing) == len(result.tokens)
