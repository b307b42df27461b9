"""Unit tests for reranker selection in dependency wiring."""

import pytest

from app.application.services import PassthroughReranker
from app.config import get_settings
from app.infrastructure.dependencies import get_reranker
from app.infrastructure.voyage import VoyageReranker


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    monkeypatch.delenv("RERANKER_BACKEND", raising=False)
    monkeypatch.delenv("VOYAGE_API_KEY", raising=False)
    get_settings.cache_clear()
    get_reranker.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()
    get_reranker.cache_clear()


def test_disabled_backend_is_passthrough(fresh_settings):
    fresh_settings.setenv("RERANKER_BACKEND", "none")

    assert isinstance(get_reranker(), PassthroughReranker)


def test_voyage_with_key(fresh_settings):
    fresh_settings.setenv("RERANKER_BACKEND", "voyage")
    fresh_settings.setenv("VOYAGE_API_KEY", "vo-test")

    reranker = get_reranker()

    assert isinstance(reranker, VoyageReranker)
    assert reranker.candidate_multiplier == 2


def test_voyage_without_key_falls_back(fresh_settings):
    fresh_settings.setenv("RERANKER_BACKEND", "voyage")
    fresh_settings.setenv("VOYAGE_API_KEY", "")

    assert isinstance(get_reranker(), PassthroughReranker)
