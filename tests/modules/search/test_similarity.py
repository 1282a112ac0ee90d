from __future__ import annotations

import pytest

from dsindex.modules.embeddings import ModelUnavailable
from dsindex.modules.embeddings.errors import EmbeddingProviderRequestError
from dsindex.modules.search import (
    SearchHit,
    SimilaritySearch,
    build_similarity_query,
)
from dsindex.modules.search.similarity import COSINE_SCRIPT


@pytest.fixture
def store(make_store, make_record):
    return make_store(
        [
            make_record("d1", name="Bike lanes"),
            make_record("d2", name="Helmet usage"),
            make_record("d3", name="Parking"),
        ]
    )


@pytest.fixture
def build_search(fake_engine, make_vectorizer, stub_logger, store):
    def _build(**options) -> SimilaritySearch:
        vectorizer = options.pop("vectorizer", None) or make_vectorizer(dim=4)
        return SimilaritySearch(
            fake_engine,
            "datasets",
            vectorizer,
            store,
            logger=stub_logger,
            **options,
        )

    return _build


def test_results_follow_engine_ranking(build_search, fake_engine, store) -> None:
    fake_engine.hits = (SearchHit("d1", 0.91), SearchHit("d2", 0.77))

    results = build_search().find_similar("bicycle safety data")

    assert [(item.record.id, item.score) for item in results] == [
        ("d1", 0.91),
        ("d2", 0.77),
    ]
    assert store.id_lookups == [("d1", "d2")]


def test_query_scores_cosine_against_stored_vectors(
    build_search, fake_engine, stub_provider
) -> None:
    build_search().find_similar("bicycle safety data")

    assert stub_provider.calls == [("bicycle safety data",)]
    body = fake_engine.calls[0][1]
    script_score = body["query"]["script_score"]
    assert script_score["query"] == {"match_all": {}}
    assert script_score["script"]["source"] == COSINE_SCRIPT
    assert script_score["script"]["params"]["query_vector"] == [1.0] * 4
    assert body["size"] == 50


def test_portal_scope_and_cap(build_search, fake_engine) -> None:
    build_search(result_cap=5).find_similar("parks", portal="p2")

    body = fake_engine.calls[0][1]
    assert body["size"] == 5
    assert body["query"]["script_score"]["query"] == {
        "match": {"portal": "p2"}
    }


def test_engine_error_yields_empty_result(
    build_search, fake_engine, store, stub_logger
) -> None:
    fake_engine.fail_search = True

    assert build_search().find_similar("bicycle") == []
    assert store.id_lookups == []
    assert "similar-query-failed" in stub_logger.names("error")


def test_shard_failure_yields_empty_result(
    build_search, fake_engine, store
) -> None:
    fake_engine.hits = (SearchHit("d1", 0.9),)
    fake_engine.shard_failures = ("script_exception",)

    assert build_search().find_similar("bicycle") == []
    assert store.id_lookups == []


def test_no_hits_skip_the_store(build_search, store) -> None:
    assert build_search().find_similar("nothing") == []
    assert store.id_lookups == []


def test_unknown_ids_are_dropped(build_search, fake_engine, stub_logger) -> None:
    fake_engine.hits = (SearchHit("gone", 0.99), SearchHit("d3", 0.5))

    results = build_search().find_similar("parking")

    assert [item.record.id for item in results] == ["d3"]
    assert "similar-unresolved-ids" in stub_logger.names("warning")


def test_unavailable_model_propagates(build_search, make_vectorizer) -> None:
    search = build_search(vectorizer=make_vectorizer(provider="missing"))

    with pytest.raises(ModelUnavailable):
        search.find_similar("bicycle")


def test_provider_request_error_gives_empty_result(
    build_search, fake_engine, stub_provider, stub_logger, monkeypatch
) -> None:
    def _reject(texts, *, model, options):
        raise EmbeddingProviderRequestError(
            "bad request", provider="stub", model=model, status_code=400
        )

    monkeypatch.setattr(stub_provider, "embed_texts", _reject)

    assert build_search().find_similar("bicycle") == []
    assert "similar-embed-failed" in stub_logger.names("error")
    assert "search" not in fake_engine.call_names()


def test_similar_to_record_embeds_its_text(
    build_search, make_record, stub_provider
) -> None:
    record = make_record("d9", name="Trees", description="Street trees")

    build_search().find_similar_to_record(record)

    assert stub_provider.calls == [("Trees. Street trees",)]


def test_cap_must_be_positive(build_search) -> None:
    with pytest.raises(ValueError):
        build_search(result_cap=0)


def test_query_builder_defaults() -> None:
    body = build_similarity_query((0.5, 0.5))

    assert body["size"] == 50
    assert body["query"]["script_score"]["script"]["params"] == {
        "query_vector": [0.5, 0.5]
    }
