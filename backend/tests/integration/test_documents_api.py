"""API tests for documents, ingestion, query and account erasure.

Services are wired to the in-memory fakes from conftest through
``app.dependency_overrides``; no database or network is touched.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from conftest import make_ingestion, webvtt

from app.application.services import AccountService, DocumentService
from app.infrastructure.dependencies import (
    get_account_service,
    get_document_service,
    get_retrieval_service,
)
from app.infrastructure.storage.local_blob_store import LocalBlobStore
from app.main import app

ALICE = {"X-Owner-Id": "alice"}
BOB = {"X-Owner-Id": "bob"}


@pytest.fixture
def wired(document_service, retrieval_service, repository, index_manager, locks, vector_index):
    """Route every service dependency to the in-memory fakes."""
    app.dependency_overrides[get_document_service] = lambda: document_service
    app.dependency_overrides[get_retrieval_service] = lambda: retrieval_service
    app.dependency_overrides[get_account_service] = lambda: AccountService(repository, index_manager, locks)
    yield vector_index
    app.dependency_overrides.clear()


def client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


async def create_document(http: AsyncClient, headers=ALICE, **overrides) -> dict:
    body = {
        "workspace_id": "ws-1",
        "title": "Weekly sync",
        "content": webvtt(4, words="budget review"),
        "document_type": "transcript",
        "is_searchable": True,
    }
    body.update(overrides)
    response = await http.post("/api/v1/documents", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


# ── Identity ─────────────────────────────────────────────────────────


@pytest.mark.asyncio
@pytest.mark.parametrize("headers", [{}, {"X-Owner-Id": "  "}])
async def test_missing_owner_header_is_unauthorized(wired, headers):
    async with client() as http:
        response = await http.get("/api/v1/documents", headers=headers)
    assert response.status_code == 401


# ── Documents ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_returns_draft_envelope_and_first_version(wired):
    async with client() as http:
        created = await create_document(http)

    assert created["document"]["state"] == "draft_only"
    assert created["document"]["owner_id"] == "alice"
    assert created["version"]["version_number"] == 1
    assert created["publish"] is None
    assert wired.namespaces() == []


@pytest.mark.asyncio
async def test_publish_then_query(wired):
    async with client() as http:
        created = await create_document(http)
        doc_id = created["document"]["id"]

        published = await http.post(
            f"/api/v1/documents/{doc_id}/publish",
            json={"version_id": created["version"]["id"]},
            headers=ALICE,
        )
        query = await http.post("/api/v1/query", json={"text": "budget review"}, headers=ALICE)

    assert published.status_code == 200
    assert published.json()["indexing"]["indexed_chunk_ids"] == [f"{doc_id}-chunk-0"]
    assert query.status_code == 200
    body = query.json()
    assert body["total_matches"] == 1
    assert body["matches"][0]["document_id"] == doc_id
    assert body["matches"][0]["metadata"]["start_time"] == 0.0


@pytest.mark.asyncio
async def test_versions_and_title(wired):
    async with client() as http:
        created = await create_document(http, publish=True)
        doc_id = created["document"]["id"]

        draft = await http.post(
            f"/api/v1/documents/{doc_id}/versions", json={"content": "Ada: later edit"}, headers=ALICE
        )
        versions = await http.get(f"/api/v1/documents/{doc_id}/versions", headers=ALICE)
        renamed = await http.patch(f"/api/v1/documents/{doc_id}", json={"title": "Renamed"}, headers=ALICE)

    assert draft.status_code == 201
    assert [v["version_number"] for v in versions.json()] == [1, 2]
    assert renamed.json()["title"] == "Renamed"
    assert renamed.json()["current_published_version_id"] == created["version"]["id"]


@pytest.mark.asyncio
async def test_other_owner_gets_404(wired):
    async with client() as http:
        created = await create_document(http)
        doc_id = created["document"]["id"]

        read = await http.get(f"/api/v1/documents/{doc_id}", headers=BOB)
        delete = await http.delete(f"/api/v1/documents/{doc_id}", headers=BOB)
        listing = await http.get("/api/v1/documents", headers=BOB)

    assert read.status_code == 404
    assert delete.status_code == 404
    assert listing.json() == []


@pytest.mark.asyncio
async def test_publishing_unknown_version_is_404(wired):
    async with client() as http:
        created = await create_document(http)
        response = await http.post(
            f"/api/v1/documents/{created['document']['id']}/publish",
            json={"version_id": "nope"},
            headers=ALICE,
        )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_searchable_toggle_and_unpublish(wired):
    async with client() as http:
        created = await create_document(http, publish=True)
        doc_id = created["document"]["id"]

        off = await http.patch(f"/api/v1/documents/{doc_id}/searchable", json={"is_searchable": False}, headers=ALICE)
        assert wired.records("owner-alice") == []
        on = await http.patch(f"/api/v1/documents/{doc_id}/searchable", json={"is_searchable": True}, headers=ALICE)
        assert wired.records("owner-alice")
        unpublished = await http.post(f"/api/v1/documents/{doc_id}/unpublish", headers=ALICE)

    assert off.status_code == 200 and off.json() is None
    assert on.json()["chunk_count"] == 1
    assert unpublished.json()["state"] == "draft_only"
    assert wired.records("owner-alice") == []


@pytest.mark.asyncio
async def test_delete_document(wired):
    async with client() as http:
        created = await create_document(http, publish=True)
        doc_id = created["document"]["id"]

        deleted = await http.delete(f"/api/v1/documents/{doc_id}", headers=ALICE)
        missing = await http.get(f"/api/v1/documents/{doc_id}", headers=ALICE)

    assert deleted.status_code == 204
    assert missing.status_code == 404
    assert wired.records("owner-alice") == []


# ── Ingest ───────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_ingest_dry_run_returns_chunks(wired):
    async with client() as http:
        response = await http.post(
            "/api/v1/ingest",
            json={"source_document_id": "call-1", "raw_text": webvtt(12), "chunk_size": 5, "dry_run": True},
            headers=ALICE,
        )

    body = response.json()
    assert response.status_code == 200
    assert body["dry_run"] is True
    assert [(c["start_sequence"], c["end_sequence"]) for c in body["chunks"]] == [(0, 4), (5, 9), (10, 11)]
    assert wired.namespaces() == []


@pytest.mark.asyncio
async def test_ingest_and_retry(wired):
    async with client() as http:
        ingested = await http.post(
            "/api/v1/ingest",
            json={"source_document_id": "call-1", "raw_text": webvtt(12), "chunk_size": 5},
            headers=ALICE,
        )
        retried = await http.post(
            "/api/v1/ingest/retry",
            json={"source_document_id": "call-1", "chunk_ids": ["call-1-chunk-2"]},
            headers=ALICE,
        )
        foreign = await http.post(
            "/api/v1/ingest/retry",
            json={"source_document_id": "call-1", "chunk_ids": ["call-1-chunk-2"]},
            headers=BOB,
        )

    assert ingested.json()["indexed_chunk_ids"] == ["call-1-chunk-0", "call-1-chunk-1", "call-1-chunk-2"]
    assert ingested.json()["chunks"] == []
    assert retried.json()["indexed_chunk_ids"] == ["call-1-chunk-2"]
    assert foreign.status_code == 404


@pytest.mark.asyncio
async def test_ingested_transcript_is_listed_and_queryable(wired):
    async with client() as http:
        ingested = await http.post(
            "/api/v1/ingest",
            json={
                "source_document_id": "call-1",
                "raw_text": webvtt(3, words="budget review"),
                "title": "Budget call",
            },
            headers=ALICE,
        )
        listed = await http.get("/api/v1/documents", headers=ALICE)
        query = await http.post("/api/v1/query", json={"text": "budget review"}, headers=ALICE)
        bobs_query = await http.post("/api/v1/query", json={"text": "budget review"}, headers=BOB)

    assert ingested.status_code == 200
    assert [(d["id"], d["title"], d["category"]) for d in listed.json()] == [("call-1", "Budget call", "raw")]
    assert {m["document_id"] for m in query.json()["matches"]} == {"call-1"}
    assert bobs_query.json()["total_matches"] == 0


@pytest.mark.asyncio
async def test_ingest_into_another_owners_document_is_404(wired):
    async with client() as http:
        body = {"source_document_id": "call-1", "raw_text": webvtt(2)}
        await http.post("/api/v1/ingest", json=body, headers=ALICE)
        response = await http.post("/api/v1/ingest", json=body, headers=BOB)

    assert response.status_code == 404
    assert wired.namespaces() == ["owner-alice"]


@pytest.mark.asyncio
async def test_ingest_with_invalid_chunk_size_is_422(wired):
    async with client() as http:
        response = await http.post(
            "/api/v1/ingest",
            json={"source_document_id": "call-1", "raw_text": "Ada: hi", "chunk_size": 0},
            headers=ALICE,
        )
    assert response.status_code == 422


# ── Account ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_erase_account(wired):
    async with client() as http:
        await create_document(http, publish=True)
        await create_document(http, publish=True)
        await create_document(http, headers=BOB, publish=True)

        response = await http.delete("/api/v1/account", headers=ALICE)
        bobs = await http.get("/api/v1/documents", headers=BOB)

    assert response.json() == {"documents_deleted": 2, "namespace_deleted": True}
    assert len(bobs.json()) == 1
    assert wired.namespaces() == ["owner-bob"]


@pytest.mark.asyncio
async def test_upload_stores_and_ingests(wired, repository, index_manager, locks, tmp_path):
    ingestion = make_ingestion(index_manager, blob_store=LocalBlobStore(str(tmp_path)))
    app.dependency_overrides[get_document_service] = lambda: DocumentService(
        repository, ingestion, index_manager, locks
    )
    async with client() as http:
        response = await http.post(
            "/api/v1/ingest/upload",
            files={"file": ("call.vtt", webvtt(12).encode(), "application/octet-stream")},
            data={"source_document_id": "call-1", "chunk_size": "5", "topics": "status, budget"},
            headers=ALICE,
        )

    assert response.status_code == 200, response.text
    body = response.json()
    assert (tmp_path / body["reference"]).is_file()
    assert body["result"]["chunk_count"] == 3
    assert {r.topic for r in wired.records("owner-alice")} == {"status"}
