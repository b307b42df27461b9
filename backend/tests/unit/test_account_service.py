"""Unit tests for owner erasure."""

import pytest

from conftest import make_index_manager

from app.application.services import AccountService
from app.domain.exceptions import IndexBackendError
from app.infrastructure.vector_index import InMemoryVectorIndex


class UndroppableIndex(InMemoryVectorIndex):
    async def delete_namespace(self, namespace):
        raise IndexBackendError("fake", "delete_namespace", "down")


async def seed(document_service, owner, count):
    for i in range(count):
        await document_service.create_document(
            owner, "ws-1", f"Doc {i}", f"{owner} note {i}", is_searchable=True, publish=True
        )


@pytest.mark.asyncio
async def test_erase_owner_removes_documents_and_namespace(
    document_service, repository, index_manager, vector_index, locks
):
    await seed(document_service, "alice", 3)
    await seed(document_service, "bob", 1)

    deleted, namespace_deleted = await AccountService(repository, index_manager, locks).erase_owner("alice")

    assert (deleted, namespace_deleted) == (3, True)
    assert {e.owner_id for e in repository.envelopes.values()} == {"bob"}
    assert {v.envelope_id for v in repository.versions.values()} <= set(repository.envelopes)
    assert vector_index.namespaces() == ["owner-bob"]


@pytest.mark.asyncio
async def test_erase_pages_through_many_documents(document_service, repository, index_manager, locks):
    await seed(document_service, "alice", 105)

    deleted, _ = await AccountService(repository, index_manager, locks).erase_owner("alice")

    assert deleted == 105
    assert repository.envelopes == {}


@pytest.mark.asyncio
async def test_erase_commits_each_delete_and_leaves_no_lock_state(
    document_service, repository, index_manager, locks
):
    await seed(document_service, "alice", 2)
    envelope_ids = list(repository.envelopes)
    commits_before = repository.commits

    await AccountService(repository, index_manager, locks).erase_owner("alice")

    assert repository.commits - commits_before == 2
    assert not any(locks.is_deleted(i) or locks.is_tracked(i) for i in envelope_ids)


@pytest.mark.asyncio
async def test_erase_owner_with_nothing_stored(repository, index_manager, locks):
    assert await AccountService(repository, index_manager, locks).erase_owner("nobody") == (0, True)


@pytest.mark.asyncio
async def test_namespace_failure_is_reported_not_raised(document_service, repository, embedder, locks):
    await seed(document_service, "alice", 2)
    manager = make_index_manager(embedder, UndroppableIndex(), max_attempts=1)

    deleted, namespace_deleted = await AccountService(repository, manager, locks).erase_owner("alice")

    assert deleted == 2
    assert namespace_deleted is False
    assert repository.envelopes == {}
