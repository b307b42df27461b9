"""SQLAlchemyDocumentRepository against an in-memory SQLite database."""

from contextlib import asynccontextmanager

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.domain.entities import DocumentCategory, DocumentEnvelope, DocumentVersion
from app.domain.exceptions import EnvelopeNotFoundError
from app.infrastructure.database import Base
from app.infrastructure.database.models import DocumentEnvelopeModel, DocumentVersionModel
from app.infrastructure.database.repositories import SQLAlchemyDocumentRepository


@asynccontextmanager
async def repository_session():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(
            Base.metadata.create_all,
            tables=[DocumentEnvelopeModel.__table__, DocumentVersionModel.__table__],
        )
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        async with factory() as session:
            yield SQLAlchemyDocumentRepository(session)
    finally:
        await engine.dispose()


def envelope(owner="alice", **kwargs) -> DocumentEnvelope:
    return DocumentEnvelope(workspace_id="ws-1", owner_id=owner, title="Weekly sync", **kwargs)


@pytest.mark.asyncio
async def test_envelope_round_trip():
    async with repository_session() as repo:
        created = await repo.create_envelope(envelope(topics=["pricing"], category=DocumentCategory.RAW))

        loaded = await repo.get_envelope(created.id)

        assert loaded.id == created.id
        assert loaded.topics == ["pricing"]
        assert loaded.category is DocumentCategory.RAW
        assert loaded.current_published_version_id is None
        assert await repo.get_envelope("missing") is None


@pytest.mark.asyncio
async def test_caller_chosen_id_and_topic_updates_survive_commit():
    async with repository_session() as repo:
        created = await repo.create_envelope(envelope(id="call-2026-10-12", category=DocumentCategory.RAW))
        await repo.commit()

        created.topics = ["pricing", "roadmap"]
        await repo.update_envelope(created)
        await repo.commit()

        loaded = await repo.get_envelope("call-2026-10-12")
        assert created.id == "call-2026-10-12"
        assert loaded.topics == ["pricing", "roadmap"]


@pytest.mark.asyncio
async def test_update_envelope_persists_pointer_and_flags():
    async with repository_session() as repo:
        created = await repo.create_envelope(envelope())
        created.point_to("version-1")
        created.set_searchable(True)
        created.rename("Renamed")

        updated = await repo.update_envelope(created)

        assert updated.current_published_version_id == "version-1"
        assert updated.is_searchable is True
        assert updated.title == "Renamed"


@pytest.mark.asyncio
async def test_update_of_missing_envelope_raises():
    async with repository_session() as repo:
        ghost = envelope()
        ghost.id = "ghost"
        with pytest.raises(EnvelopeNotFoundError):
            await repo.update_envelope(ghost)


@pytest.mark.asyncio
async def test_versions_are_ordered_and_numbered():
    async with repository_session() as repo:
        env = await repo.create_envelope(envelope())
        assert await repo.latest_version_number(env.id) == 0

        for number in (2, 1, 3):
            await repo.create_version(
                DocumentVersion(
                    envelope_id=env.id,
                    content=f"v{number}",
                    version_number=number,
                    created_by="alice",
                    metadata={"source": "upload"},
                )
            )

        versions = await repo.list_versions(env.id)
        assert [v.version_number for v in versions] == [1, 2, 3]
        assert versions[0].metadata == {"source": "upload"}
        assert await repo.latest_version_number(env.id) == 3
        assert (await repo.get_version(versions[1].id)).content == "v2"


@pytest.mark.asyncio
async def test_searchable_ids_need_flag_and_published_pointer():
    async with repository_session() as repo:
        draft = await repo.create_envelope(envelope(is_searchable=True))
        hidden = await repo.create_envelope(envelope(current_published_version_id="v"))
        visible = await repo.create_envelope(envelope(is_searchable=True, current_published_version_id="v"))
        await repo.create_envelope(envelope(owner="bob", is_searchable=True, current_published_version_id="v"))

        ids = await repo.list_searchable_document_ids("alice")

        assert ids == [visible.id]
        assert draft.id not in ids and hidden.id not in ids


@pytest.mark.asyncio
async def test_list_envelopes_filters_by_owner_workspace_and_category():
    async with repository_session() as repo:
        await repo.create_envelope(envelope())
        raw = await repo.create_envelope(envelope(category=DocumentCategory.RAW))
        await repo.create_envelope(envelope(owner="bob"))

        assert len(await repo.list_envelopes("alice")) == 2
        assert [e.id for e in await repo.list_envelopes("alice", category=DocumentCategory.RAW)] == [raw.id]
        assert await repo.list_envelopes("alice", workspace_id="ws-2") == []
        assert len(await repo.list_envelopes("alice", limit=1)) == 1


@pytest.mark.asyncio
async def test_delete_versions_then_envelope():
    async with repository_session() as repo:
        env = await repo.create_envelope(envelope())
        for number in (1, 2):
            await repo.create_version(
                DocumentVersion(envelope_id=env.id, content="x", version_number=number, created_by="alice")
            )

        assert await repo.delete_versions(env.id) == 2
        assert await repo.delete_envelope(env.id) is True
        assert await repo.delete_envelope(env.id) is False
        assert await repo.list_versions(env.id) == []
