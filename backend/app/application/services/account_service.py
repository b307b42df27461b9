"""Account service — erases everything an owner has stored."""

from app.application.interfaces.document_repository import DocumentRepository
from app.application.services.envelope_locks import EnvelopeLockRegistry
from app.application.services.index_namespace_manager import IndexNamespaceManager
from app.infrastructure.logging.colored_logger import PipelineLogger, PipelineStage

plog = PipelineLogger("AccountService")

_PAGE_SIZE = 100


class AccountService:
    def __init__(
        self,
        repository: DocumentRepository,
        index_manager: IndexNamespaceManager,
        locks: EnvelopeLockRegistry,
    ):
        self._repository = repository
        self._index = index_manager
        self._locks = locks

    async def erase_owner(self, owner_id: str) -> tuple[int, bool]:
        """Delete all of an owner's documents, then drop their namespace.

        The namespace drop is best-effort; its outcome is returned rather
        than raised.

        Returns:
            ``(documents_deleted, namespace_deleted)``.
        """
        deleted = 0
        while True:
            envelopes = await self._repository.list_envelopes(owner_id, limit=_PAGE_SIZE)
            if not envelopes:
                break
            page_deleted = 0
            for envelope in envelopes:
                async with self._locks.deleting(envelope.id):
                    await self._repository.delete_versions(envelope.id)
                    if await self._repository.delete_envelope(envelope.id):
                        page_deleted += 1
                    await self._repository.commit()
            deleted += page_deleted
            if not page_deleted:
                break

        namespace_deleted = await self._index.delete_namespace(owner_id)
        plog.step_complete(
            PipelineStage.DELETE,
            f"Erased owner {owner_id}",
            documents=deleted,
            namespace_deleted=namespace_deleted,
        )
        return deleted, namespace_deleted
