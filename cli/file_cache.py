"""
Local projection of the signed-in user's file list.

Mutations are applied to the projection before the request is sent and are
then either confirmed or rolled back once the server answers, so the listing
shown to the user never waits on the network and never keeps a change the
server refused.
"""

import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

from common.logging_config import get_logger
from common.protocol import FileResponse
from common.types import FileKind

logger = get_logger(__name__)


class MutationState(str, Enum):
    TENTATIVE = "TENTATIVE"
    CONFIRMED = "CONFIRMED"
    ROLLED_BACK = "ROLLED_BACK"


class InvalidTransitionError(Exception):
    """Raised when a mutation that already settled is confirmed or rolled back."""

    pass


@dataclass(frozen=True)
class CachedFile:
    """
    One row of the cached listing.

    Attributes:
        file_id: Server id, or a local placeholder id while an upload is pending
        name: Display name
        kind: IMAGE or PDF
        created_at: Server timestamp (None for placeholders)
        pending: True for rows the server has not acknowledged yet
    """
    file_id: str
    name: str
    kind: FileKind
    created_at: Optional[datetime] = None
    pending: bool = False

    @classmethod
    def from_response(cls, file: FileResponse) -> "CachedFile":
        return cls(file_id=file.id, name=file.name, kind=file.kind, created_at=file.created_at)


@dataclass
class PendingMutation:
    """
    A change applied to the cache ahead of the server's answer.

    Attributes:
        mutation_id: Local identifier used in logs
        operation: "delete" or "upload"
        state: TENTATIVE until confirm() or rollback()
        removed: (position, entry) pairs taken out by a delete
        placeholders: Rows added by an upload
    """
    mutation_id: str
    operation: str
    state: MutationState = MutationState.TENTATIVE
    removed: List[Tuple[int, CachedFile]] = field(default_factory=list)
    placeholders: List[CachedFile] = field(default_factory=list)


class FileListCache:
    """
    Cached listing with tentative mutations.

    State per mutation: TENTATIVE -> CONFIRMED | ROLLED_BACK. Settled
    mutations cannot change state again.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._entries: List[CachedFile] = []
        self._stale = True

    @property
    def is_stale(self) -> bool:
        """True until the first fetch and whenever a mutation leaves the listing out of date."""
        return self._stale

    def entries(self) -> List[CachedFile]:
        with self._lock:
            return list(self._entries)

    def replace(self, files: Iterable[CachedFile]) -> None:
        """Replace the projection with a fresh server listing."""
        with self._lock:
            self._entries = list(files)
            self._stale = False
            logger.debug(f"File cache refreshed [entries={len(self._entries)}]")

    def invalidate(self) -> None:
        """Mark the projection out of date so the next refresh refetches it."""
        with self._lock:
            self._stale = True

    def clear(self) -> None:
        """Forget every entry, e.g. when the user signs out."""
        with self._lock:
            self._entries = []
            self._stale = True

    def begin_delete(self, file_id: str) -> PendingMutation:
        """
        Remove a file from the projection ahead of the delete request.

        The removed row, if any, is remembered with its position so a
        rollback puts it back where it was.
        """
        mutation = PendingMutation(mutation_id=str(uuid.uuid4()), operation="delete")
        with self._lock:
            kept = []
            for position, entry in enumerate(self._entries):
                if entry.file_id == file_id:
                    mutation.removed.append((position, entry))
                else:
                    kept.append(entry)
            self._entries = kept

        logger.debug(
            f"Tentative delete [mutation={mutation.mutation_id}] "
            f"[file_id={file_id}] removed={len(mutation.removed)}"
        )
        return mutation

    def begin_upload(self, items: Sequence[Tuple[str, FileKind]]) -> PendingMutation:
        """
        Append placeholder rows for files about to be uploaded.

        Args:
            items: (name, kind) per uploaded file, in upload order
        """
        mutation = PendingMutation(mutation_id=str(uuid.uuid4()), operation="upload")
        for name, kind in items:
            placeholder = CachedFile(
                file_id=f"pending-{uuid.uuid4()}",
                name=name,
                kind=kind,
                pending=True,
            )
            mutation.placeholders.append(placeholder)

        with self._lock:
            self._entries.extend(mutation.placeholders)

        logger.debug(
            f"Tentative upload [mutation={mutation.mutation_id}] "
            f"placeholders={len(mutation.placeholders)}"
        )
        return mutation

    def confirm(self, mutation: PendingMutation, file_ids: Optional[Sequence[str]] = None) -> None:
        """
        Settle a mutation the server accepted.

        For uploads, placeholders take the ids the server assigned and the
        cache is marked stale so the next listing is fetched from the server.

        Raises:
            InvalidTransitionError: If the mutation already settled
        """
        with self._lock:
            self._transition(mutation, MutationState.CONFIRMED)

            if mutation.operation == "upload":
                placeholder_ids = [p.file_id for p in mutation.placeholders]
                assigned = dict(zip(placeholder_ids, file_ids or placeholder_ids))
                self._entries = [
                    replace(entry, file_id=assigned[entry.file_id], pending=False)
                    if entry.file_id in assigned else entry
                    for entry in self._entries
                ]
                self._stale = True

    def rollback(self, mutation: PendingMutation) -> None:
        """
        Undo a mutation the server refused or never received.

        Raises:
            InvalidTransitionError: If the mutation already settled
        """
        with self._lock:
            self._transition(mutation, MutationState.ROLLED_BACK)

            if mutation.operation == "delete":
                for position, entry in mutation.removed:
                    self._entries.insert(min(position, len(self._entries)), entry)
            elif mutation.operation == "upload":
                placeholder_ids = {p.file_id for p in mutation.placeholders}
                self._entries = [e for e in self._entries if e.file_id not in placeholder_ids]

    def _transition(self, mutation: PendingMutation, target: MutationState) -> None:
        if mutation.state is not MutationState.TENTATIVE:
            raise InvalidTransitionError(
                f"Mutation {mutation.mutation_id} is already {mutation.state.value}"
            )
        mutation.state = target
        logger.debug(f"Mutation {mutation.mutation_id} {mutation.operation} -> {target.value}")
