"""
Copy-on-write message store.

:class:`MessageStore` maps message ids to :class:`MessageRecord` objects. It
is never modified in place: ``with_added`` and ``with_replaced`` return a new
store and leave the original untouched, so a reader holding a store always
sees a consistent snapshot. Records are never removed.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Iterator, Mapping

from branchchat.errors import DuplicateMessageError, MessageNotFoundError
from branchchat.logging import get_logger
from branchchat.tree.models import MessageRecord

logger = get_logger("tree.store")

# Fields that may be filled in after a record was created.
_PATCHABLE_FIELDS = frozenset({"content", "reasoning_content"})


class MessageStore(Mapping[str, MessageRecord]):
    """Immutable id -> record mapping. Iteration follows insertion order."""

    __slots__ = ("_records",)

    def __init__(self, records: Iterable[MessageRecord] = ()) -> None:
        by_id: dict[str, MessageRecord] = {}
        for record in records:
            if record.id in by_id:
                raise DuplicateMessageError(record.id)
            by_id[record.id] = record
        self._records = by_id

    @classmethod
    def _from_dict(cls, by_id: dict[str, MessageRecord]) -> MessageStore:
        store = cls.__new__(cls)
        store._records = by_id
        return store

    # ------------------------------------------------------------------
    # Mapping protocol
    # ------------------------------------------------------------------

    def __getitem__(self, message_id: str) -> MessageRecord:
        try:
            return self._records[message_id]
        except KeyError:
            raise MessageNotFoundError(message_id) from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._records

    def __repr__(self) -> str:
        return f"MessageStore({len(self._records)} records)"

    def get(self, message_id: str, default: MessageRecord | None = None) -> MessageRecord | None:  # type: ignore[override]
        """Return the record for *message_id*, or *default* if absent."""
        return self._records.get(message_id, default)

    def records(self) -> list[MessageRecord]:
        """All records in insertion order."""
        return list(self._records.values())

    # ------------------------------------------------------------------
    # Copy-on-write updates
    # ------------------------------------------------------------------

    def with_added(self, record: MessageRecord) -> MessageStore:
        """
        Return a new store that also holds *record*.

        Raises:
            DuplicateMessageError: the id is already taken.
            MessageNotFoundError: ``record.parent_id`` names no existing record.
        """
        if record.id in self._records:
            raise DuplicateMessageError(record.id)
        if record.parent_id is not None and record.parent_id not in self._records:
            raise MessageNotFoundError(record.parent_id)

        by_id = dict(self._records)
        by_id[record.id] = record
        logger.debug("Added %s message %s (parent=%s)", record.role, record.id, record.parent_id)
        return MessageStore._from_dict(by_id)

    def with_replaced(self, message_id: str, **patch: str | None) -> MessageStore:
        """
        Return a new store where *message_id* has ``content`` and/or
        ``reasoning_content`` replaced.

        Raises:
            MessageNotFoundError: *message_id* is not in the store.
            ValueError: the patch names a field other than the text fields.
        """
        current = self._records.get(message_id)
        if current is None:
            raise MessageNotFoundError(message_id)

        unknown = set(patch) - _PATCHABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot patch fields: {', '.join(sorted(unknown))}")

        by_id = dict(self._records)
        by_id[message_id] = dataclasses.replace(current, **patch)
        return MessageStore._from_dict(by_id)
