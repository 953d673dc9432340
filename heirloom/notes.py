"""
Note ledger: user-authored notes optionally addressed to recipients.

Every recipient id stored on a note belongs to the note's owner. The
ownership check and the write share one transaction, and the referenced
recipient rows are share-locked (on Postgres) until it commits.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from heirloom.contacts import RecipientRecord, to_record
from heirloom.db import Database, NoteRow, RecipientRow, utcnow
from heirloom.errors import ValidationError
from heirloom.partial_update import FieldMap, UpdateOutcome, apply_changes, build_changes

logger = logging.getLogger(__name__)

MAX_NOTE_LENGTH = 10_000

NOTE_FIELDS = FieldMap(
    NoteRow,
    {
        "note": "note",
        "attachment": "attachment",
        "recipientIds": "recipient_ids",
    },
)


@dataclass
class NoteRecord:
    id: int
    user_id: str
    note: str
    attachment: Optional[str]
    recipient_ids: list[int]
    created_at: datetime
    updated_at: datetime
    recipients: list[RecipientRecord] = field(default_factory=list)


def clean_note_body(note: Any) -> str:
    """Return the trimmed body or raise if it is blank or too long."""
    if not isinstance(note, str) or not note.strip():
        raise ValidationError("Note content is required")
    if len(note) > MAX_NOTE_LENGTH:
        raise ValidationError(
            f"Note content is too long (maximum {MAX_NOTE_LENGTH} characters)"
        )
    return note.strip()


def normalize_recipient_ids(recipient_ids: Optional[Iterable[Any]]) -> list[int]:
    """Order-preserving de-duplication; non-integer ids are rejected."""
    if recipient_ids is None:
        return []
    if isinstance(recipient_ids, (str, bytes)) or not isinstance(recipient_ids, Iterable):
        raise ValidationError("recipientIds must be an array")
    seen: dict[int, None] = {}
    for value in recipient_ids:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError("recipientIds must contain integer ids")
        seen.setdefault(value, None)
    return list(seen)


def validate_recipient_ids(
    session: Session, user_id: str, recipient_ids: list[int]
) -> None:
    """
    Check in one query that every id is a recipient owned by ``user_id``;
    any miss rejects the whole write.
    """
    if not recipient_ids:
        return
    owned = set(
        session.execute(
            select(RecipientRow.id)
            .where(RecipientRow.user_id == user_id, RecipientRow.id.in_(recipient_ids))
            .with_for_update(read=True)
        ).scalars()
    )
    invalid = [i for i in recipient_ids if i not in owned]
    if invalid:
        logger.warning(
            "Rejected note write for user %s: foreign recipient ids %s",
            user_id,
            invalid,
        )
        raise ValidationError(
            "One or more recipient IDs are invalid or do not belong to this user",
            details={"invalidRecipientIds": invalid},
        )


class NoteLedger:
    def __init__(self, database: Database):
        self.database = database

    def add(
        self,
        user_id: str,
        note: str,
        attachment: Optional[str] = None,
        recipient_ids: Optional[Iterable[int]] = None,
    ) -> NoteRecord:
        body = clean_note_body(note)
        ids = normalize_recipient_ids(recipient_ids)
        now = utcnow()
        with self.database.transaction() as session:
            validate_recipient_ids(session, user_id, ids)
            row = NoteRow(
                user_id=user_id,
                note=body,
                attachment=attachment,
                recipient_ids=ids,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.flush()
            record = self._with_recipients(session, row)
        logger.info("Added note %s for user %s", record.id, user_id)
        return record

    def update(
        self, note_id: int, user_id: str, partial: Mapping[str, Any]
    ) -> Optional[UpdateOutcome[NoteRecord]]:
        """
        Apply only the supplied fields. Returns None when the note does not
        exist or belongs to someone else.
        """
        changes = build_changes(partial, NOTE_FIELDS)
        if "note" in changes:
            changes["note"] = clean_note_body(changes["note"])
        if "recipient_ids" in changes:
            changes["recipient_ids"] = normalize_recipient_ids(changes["recipient_ids"])
        with self.database.transaction() as session:
            if not changes:
                row = self._owned(session, note_id, user_id)
                if not row:
                    return None
                return UpdateOutcome(self._with_recipients(session, row), changed=False)
            if "recipient_ids" in changes:
                validate_recipient_ids(session, user_id, changes["recipient_ids"])
            row = apply_changes(session, NOTE_FIELDS, note_id, user_id, changes)
            if not row:
                return None
            return UpdateOutcome(self._with_recipients(session, row))

    def delete(self, note_id: int, user_id: str) -> bool:
        with self.database.transaction() as session:
            row = self._owned(session, note_id, user_id)
            if not row:
                return False
            session.delete(row)
        logger.info("Deleted note %s for user %s", note_id, user_id)
        return True

    def get(self, note_id: int, user_id: str) -> Optional[NoteRecord]:
        with self.database.Session() as session:
            row = self._owned(session, note_id, user_id)
            return self._with_recipients(session, row) if row else None

    def list(self, user_id: str) -> list[NoteRecord]:
        """Notes newest first, without recipient records."""
        with self.database.Session() as session:
            return [self._to_record(row) for row in self._list_rows(session, user_id)]

    def list_with_recipients(self, user_id: str) -> list[NoteRecord]:
        """Notes newest first, each with its recipients in stored order."""
        with self.database.Session() as session:
            rows = list(self._list_rows(session, user_id))
            wanted = {i for row in rows for i in (row.recipient_ids or [])}
            recipients = self._recipients_by_id(session, user_id, wanted)
            return [self._to_record(row, recipients) for row in rows]

    def _owned(self, session: Session, note_id: int, user_id: str) -> Optional[NoteRow]:
        return session.execute(
            select(NoteRow).where(NoteRow.id == note_id, NoteRow.user_id == user_id)
        ).scalar_one_or_none()

    def _list_rows(self, session: Session, user_id: str):
        return session.execute(
            select(NoteRow)
            .where(NoteRow.user_id == user_id)
            .order_by(NoteRow.created_at.desc(), NoteRow.id.desc())
        ).scalars()

    def _recipients_by_id(
        self, session: Session, user_id: str, ids: Iterable[int]
    ) -> dict[int, RecipientRecord]:
        ids = list(ids)
        if not ids:
            return {}
        rows = session.execute(
            select(RecipientRow).where(
                RecipientRow.user_id == user_id, RecipientRow.id.in_(ids)
            )
        ).scalars()
        return {row.id: to_record(RecipientRecord, row) for row in rows}

    def _with_recipients(self, session: Session, row: NoteRow) -> NoteRecord:
        recipients = self._recipients_by_id(session, row.user_id, row.recipient_ids or [])
        return self._to_record(row, recipients)

    @staticmethod
    def _to_record(
        row: NoteRow, recipients: Optional[Mapping[int, RecipientRecord]] = None
    ) -> NoteRecord:
        ids = list(row.recipient_ids or [])
        resolved = []
        if recipients is not None:
            resolved = [recipients[i] for i in ids if i in recipients]
        return NoteRecord(
            id=row.id,
            user_id=row.user_id,
            note=row.note,
            attachment=row.attachment,
            recipient_ids=ids,
            created_at=row.created_at,
            updated_at=row.updated_at,
            recipients=resolved,
        )
