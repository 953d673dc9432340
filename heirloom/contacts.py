"""
Approver and recipient registries.

Both registries manage people attached to a user and share one shape
(name, email, two contact numbers, relationship label, social handles).
Approvers additionally carry a minimum-count rule enforced on delete.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Mapping, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from heirloom.db import ApproverRow, Database, NoteRow, RecipientRow, utcnow
from heirloom.errors import ValidationError
from heirloom.partial_update import FieldMap, UpdateOutcome, apply_changes, build_changes

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_APPROVERS = 2


APPROVER_FIELDS = FieldMap(
    ApproverRow,
    {
        "approverName": "approver_name",
        "approverEmail": "approver_email",
        "approverContactNumber1": "approver_contact_number_1",
        "approverContactNumber2": "approver_contact_number_2",
        "approverRelationship": "approver_relationship",
        "approverInstagram": "approver_instagram",
        "approverLinkedin": "approver_linkedin",
        "approverTwitter": "approver_twitter",
        "approverFacebook": "approver_facebook",
    },
)

RECIPIENT_FIELDS = FieldMap(
    RecipientRow,
    {
        "recipientName": "recipient_name",
        "recipientEmail": "recipient_email",
        "recipientContactNumber1": "recipient_contact_number_1",
        "recipientContactNumber2": "recipient_contact_number_2",
        "recipientRelationship": "recipient_relationship",
        "recipientInstagram": "recipient_instagram",
        "recipientLinkedin": "recipient_linkedin",
        "recipientTwitter": "recipient_twitter",
        "recipientFacebook": "recipient_facebook",
    },
)


@dataclass
class ApproverRecord:
    id: int
    user_id: str
    approver_name: str
    approver_email: str
    approver_contact_number_1: Optional[str]
    approver_contact_number_2: Optional[str]
    approver_relationship: Optional[str]
    approver_instagram: Optional[str]
    approver_linkedin: Optional[str]
    approver_twitter: Optional[str]
    approver_facebook: Optional[str]
    created_at: datetime
    updated_at: datetime


@dataclass
class RecipientRecord:
    id: int
    user_id: str
    recipient_name: str
    recipient_email: str
    recipient_contact_number_1: Optional[str]
    recipient_contact_number_2: Optional[str]
    recipient_relationship: Optional[str]
    recipient_instagram: Optional[str]
    recipient_linkedin: Optional[str]
    recipient_twitter: Optional[str]
    recipient_facebook: Optional[str]
    created_at: datetime
    updated_at: datetime


def to_record(record_type: type, row: Any):
    return record_type(**{f.name: getattr(row, f.name) for f in fields(record_type)})


class ContactRegistry:
    """Shared add/update/delete/list behaviour for a per-user contact table."""

    row: type
    record_type: type
    field_map: FieldMap
    name_field: str
    email_field: str
    label: str

    def __init__(self, database: Database):
        self.database = database

    def _validate(self, values: Mapping[str, Any], *, partial: bool) -> None:
        name = values.get(self.name_field)
        email = values.get(self.email_field)
        if not partial and (not name or not email):
            raise ValidationError(f"{self.label} name and email are required")
        if partial and self.name_field in values and not name:
            raise ValidationError(f"{self.label} name cannot be empty")
        if partial and self.email_field in values and not email:
            raise ValidationError(f"{self.label} email cannot be empty")
        if email is not None and not EMAIL_PATTERN.match(str(email)):
            raise ValidationError("Invalid email format")

    def add(self, user_id: str, data: Mapping[str, Any]):
        self._validate(data, partial=False)
        columns = build_changes(data, self.field_map)
        now = utcnow()
        with self.database.transaction() as session:
            row = self.row(user_id=user_id, created_at=now, updated_at=now, **columns)
            session.add(row)
            session.flush()
            record = to_record(self.record_type, row)
        logger.info("Added %s %s for user %s", self.label.lower(), record.id, user_id)
        return record

    def get(self, user_id: str, contact_id: int):
        with self.database.Session() as session:
            row = self._owned(session, user_id, contact_id)
            return to_record(self.record_type, row) if row else None

    def list(self, user_id: str) -> list:
        with self.database.Session() as session:
            return [
                to_record(self.record_type, row)
                for row in self._list_rows(session, user_id)
            ]

    def update(
        self, user_id: str, contact_id: int, partial: Mapping[str, Any]
    ) -> Optional[UpdateOutcome]:
        """Apply only the supplied fields; None means not found (or not owned)."""
        changes = build_changes(partial, self.field_map)
        if changes:
            self._validate(
                {k: v for k, v in partial.items() if k in self.field_map.fields},
                partial=True,
            )
        with self.database.transaction() as session:
            if not changes:
                row = self._owned(session, user_id, contact_id)
                if not row:
                    return None
                return UpdateOutcome(to_record(self.record_type, row), changed=False)
            row = apply_changes(session, self.field_map, contact_id, user_id, changes)
            if not row:
                return None
            return UpdateOutcome(to_record(self.record_type, row))

    def delete(self, user_id: str, contact_id: int) -> bool:
        with self.database.transaction() as session:
            row = self._lock_for_delete(session, user_id, contact_id)
            if not row:
                return False
            session.delete(row)
        logger.info("Deleted %s %s for user %s", self.label.lower(), contact_id, user_id)
        return True

    def _owned(self, session: Session, user_id: str, contact_id: int):
        return session.execute(
            select(self.row).where(self.row.id == contact_id, self.row.user_id == user_id)
        ).scalar_one_or_none()

    def _list_rows(self, session: Session, user_id: str):
        return session.execute(
            select(self.row)
            .where(self.row.user_id == user_id)
            .order_by(self.row.created_at.asc(), self.row.id.asc())
        ).scalars()

    def _lock_for_delete(self, session: Session, user_id: str, contact_id: int):
        return session.execute(
            select(self.row)
            .where(self.row.id == contact_id, self.row.user_id == user_id)
            .with_for_update()
        ).scalar_one_or_none()


class ApproverRegistry(ContactRegistry):
    row = ApproverRow
    record_type = ApproverRecord
    field_map = APPROVER_FIELDS
    name_field = "approverName"
    email_field = "approverEmail"
    label = "Approver"

    def count(self, user_id: str) -> int:
        with self.database.Session() as session:
            return session.execute(
                select(func.count(ApproverRow.id)).where(ApproverRow.user_id == user_id)
            ).scalar_one()

    def validate_minimum_approvers(self, user_id: str) -> bool:
        return self.count(user_id) >= MIN_APPROVERS

    def _lock_for_delete(self, session: Session, user_id: str, contact_id: int):
        # Whole approver set; concurrent deletes for one user serialize here.
        rows = session.execute(
            select(ApproverRow)
            .where(ApproverRow.user_id == user_id)
            .order_by(ApproverRow.id)
            .with_for_update()
        ).scalars().all()
        target = next((row for row in rows if row.id == contact_id), None)
        if target is None:
            return None
        remaining = len(rows) - 1
        if remaining < MIN_APPROVERS:
            logger.warning(
                "Refused approver delete for user %s: %d would remain",
                user_id,
                remaining,
            )
            raise ValidationError(
                "Cannot delete approver. User must have at least "
                f"{MIN_APPROVERS} active approvers.",
                details={"remaining": remaining, "minimum": MIN_APPROVERS},
            )
        return target


class RecipientRegistry(ContactRegistry):
    row = RecipientRow
    record_type = RecipientRecord
    field_map = RECIPIENT_FIELDS
    name_field = "recipientName"
    email_field = "recipientEmail"
    label = "Recipient"

    def _lock_for_delete(self, session: Session, user_id: str, contact_id: int):
        # Recipient row before notes; note writes share-lock in that order.
        target = super()._lock_for_delete(session, user_id, contact_id)
        if target is None:
            return None
        notes = session.execute(
            select(NoteRow).where(NoteRow.user_id == user_id).with_for_update()
        ).scalars()
        now = utcnow()
        for note in notes:
            ids = list(note.recipient_ids or [])
            if contact_id in ids:
                note.recipient_ids = [i for i in ids if i != contact_id]
                note.updated_at = now
        return target
