"""
Extended profile storage (one optional row per user).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite

from heirloom.contacts import ApproverRecord, to_record
from heirloom.db import ApproverRow, Database, ProfileRow, UserRow, utcnow
from heirloom.errors import ValidationError
from heirloom.users import UserRecord, to_user_record

logger = logging.getLogger(__name__)

PROFILE_COLUMNS = {
    "age": "age",
    "contactNumber1": "contact_number_1",
    "contactNumber2": "contact_number_2",
    "instagramHandle": "instagram_handle",
    "linkedinProfile": "linkedin_profile",
    "twitterHandle": "twitter_handle",
    "facebookProfile": "facebook_profile",
}

MIN_AGE = 13
MAX_AGE = 120


@dataclass
class ProfileRecord:
    id: int
    user_id: str
    age: Optional[int]
    contact_number_1: Optional[str]
    contact_number_2: Optional[str]
    instagram_handle: Optional[str]
    linkedin_profile: Optional[str]
    twitter_handle: Optional[str]
    facebook_profile: Optional[str]
    created_at: datetime
    updated_at: datetime


@dataclass
class CompleteProfile:
    user: UserRecord
    profile: Optional[ProfileRecord]
    approvers: list[ApproverRecord]


class ProfileStore:
    def __init__(self, database: Database):
        self.database = database

    def get(self, user_id: str) -> Optional[ProfileRecord]:
        with self.database.Session() as session:
            row = session.execute(
                select(ProfileRow).where(ProfileRow.user_id == user_id)
            ).scalar_one_or_none()
            return to_record(ProfileRecord, row) if row else None

    def upsert(self, user_id: str, data: Mapping[str, Any]) -> ProfileRecord:
        """
        Create or replace the user's extended profile. Fields missing from
        ``data`` are stored as null.
        """
        if not data.get("contactNumber1"):
            raise ValidationError("Primary contact number is required")
        age = data.get("age")
        if age is not None and not MIN_AGE <= age <= MAX_AGE:
            raise ValidationError(f"Age must be between {MIN_AGE} and {MAX_AGE}")

        values = {column: data.get(name) for name, column in PROFILE_COLUMNS.items()}
        now = utcnow()
        with self.database.transaction() as session:
            insert = _dialect_insert(session.get_bind().dialect.name)
            stmt = insert(ProfileRow).values(
                user_id=user_id, created_at=now, updated_at=now, **values
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["user_id"],
                set_={**values, "updated_at": now},
            )
            session.execute(stmt)
            row = session.execute(
                select(ProfileRow)
                .where(ProfileRow.user_id == user_id)
                .execution_options(populate_existing=True)
            ).scalar_one()
            record = to_record(ProfileRecord, row)
        logger.info("Upserted profile for user %s", user_id)
        return record

    def complete(self, user_id: str) -> Optional[CompleteProfile]:
        """User, optional profile and approvers read in one session."""
        with self.database.Session() as session:
            user = session.get(UserRow, user_id)
            if not user:
                return None
            profile = session.execute(
                select(ProfileRow).where(ProfileRow.user_id == user_id)
            ).scalar_one_or_none()
            approvers = session.execute(
                select(ApproverRow)
                .where(ApproverRow.user_id == user_id)
                .order_by(ApproverRow.created_at.asc(), ApproverRow.id.asc())
            ).scalars()
            return CompleteProfile(
                user=to_user_record(user),
                profile=to_record(ProfileRecord, profile) if profile else None,
                approvers=[to_record(ApproverRecord, row) for row in approvers],
            )


def _dialect_insert(dialect_name: str):
    if dialect_name == "postgresql":
        return postgresql.insert
    if dialect_name == "sqlite":
        return sqlite.insert
    raise RuntimeError(f"Profile upsert is not supported on {dialect_name}")
