"""
User records: identity resolution on login and admin-level user operations.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from heirloom.db import Database, UserRow, utcnow
from heirloom.errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExternalIdentity:
    """Identity tuple asserted by the OAuth provider after verification."""

    id: str
    email: str
    name: str
    picture: Optional[str] = None
    provider: str = "google"


@dataclass
class UserRecord:
    id: str
    email: str
    name: str
    picture: Optional[str]
    provider: str
    created_at: datetime
    last_login: Optional[datetime]


def to_user_record(row: UserRow) -> UserRecord:
    return UserRecord(
        id=row.id,
        email=row.email,
        name=row.name,
        picture=row.picture,
        provider=row.provider,
        created_at=row.created_at,
        last_login=row.last_login,
    )


class IdentityResolver:
    """Maps an external identity to the internal user, creating it on first login."""

    def __init__(self, database: Database):
        self.database = database

    def resolve(self, identity: ExternalIdentity) -> UserRecord:
        try:
            return self._resolve(identity, create=True)
        except IntegrityError:
            # Either a concurrent first login inserted this id, or the email
            # is already held by a different external id.
            logger.warning(
                "Insert conflict resolving user %s (%s)", identity.id, identity.provider
            )
        return self._resolve(identity, create=False)

    def _resolve(self, identity: ExternalIdentity, *, create: bool) -> UserRecord:
        now = utcnow()
        with self.database.transaction() as session:
            row = session.get(UserRow, identity.id)
            if row:
                row.last_login = now
                row.updated_at = now
            elif not create:
                raise ValidationError(
                    "Email is already registered to another account",
                    details={"email": identity.email},
                )
            else:
                row = UserRow(
                    id=identity.id,
                    email=identity.email,
                    name=identity.name,
                    picture=identity.picture,
                    provider=identity.provider,
                    created_at=now,
                    updated_at=now,
                    last_login=now,
                )
                session.add(row)
                session.flush()
                logger.info("Created user %s (%s)", identity.id, identity.provider)
            return to_user_record(row)


class UserStore:
    def __init__(self, database: Database):
        self.database = database

    def get(self, user_id: str) -> Optional[UserRecord]:
        with self.database.Session() as session:
            row = session.get(UserRow, user_id)
            return to_user_record(row) if row else None

    def list_all(self) -> list[UserRecord]:
        with self.database.Session() as session:
            rows = session.execute(
                select(UserRow).order_by(UserRow.created_at.desc())
            ).scalars()
            return [to_user_record(row) for row in rows]

    def update_profile(
        self,
        user_id: str,
        *,
        name: Optional[str] = None,
        picture: Optional[str] = None,
    ) -> Optional[UserRecord]:
        """
        Change display name and/or avatar. Empty values are ignored; with
        nothing to change the current record is returned as-is.
        """
        with self.database.transaction() as session:
            row = session.get(UserRow, user_id)
            if not row:
                return None
            changed = False
            if name:
                row.name = name
                changed = True
            if picture:
                row.picture = picture
                changed = True
            if changed:
                row.updated_at = utcnow()
                session.flush()
            return to_user_record(row)

    def delete(self, user_id: str) -> bool:
        """Hard-delete a user; profile, approvers, recipients and notes cascade."""
        with self.database.transaction() as session:
            row = session.get(UserRow, user_id)
            if not row:
                return False
            session.delete(row)
        logger.info("Deleted user %s", user_id)
        return True
