"""
Shared test helpers: an in-memory store and a scripted identity provider.
"""

from __future__ import annotations

from heirloom.db import Database
from heirloom.errors import AuthenticationError
from heirloom.users import ExternalIdentity, IdentityResolver, UserRecord

MEMORY_URL = "sqlite+pysqlite:///:memory:"


def make_database() -> Database:
    db = Database(MEMORY_URL)
    db.ensure_schema()
    return db


def seed_user(db: Database, user_id: str) -> UserRecord:
    return IdentityResolver(db).resolve(
        ExternalIdentity(
            id=user_id,
            email=f"{user_id}@example.com",
            name=user_id.title(),
        )
    )


def approver(name: str, **extra) -> dict:
    return {"approverName": name, "approverEmail": f"{name.lower()}@example.com", **extra}


def recipient(name: str, **extra) -> dict:
    return {"recipientName": name, "recipientEmail": f"{name.lower()}@example.com", **extra}


class FakeIdentityProvider:
    """Resolves pre-registered authorization codes to identities."""

    name = "google"

    def __init__(self):
        self.identities: dict[str, ExternalIdentity] = {}

    def register(self, code: str, identity: ExternalIdentity) -> None:
        self.identities[code] = identity

    def authorization_url(self, state: str | None = None) -> str:
        return f"https://accounts.example.test/auth?state={state}"

    def exchange_code(self, code: str) -> ExternalIdentity:
        identity = self.identities.get(code)
        if identity is None:
            raise AuthenticationError("Google sign-in failed")
        return identity
