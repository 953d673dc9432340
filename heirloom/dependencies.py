"""
Dependency wiring for the FastAPI app.

The store handle and identity provider are built once in ``create_app``
and kept on ``app.state``; handlers receive them from here.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from heirloom.auth import decode_token
from heirloom.config import Settings
from heirloom.contacts import ApproverRegistry, RecipientRegistry
from heirloom.db import Database
from heirloom.errors import AuthenticationError, HeirloomError
from heirloom.identity import IdentityProvider
from heirloom.notes import NoteLedger
from heirloom.profiles import ProfileStore
from heirloom.users import IdentityResolver, UserRecord, UserStore

logger = logging.getLogger(__name__)

bearer = HTTPBearer(auto_error=False)


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_identity_provider(request: Request) -> IdentityProvider:
    provider = request.app.state.identity_provider
    if provider is None:
        raise HeirloomError(
            "Google OAuth is not configured", code="NOT_CONFIGURED", status_code=503
        )
    return provider


def get_identity_resolver(db: Database = Depends(get_database)) -> IdentityResolver:
    return IdentityResolver(db)


def get_user_store(db: Database = Depends(get_database)) -> UserStore:
    return UserStore(db)


def get_profile_store(db: Database = Depends(get_database)) -> ProfileStore:
    return ProfileStore(db)


def get_approver_registry(db: Database = Depends(get_database)) -> ApproverRegistry:
    return ApproverRegistry(db)


def get_recipient_registry(db: Database = Depends(get_database)) -> RecipientRegistry:
    return RecipientRegistry(db)


def get_note_ledger(db: Database = Depends(get_database)) -> NoteLedger:
    return NoteLedger(db)


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    settings: Settings = Depends(get_settings_dep),
    users: UserStore = Depends(get_user_store),
) -> Optional[UserRecord]:
    """Current user, or None for a missing, invalid or expired token."""
    if credentials is None:
        return None
    try:
        user_id = decode_token(credentials.credentials, settings)
    except AuthenticationError as exc:
        logger.info("Ignoring bearer token: %s", exc.message)
        return None
    return users.get(user_id)


def require_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    settings: Settings = Depends(get_settings_dep),
    users: UserStore = Depends(get_user_store),
) -> UserRecord:
    if credentials is None:
        raise AuthenticationError("Please log in to access this resource")
    user = users.get(decode_token(credentials.credentials, settings))
    if user is None:
        raise AuthenticationError("Please log in to access this resource")
    return user
