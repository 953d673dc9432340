"""
HTTP routes for the accounts API.
"""

from __future__ import annotations

import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse

from heirloom.auth import issue_token
from heirloom.config import Settings
from heirloom.contacts import ApproverRegistry, RecipientRegistry
from heirloom.dependencies import (
    get_approver_registry,
    get_identity_provider,
    get_identity_resolver,
    get_note_ledger,
    get_optional_user,
    get_profile_store,
    get_recipient_registry,
    get_settings_dep,
    get_user_store,
    require_user,
)
from heirloom.errors import NotFoundError, require
from heirloom.identity import IdentityProvider
from heirloom.notes import NoteLedger
from heirloom.profiles import ProfileStore
from heirloom.schemas import (
    ApproverCreate,
    ApproverEnvelope,
    ApproverList,
    ApproverOut,
    ApproverUpdate,
    AuthResponse,
    AuthStatus,
    CompleteProfileOut,
    MessageResponse,
    NoteCreate,
    NoteEnvelope,
    NoteList,
    NoteOut,
    NoteUpdate,
    ProfileEnvelope,
    ProfileIn,
    ProfileOut,
    RecipientCreate,
    RecipientEnvelope,
    RecipientList,
    RecipientOut,
    RecipientUpdate,
    UserEnvelope,
    UserOut,
    UserUpdate,
)
from heirloom.users import IdentityResolver, UserRecord, UserStore

logger = logging.getLogger(__name__)

auth_router = APIRouter(prefix="/auth", tags=["auth"])
router = APIRouter(prefix="/users", tags=["users"])

NO_CHANGES = "No changes to apply"


@auth_router.get("/google")
def google_login(provider: IdentityProvider = Depends(get_identity_provider)):
    return RedirectResponse(provider.authorization_url(state=secrets.token_urlsafe(16)))


@auth_router.get("/google/callback", response_model=AuthResponse)
def google_callback(
    code: str = Query(..., min_length=1),
    provider: IdentityProvider = Depends(get_identity_provider),
    resolver: IdentityResolver = Depends(get_identity_resolver),
    settings: Settings = Depends(get_settings_dep),
):
    identity = provider.exchange_code(code)
    user = resolver.resolve(identity)
    logger.info("User %s signed in via %s", user.id, identity.provider)
    return AuthResponse(
        message="Authentication successful",
        user=UserOut.model_validate(user),
        token=issue_token(user, settings),
    )


@auth_router.get("/profile", response_model=UserEnvelope)
def auth_profile(user: UserRecord = Depends(require_user)):
    return UserEnvelope(message="Authenticated", user=UserOut.model_validate(user))


@auth_router.get("/status", response_model=AuthStatus)
def auth_status(user: Optional[UserRecord] = Depends(get_optional_user)):
    return AuthStatus(
        is_authenticated=user is not None,
        user=UserOut.model_validate(user) if user else None,
    )


@auth_router.post("/logout", response_model=MessageResponse)
def logout():
    # Tokens are stateless; the client discards its copy.
    return MessageResponse(message="Logged out successfully")


@router.get("", response_model=list[UserOut])
def list_users(
    _: UserRecord = Depends(require_user),
    users: UserStore = Depends(get_user_store),
):
    return [UserOut.model_validate(user) for user in users.list_all()]


@router.get("/me", response_model=UserOut)
def get_me(user: UserRecord = Depends(require_user)):
    return UserOut.model_validate(user)


@router.put("/me", response_model=UserEnvelope)
def update_me(
    payload: UserUpdate,
    user: UserRecord = Depends(require_user),
    users: UserStore = Depends(get_user_store),
):
    updated = require(
        users.update_profile(user.id, name=payload.name, picture=payload.picture),
        "User",
    )
    return UserEnvelope(
        message="Profile updated successfully", user=UserOut.model_validate(updated)
    )


@router.get("/profile/complete", response_model=CompleteProfileOut)
def get_complete_profile(
    user: UserRecord = Depends(require_user),
    profiles: ProfileStore = Depends(get_profile_store),
):
    complete = require(profiles.complete(user.id), "Profile")
    return CompleteProfileOut.model_validate(complete)


@router.put("/profile/extended", response_model=ProfileEnvelope)
def upsert_extended_profile(
    payload: ProfileIn,
    user: UserRecord = Depends(require_user),
    profiles: ProfileStore = Depends(get_profile_store),
):
    profile = profiles.upsert(user.id, payload.as_wire())
    return ProfileEnvelope(
        message="Extended profile updated successfully",
        profile=ProfileOut.model_validate(profile),
    )


@router.get("/profile/approvers", response_model=ApproverList)
def list_approvers(
    user: UserRecord = Depends(require_user),
    approvers: ApproverRegistry = Depends(get_approver_registry),
):
    records = approvers.list(user.id)
    return ApproverList(
        approvers=[ApproverOut.model_validate(r) for r in records],
        meets_minimum=approvers.validate_minimum_approvers(user.id),
    )


@router.post("/profile/approvers", response_model=ApproverEnvelope, status_code=201)
def add_approver(
    payload: ApproverCreate,
    user: UserRecord = Depends(require_user),
    approvers: ApproverRegistry = Depends(get_approver_registry),
):
    approver = approvers.add(user.id, payload.partial())
    return ApproverEnvelope(
        message="Approver added successfully",
        approver=ApproverOut.model_validate(approver),
    )


@router.put("/profile/approvers/{approver_id}", response_model=ApproverEnvelope)
def update_approver(
    approver_id: int,
    payload: ApproverUpdate,
    user: UserRecord = Depends(require_user),
    approvers: ApproverRegistry = Depends(get_approver_registry),
):
    outcome = require(
        approvers.update(user.id, approver_id, payload.partial()), "Approver"
    )
    return ApproverEnvelope(
        message="Approver updated successfully" if outcome.changed else NO_CHANGES,
        approver=ApproverOut.model_validate(outcome.record),
        changed=outcome.changed,
    )


@router.delete("/profile/approvers/{approver_id}", response_model=MessageResponse)
def delete_approver(
    approver_id: int,
    user: UserRecord = Depends(require_user),
    approvers: ApproverRegistry = Depends(get_approver_registry),
):
    if not approvers.delete(user.id, approver_id):
        raise NotFoundError("Approver not found")
    return MessageResponse(message="Approver deleted successfully")


@router.get("/profile/recipients", response_model=RecipientList)
def list_recipients(
    user: UserRecord = Depends(require_user),
    recipients: RecipientRegistry = Depends(get_recipient_registry),
):
    return RecipientList(
        recipients=[RecipientOut.model_validate(r) for r in recipients.list(user.id)]
    )


@router.post("/profile/recipients", response_model=RecipientEnvelope, status_code=201)
def add_recipient(
    payload: RecipientCreate,
    user: UserRecord = Depends(require_user),
    recipients: RecipientRegistry = Depends(get_recipient_registry),
):
    recipient = recipients.add(user.id, payload.partial())
    return RecipientEnvelope(
        message="Recipient added successfully",
        recipient=RecipientOut.model_validate(recipient),
    )


@router.put("/profile/recipients/{recipient_id}", response_model=RecipientEnvelope)
def update_recipient(
    recipient_id: int,
    payload: RecipientUpdate,
    user: UserRecord = Depends(require_user),
    recipients: RecipientRegistry = Depends(get_recipient_registry),
):
    outcome = require(
        recipients.update(user.id, recipient_id, payload.partial()), "Recipient"
    )
    return RecipientEnvelope(
        message="Recipient updated successfully" if outcome.changed else NO_CHANGES,
        recipient=RecipientOut.model_validate(outcome.record),
        changed=outcome.changed,
    )


@router.delete("/profile/recipients/{recipient_id}", response_model=MessageResponse)
def delete_recipient(
    recipient_id: int,
    user: UserRecord = Depends(require_user),
    recipients: RecipientRegistry = Depends(get_recipient_registry),
):
    if not recipients.delete(user.id, recipient_id):
        raise NotFoundError("Recipient not found")
    return MessageResponse(message="Recipient deleted successfully")


@router.get("/notes", response_model=NoteList)
def list_notes(
    user: UserRecord = Depends(require_user),
    notes: NoteLedger = Depends(get_note_ledger),
):
    return NoteList(
        message="Notes retrieved successfully",
        notes=[
            NoteOut.model_validate(note)
            for note in notes.list_with_recipients(user.id)
        ],
    )


@router.post("/notes", response_model=NoteEnvelope, status_code=201)
def add_note(
    payload: NoteCreate,
    user: UserRecord = Depends(require_user),
    notes: NoteLedger = Depends(get_note_ledger),
):
    note = notes.add(
        user.id,
        payload.note,
        attachment=payload.attachment,
        recipient_ids=payload.recipient_ids,
    )
    return NoteEnvelope(
        message="Note added successfully", note=NoteOut.model_validate(note)
    )


@router.get("/notes/{note_id}", response_model=NoteEnvelope)
def get_note(
    note_id: int,
    user: UserRecord = Depends(require_user),
    notes: NoteLedger = Depends(get_note_ledger),
):
    note = require(notes.get(note_id, user.id), "Note")
    return NoteEnvelope(
        message="Note retrieved successfully", note=NoteOut.model_validate(note)
    )


@router.put("/notes/{note_id}", response_model=NoteEnvelope)
def update_note(
    note_id: int,
    payload: NoteUpdate,
    user: UserRecord = Depends(require_user),
    notes: NoteLedger = Depends(get_note_ledger),
):
    outcome = require(notes.update(note_id, user.id, payload.partial()), "Note")
    return NoteEnvelope(
        message="Note updated successfully" if outcome.changed else NO_CHANGES,
        note=NoteOut.model_validate(outcome.record),
        changed=outcome.changed,
    )


@router.delete("/notes/{note_id}", response_model=MessageResponse)
def delete_note(
    note_id: int,
    user: UserRecord = Depends(require_user),
    notes: NoteLedger = Depends(get_note_ledger),
):
    if not notes.delete(note_id, user.id):
        raise NotFoundError("Note not found")
    return MessageResponse(message="Note deleted successfully")
