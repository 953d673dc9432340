"""
Pydantic schemas for the accounts API.

JSON bodies use camelCase names; Python attributes mirror the store records
so responses can be built straight from them.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class PartialModel(ApiModel):
    """Request body where omitted fields stay untouched."""

    model_config = ConfigDict(extra="forbid")

    def partial(self) -> dict:
        return self.model_dump(by_alias=True, exclude_unset=True)


class MessageResponse(BaseModel):
    message: str


class UserOut(ApiModel):
    id: str
    email: str
    name: str
    picture: Optional[str] = None
    provider: str
    created_at: datetime
    last_login: Optional[datetime] = None


class UserUpdate(ApiModel):
    name: Optional[str] = None
    picture: Optional[str] = None


class UserEnvelope(ApiModel):
    message: str
    user: UserOut


class AuthResponse(ApiModel):
    message: str
    user: UserOut
    token: str


class AuthStatus(ApiModel):
    is_authenticated: bool
    user: Optional[UserOut] = None


class ProfileIn(ApiModel):
    age: Optional[int] = None
    contact_number_1: Optional[str] = None
    contact_number_2: Optional[str] = None
    instagram_handle: Optional[str] = None
    linkedin_profile: Optional[str] = None
    twitter_handle: Optional[str] = None
    facebook_profile: Optional[str] = None

    def as_wire(self) -> dict:
        return self.model_dump(by_alias=True)


class ProfileOut(ProfileIn):
    id: int
    user_id: str
    created_at: datetime
    updated_at: datetime


class ProfileEnvelope(ApiModel):
    message: str
    profile: ProfileOut


class ApproverFields(PartialModel):
    approver_name: Optional[str] = None
    approver_email: Optional[str] = None
    approver_contact_number_1: Optional[str] = None
    approver_contact_number_2: Optional[str] = None
    approver_relationship: Optional[str] = None
    approver_instagram: Optional[str] = None
    approver_linkedin: Optional[str] = None
    approver_twitter: Optional[str] = None
    approver_facebook: Optional[str] = None


class ApproverCreate(ApproverFields):
    pass


class ApproverUpdate(ApproverFields):
    # Accepted but never written.
    id: Optional[int] = None
    user_id: Optional[str] = None


class ApproverOut(ApiModel):
    id: int
    user_id: str
    approver_name: str
    approver_email: str
    approver_contact_number_1: Optional[str] = None
    approver_contact_number_2: Optional[str] = None
    approver_relationship: Optional[str] = None
    approver_instagram: Optional[str] = None
    approver_linkedin: Optional[str] = None
    approver_twitter: Optional[str] = None
    approver_facebook: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ApproverEnvelope(ApiModel):
    message: str
    approver: ApproverOut
    changed: bool = True


class ApproverList(ApiModel):
    approvers: list[ApproverOut]
    meets_minimum: bool


class RecipientFields(PartialModel):
    recipient_name: Optional[str] = None
    recipient_email: Optional[str] = None
    recipient_contact_number_1: Optional[str] = None
    recipient_contact_number_2: Optional[str] = None
    recipient_relationship: Optional[str] = None
    recipient_instagram: Optional[str] = None
    recipient_linkedin: Optional[str] = None
    recipient_twitter: Optional[str] = None
    recipient_facebook: Optional[str] = None


class RecipientCreate(RecipientFields):
    pass


class RecipientUpdate(RecipientFields):
    id: Optional[int] = None
    user_id: Optional[str] = None


class RecipientOut(ApiModel):
    id: int
    user_id: str
    recipient_name: str
    recipient_email: str
    recipient_contact_number_1: Optional[str] = None
    recipient_contact_number_2: Optional[str] = None
    recipient_relationship: Optional[str] = None
    recipient_instagram: Optional[str] = None
    recipient_linkedin: Optional[str] = None
    recipient_twitter: Optional[str] = None
    recipient_facebook: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class RecipientEnvelope(ApiModel):
    message: str
    recipient: RecipientOut
    changed: bool = True


class RecipientList(ApiModel):
    recipients: list[RecipientOut]


class CompleteProfileOut(ApiModel):
    user: UserOut
    profile: Optional[ProfileOut] = None
    approvers: list[ApproverOut]


class NoteCreate(ApiModel):
    note: Optional[str] = None
    attachment: Optional[str] = None
    recipient_ids: Optional[list[int]] = None


class NoteUpdate(PartialModel):
    note: Optional[str] = None
    attachment: Optional[str] = None
    recipient_ids: Optional[list[int]] = None
    id: Optional[int] = None
    user_id: Optional[str] = None


class NoteOut(ApiModel):
    id: int
    user_id: str
    note: str
    attachment: Optional[str] = None
    recipient_ids: list[int]
    recipients: list[RecipientOut]
    created_at: datetime
    updated_at: datetime


class NoteEnvelope(ApiModel):
    message: str
    note: NoteOut
    changed: bool = True


class NoteList(ApiModel):
    message: str
    notes: list[NoteOut]
