from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import Optional

from app.models.enums import AccessLevel, EntityType, InvitationStatus
from app.schemas.note import OwnerSummary


class InvitationCreate(BaseModel):
    entity_id: int = Field(..., gt=0)
    entity_type: EntityType
    invitee_email: EmailStr
    access_level: AccessLevel


class InvitationResponse(BaseModel):
    """Invitation as shown to its creator; the secret token is never included"""
    id: int
    entity_id: int
    entity_type: EntityType
    invitee_email: str
    access_level: AccessLevel
    status: InvitationStatus
    expires_at: datetime
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PendingInvitationResponse(BaseModel):
    id: int
    entity_id: int
    entity_type: EntityType
    access_level: AccessLevel
    expires_at: datetime
    created_at: Optional[datetime] = None
    inviter: OwnerSummary

    class Config:
        from_attributes = True


class InvitationStatusSummary(BaseModel):
    id: int
    status: InvitationStatus

    class Config:
        from_attributes = True


class PermissionSummary(BaseModel):
    id: int
    entity_type: EntityType
    entity_id: int
    access_level: AccessLevel

    class Config:
        from_attributes = True


class InvitationAcceptResponse(BaseModel):
    message: str
    invitation: InvitationStatusSummary
    permission: PermissionSummary


class InvitationDeclineResponse(BaseModel):
    message: str
    invitation: InvitationStatusSummary
