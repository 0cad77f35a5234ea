from typing import List

from fastapi import APIRouter, Depends, status

from app.api.deps import get_invitation_manager
from app.core.security import get_current_active_user
from app.models.user import User
from app.schemas.invitation import (
    InvitationAcceptResponse,
    InvitationCreate,
    InvitationDeclineResponse,
    InvitationResponse,
    PendingInvitationResponse,
)
from app.services.invitations import InvitationManager

router = APIRouter()


@router.post("", response_model=InvitationResponse, status_code=status.HTTP_201_CREATED)
async def create_invitation(
    invitation_in: InvitationCreate,
    current_user: User = Depends(get_current_active_user),
    manager: InvitationManager = Depends(get_invitation_manager),
):
    """Invite an email address to a note or folder you own"""
    return await manager.create(
        inviter_id=current_user.id,
        entity_type=invitation_in.entity_type,
        entity_id=invitation_in.entity_id,
        invitee_email=invitation_in.invitee_email,
        access_level=invitation_in.access_level,
    )


@router.get("/pending", response_model=List[PendingInvitationResponse])
async def list_pending_invitations(
    current_user: User = Depends(get_current_active_user),
    manager: InvitationManager = Depends(get_invitation_manager),
):
    """Live invitations addressed to the current user, newest first"""
    return await manager.list_pending(current_user.email)


@router.get("/lookup/{token}", response_model=PendingInvitationResponse)
async def lookup_invitation(
    token: str,
    manager: InvitationManager = Depends(get_invitation_manager),
):
    """Resolve an invitation link without logging in"""
    return await manager.get_by_token(token)


@router.post("/{invitation_id}/accept", response_model=InvitationAcceptResponse)
async def accept_invitation(
    invitation_id: int,
    current_user: User = Depends(get_current_active_user),
    manager: InvitationManager = Depends(get_invitation_manager),
):
    """Accept an invitation and receive the permission it offers"""
    invitation, permission = await manager.accept(invitation_id, current_user.id)
    return {
        "message": "Invitation accepted successfully",
        "invitation": invitation,
        "permission": permission,
    }


@router.post("/{invitation_id}/decline", response_model=InvitationDeclineResponse)
async def decline_invitation(
    invitation_id: int,
    current_user: User = Depends(get_current_active_user),
    manager: InvitationManager = Depends(get_invitation_manager),
):
    """Decline an invitation"""
    invitation = await manager.decline(invitation_id, current_user.id)
    return {"message": "Invitation declined successfully", "invitation": invitation}
