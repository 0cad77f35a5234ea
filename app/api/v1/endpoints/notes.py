from fastapi import APIRouter, Depends

from app.api.deps import AuthorizationGate, get_authorization_gate, get_public_share_gateway, set_entity_public
from app.core.security import get_current_active_user
from app.models.enums import EntityType
from app.models.user import User
from app.schemas.note import PublicToggle, PublicToggleResponse
from app.services.public_share import PublicShareGateway

router = APIRouter()


@router.put("/{note_id}/public", response_model=PublicToggleResponse)
async def toggle_note_public(
    note_id: int,
    toggle: PublicToggle,
    current_user: User = Depends(get_current_active_user),
    gate: AuthorizationGate = Depends(get_authorization_gate),
    gateway: PublicShareGateway = Depends(get_public_share_gateway),
):
    """Make a note public or private (only owner)"""
    return await set_entity_public(EntityType.NOTE, note_id, toggle, current_user, gate, gateway)
