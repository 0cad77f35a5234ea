from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import AuthorizationGate, get_authorization_gate, get_permission_store
from app.core.database import get_db
from app.core.security import get_current_active_user
from app.models.enums import AccessLevel, EntityType
from app.models.user import User
from app.schemas.auth import MessageResponse
from app.schemas.permission import UserAccessResponse
from app.services.permissions import PermissionStore

router = APIRouter()


@router.get("", response_model=List[UserAccessResponse])
async def list_users_with_access(
    entity_type: EntityType = Query(..., alias="entityType"),
    entity_id: int = Query(..., alias="entityId"),
    current_user: User = Depends(get_current_active_user),
    gate: AuthorizationGate = Depends(get_authorization_gate),
    permissions: PermissionStore = Depends(get_permission_store),
):
    """List the owner and every user granted access to an entity"""
    await gate.require(current_user, entity_type, entity_id, AccessLevel.VIEW)
    return await permissions.list_users_with_access(entity_type, entity_id)


@router.delete("/{permission_id}", response_model=MessageResponse)
async def revoke_permission(
    permission_id: int,
    current_user: User = Depends(get_current_active_user),
    permissions: PermissionStore = Depends(get_permission_store),
    db: AsyncSession = Depends(get_db),
):
    """Revoke a grant (entity owner, or the grantee giving up access)"""
    await permissions.revoke(permission_id, current_user.id)
    await db.commit()
    return {"message": "Permission revoked successfully"}
