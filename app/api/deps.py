"""
Request dependencies: storage handles, services, and the authorization gate.

Storage is injected per request (``get_db``, ``get_redis``) so tests and
alternative deployments can swap it through ``app.dependency_overrides``.
"""

import redis.asyncio as redis
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import UnitOfWork, get_db
from app.core.encryption import FieldEncryption
from app.core.exceptions import ConfigurationError, Forbidden, NotFound
from app.core.redis_client import get_redis
from app.core.security import RefreshSessionStore
from app.models.enums import AccessLevel, EntityType
from app.models.user import User
from app.schemas.note import PublicToggle
from app.services.invitations import InvitationManager
from app.services.permissions import PermissionStore, entity_label
from app.services.public_share import PublicShareGateway, share_state


class AuthorizationGate:
    """
    Allow or deny an (actor, action, entity) triple before entity logic runs.

    Callers with no access at all get 404 so they learn nothing about the
    entity; callers who can see it but lack the required level get 403.
    """

    def __init__(self, permissions: PermissionStore):
        self.permissions = permissions

    async def _deny(self, user: User, entity_type: EntityType, entity_id: int) -> None:
        if await self.permissions.check(user.id, entity_type, entity_id, AccessLevel.VIEW):
            raise Forbidden(f"You do not have sufficient access to this {EntityType(entity_type).value}")
        raise NotFound(f"{entity_label(entity_type)} not found")

    async def require(self, user: User, entity_type: EntityType, entity_id: int, level: AccessLevel) -> None:
        if not await self.permissions.check(user.id, entity_type, entity_id, level):
            await self._deny(user, entity_type, entity_id)

    async def require_owner(self, user: User, entity_type: EntityType, entity_id: int) -> None:
        if not await self.permissions.is_owner(user.id, entity_type, entity_id):
            await self._deny(user, entity_type, entity_id)


async def get_uow(db: AsyncSession = Depends(get_db)) -> UnitOfWork:
    return UnitOfWork(db)


async def get_permission_store(db: AsyncSession = Depends(get_db)) -> PermissionStore:
    return PermissionStore(db)


async def get_authorization_gate(
    permissions: PermissionStore = Depends(get_permission_store),
) -> AuthorizationGate:
    return AuthorizationGate(permissions)


async def get_invitation_manager(uow: UnitOfWork = Depends(get_uow)) -> InvitationManager:
    return InvitationManager(uow)


async def get_public_share_gateway(uow: UnitOfWork = Depends(get_uow)) -> PublicShareGateway:
    return PublicShareGateway(uow)


async def get_refresh_store(redis_client: redis.Redis = Depends(get_redis)) -> RefreshSessionStore:
    return RefreshSessionStore(redis_client)


def get_field_encryption(request: Request) -> FieldEncryption:
    """The cipher loaded at startup from APP_ENCRYPTION_KEY"""
    field_encryption = getattr(request.app.state, "field_encryption", None)
    if field_encryption is None:
        raise ConfigurationError()
    return field_encryption


async def set_entity_public(
    entity_type: EntityType,
    entity_id: int,
    toggle: PublicToggle,
    current_user: User,
    gate: AuthorizationGate,
    gateway: PublicShareGateway,
) -> dict:
    """Owner-only public/private switch shared by the notes and folders routers"""
    await gate.require_owner(current_user, entity_type, entity_id)
    entity = await gateway.set_public(entity_type, entity_id, toggle.isPublic)
    visibility = "public" if toggle.isPublic else "private"
    return {
        "message": f"{entity_label(entity_type)} set to {visibility}",
        "entity": share_state(entity),
    }
