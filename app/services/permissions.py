"""
Permission store: who may do what to which note or folder.

Owners always have full access to their entities. Everyone else needs a
Permission row; ``edit`` implies ``view``. Grants are created by invitation
acceptance only and are never updated in place.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import Conflict, Forbidden, NotFound
from app.models.enums import AccessLevel, EntityType
from app.models.folder import Folder
from app.models.note import Note
from app.models.permission import Permission
from app.models.user import User

logger = logging.getLogger(__name__)

Entity = Union[Note, Folder]

ENTITY_MODELS = {
    EntityType.NOTE: Note,
    EntityType.FOLDER: Folder,
}


def entity_model(entity_type: EntityType):
    return ENTITY_MODELS[EntityType(entity_type)]


def entity_label(entity_type: EntityType) -> str:
    return EntityType(entity_type).value.capitalize()


class PermissionStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_entity(self, entity_type: EntityType, entity_id: int) -> Optional[Entity]:
        return await self.db.get(entity_model(entity_type), entity_id)

    async def is_owner(self, user_id: int, entity_type: EntityType, entity_id: int) -> bool:
        entity = await self.get_entity(entity_type, entity_id)
        return entity is not None and entity.owner_id == user_id

    async def get_grant(self, user_id: int, entity_type: EntityType, entity_id: int) -> Optional[Permission]:
        result = await self.db.execute(
            select(Permission).where(
                and_(
                    Permission.user_id == user_id,
                    Permission.entity_type == EntityType(entity_type),
                    Permission.entity_id == entity_id,
                )
            )
        )
        return result.scalar_one_or_none()

    async def check(
        self,
        user_id: int,
        entity_type: EntityType,
        entity_id: int,
        required_level: AccessLevel,
    ) -> bool:
        """True if the user owns the entity or holds a grant at least as strong as required"""
        if await self.is_owner(user_id, entity_type, entity_id):
            return True

        grant = await self.get_grant(user_id, entity_type, entity_id)
        if grant is None:
            return False
        return AccessLevel(grant.access_level).satisfies(required_level)

    async def find_for_email(self, entity_type: EntityType, entity_id: int, email: str) -> Optional[Permission]:
        result = await self.db.execute(
            select(Permission)
            .join(User, Permission.user_id == User.id)
            .where(
                and_(
                    Permission.entity_type == EntityType(entity_type),
                    Permission.entity_id == entity_id,
                    func.lower(User.email) == email.lower(),
                )
            )
        )
        return result.scalars().first()

    async def create(
        self,
        user_id: int,
        entity_type: EntityType,
        entity_id: int,
        access_level: AccessLevel,
    ) -> Permission:
        """
        Add a grant to the current transaction.

        Does not commit. A duplicate grant, whether seen up front or raced in by
        another writer and caught by the unique constraint, raises ``Conflict``
        and leaves the session needing a rollback.
        """
        if await self.get_grant(user_id, entity_type, entity_id) is not None:
            raise Conflict("User already has access to this entity")

        permission = Permission(
            user_id=user_id,
            entity_type=EntityType(entity_type),
            entity_id=entity_id,
            access_level=AccessLevel(access_level),
        )
        self.db.add(permission)
        try:
            await self.db.flush()
        except IntegrityError:
            logger.info(
                "Concurrent grant detected for user %s on %s %s",
                user_id, EntityType(entity_type).value, entity_id,
            )
            raise Conflict("User already has access to this entity") from None
        return permission

    async def list_users_with_access(self, entity_type: EntityType, entity_id: int) -> List[Dict[str, Any]]:
        """Owner plus every grantee of an entity"""
        entity = await self.get_entity(entity_type, entity_id)
        if entity is None:
            raise NotFound(f"{entity_label(entity_type)} not found")

        result = await self.db.execute(
            select(Permission)
            .options(selectinload(Permission.user))
            .where(
                and_(
                    Permission.entity_type == EntityType(entity_type),
                    Permission.entity_id == entity_id,
                )
            )
            .order_by(Permission.id)
        )
        users = [
            {
                "permissionId": permission.id,
                "user": {"id": permission.user.id, "email": permission.user.email},
                "accessLevel": AccessLevel(permission.access_level).value,
                "isOwner": permission.user_id == entity.owner_id,
            }
            for permission in result.scalars().all()
        ]

        if not any(entry["isOwner"] for entry in users):
            owner = await self.db.get(User, entity.owner_id)
            if owner is not None:
                users.append({
                    "permissionId": None,
                    "user": {"id": owner.id, "email": owner.email},
                    "accessLevel": "owner",
                    "isOwner": True,
                })
        return users

    async def revoke(self, permission_id: int, acting_user_id: int) -> Permission:
        """Delete a grant. Allowed for the entity owner or the grantee; does not commit."""
        permission = await self.db.get(Permission, permission_id)
        if permission is None:
            raise NotFound("Permission not found")

        is_grantee = permission.user_id == acting_user_id
        if not is_grantee and not await self.is_owner(acting_user_id, permission.entity_type, permission.entity_id):
            raise Forbidden("You do not have permission to revoke this access")

        await self.db.delete(permission)
        logger.info(
            "Revoked permission %s (user %s on %s %s) by user %s",
            permission.id, permission.user_id,
            EntityType(permission.entity_type).value, permission.entity_id, acting_user_id,
        )
        return permission
