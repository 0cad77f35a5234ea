"""
Anonymous access to notes and folders through opaque share tokens.

A token exists only while its entity is public: switching an entity private
clears the token, and switching it public again mints a new one. Lookups
match on the token *and* ``is_public`` so a stale token can never resolve.
"""

import logging
import secrets
from typing import Any, Dict, Set

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import selectinload

from app.core.database import UnitOfWork
from app.core.exceptions import NotFound
from app.models.enums import EntityType
from app.models.folder import Folder
from app.models.note import Note
from app.services.permissions import Entity, entity_label, entity_model

logger = logging.getLogger(__name__)


def generate_share_token() -> str:
    """256 bits from the OS CSPRNG, URL-safe"""
    return secrets.token_urlsafe(32)


class PublicShareGateway:
    def __init__(self, uow: UnitOfWork):
        self.uow = uow
        self.db = uow.session

    async def set_public(self, entity_type: EntityType, entity_id: int, is_public: bool) -> Entity:
        """
        Toggle public visibility. Ownership is checked by the caller.

        Concurrent toggles are last-write-wins.
        """
        entity_type = EntityType(entity_type)
        async with self.uow.transaction():
            entity = await self.db.get(entity_model(entity_type), entity_id)
            if entity is None:
                raise NotFound(f"{entity_label(entity_type)} not found")

            if is_public:
                # Already-public entities keep their live link
                if not entity.is_public or not entity.public_share_token:
                    entity.public_share_token = generate_share_token()
                entity.is_public = True
            else:
                entity.is_public = False
                entity.public_share_token = None

        logger.info(
            "%s %s set to %s",
            entity_label(entity_type), entity_id, "public" if is_public else "private",
        )
        return entity

    async def resolve_note(self, token: str) -> Note:
        if not token:
            raise NotFound("Note not found or not public")

        result = await self.db.execute(
            select(Note)
            .options(selectinload(Note.owner))
            .where(and_(Note.public_share_token == token, Note.is_public.is_(True)))
        )
        note = result.scalar_one_or_none()
        if note is None:
            raise NotFound("Note not found or not public")
        return note

    async def resolve_folder(self, token: str) -> Dict[str, Any]:
        """
        Public folder with its visible contents.

        Children are included only when they are public themselves or belong
        to the root folder's owner, so another user's private note filed under
        a public folder stays hidden.
        """
        if not token:
            raise NotFound("Folder not found or not public")

        result = await self.db.execute(
            select(Folder)
            .options(selectinload(Folder.owner))
            .where(and_(Folder.public_share_token == token, Folder.is_public.is_(True)))
        )
        folder = result.scalar_one_or_none()
        if folder is None:
            raise NotFound("Folder not found or not public")

        tree = await self._folder_tree(folder, folder.owner_id, set())
        tree["owner"] = {"id": folder.owner.id, "email": folder.owner.email}
        return tree

    async def _folder_tree(self, folder: Folder, root_owner_id: int, visited: Set[int]) -> Dict[str, Any]:
        visited.add(folder.id)

        notes = await self.db.execute(
            select(Note)
            .where(
                and_(
                    Note.folder_id == folder.id,
                    or_(Note.is_public.is_(True), Note.owner_id == root_owner_id),
                )
            )
            .order_by(Note.id)
        )
        sub_folders = await self.db.execute(
            select(Folder)
            .where(
                and_(
                    Folder.parent_id == folder.id,
                    or_(Folder.is_public.is_(True), Folder.owner_id == root_owner_id),
                )
            )
            .order_by(Folder.id)
        )

        children = []
        for sub_folder in sub_folders.scalars().all():
            if sub_folder.id in visited:
                continue
            children.append(await self._folder_tree(sub_folder, root_owner_id, visited))

        return {
            "id": folder.id,
            "name": folder.name,
            "is_public": folder.is_public,
            "created_at": folder.created_at,
            "updated_at": folder.updated_at,
            "notes": [
                {
                    "id": note.id,
                    "title": note.title,
                    "content_markdown": note.content_markdown,
                    "is_public": note.is_public,
                    "created_at": note.created_at,
                    "updated_at": note.updated_at,
                }
                for note in notes.scalars().all()
            ],
            "sub_folders": children,
        }


def share_state(entity: Entity) -> Dict[str, Any]:
    return {"is_public": entity.is_public, "public_share_token": entity.public_share_token}
