"""
Invitation lifecycle.

An invitation offers access to a note or folder to an email address. It is
created ``pending`` and moves exactly once, to ``accepted`` or ``declined``.
Expiry is never written back as a status of its own: an invitation past
``expires_at`` keeps its stored status and is filtered out wherever it is read
or acted on. Only re-inviting the same address closes an expired invitation,
as ``declined``, so at most one stored ``pending`` row exists per entity and
email.

Accepting flips the status and creates the Permission in one transaction.
The status change is a conditional UPDATE guarded on ``status = 'pending'``,
so of two concurrent accepts only one can win; the loser sees the new status
and fails with ``InvalidState``.
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from app.core.config import settings
from app.core.database import UnitOfWork
from app.core.exceptions import Conflict, Expired, Forbidden, InvalidState, NotFound, Unauthorized
from app.core.timeutils import as_utc, utcnow
from app.models.enums import AccessLevel, EntityType, InvitationStatus
from app.models.invitation import Invitation
from app.models.permission import Permission
from app.models.user import User
from app.services.permissions import PermissionStore, entity_label

logger = logging.getLogger(__name__)


def generate_invitation_token() -> str:
    return secrets.token_hex(32)


class InvitationManager:
    def __init__(self, uow: UnitOfWork, clock: Callable[[], datetime] = utcnow):
        self.uow = uow
        self.db = uow.session
        self.permissions = PermissionStore(self.db)
        self.clock = clock

    def is_expired(self, invitation: Invitation) -> bool:
        return as_utc(invitation.expires_at) <= self.clock()

    async def create(
        self,
        inviter_id: int,
        entity_type: EntityType,
        entity_id: int,
        invitee_email: str,
        access_level: AccessLevel,
    ) -> Invitation:
        entity_type = EntityType(entity_type)
        access_level = AccessLevel(access_level)
        invitee_email = invitee_email.strip().lower()

        async with self.uow.transaction():
            entity = await self.permissions.get_entity(entity_type, entity_id)
            if entity is None:
                raise NotFound(f"{entity_label(entity_type)} not found")
            if entity.owner_id != inviter_id:
                raise Forbidden(f"You do not have permission to share this {entity_type.value}")

            if await self.permissions.find_for_email(entity_type, entity_id, invitee_email) is not None:
                raise Conflict("User already has access to this entity")
            stale = await self._find_pending(entity_type, entity_id, invitee_email)
            if stale is not None:
                if not self.is_expired(stale):
                    raise Conflict("There is already a pending invitation for this user and entity")
                # At most one stored pending row per tuple; an expired one is closed out first
                await self._transition(stale, InvitationStatus.DECLINED)
                logger.info("Retired expired invitation %s before re-inviting %s", stale.id, invitee_email)

            now = self.clock()
            invitation = Invitation(
                inviter_id=inviter_id,
                invitee_email=invitee_email,
                entity_type=entity_type,
                entity_id=entity_id,
                access_level=access_level,
                token=generate_invitation_token(),
                status=InvitationStatus.PENDING,
                expires_at=now + timedelta(days=settings.INVITATION_EXPIRE_DAYS),
                created_at=now,
            )
            self.db.add(invitation)
            try:
                await self.db.flush()
            except IntegrityError:
                raise Conflict("There is already a pending invitation for this user and entity") from None

        logger.info(
            "User %s invited %s to %s %s (%s)",
            inviter_id, invitee_email, entity_type.value, entity_id, access_level.value,
        )
        return invitation

    async def list_pending(self, user_email: str) -> List[Invitation]:
        """Live invitations addressed to ``user_email``, newest first"""
        result = await self.db.execute(
            select(Invitation)
            .options(selectinload(Invitation.inviter))
            .where(
                and_(
                    func.lower(Invitation.invitee_email) == user_email.lower(),
                    Invitation.status == InvitationStatus.PENDING,
                    Invitation.expires_at > self.clock(),
                )
            )
            .order_by(Invitation.created_at.desc(), Invitation.id.desc())
        )
        return list(result.scalars().all())

    async def get_by_token(self, token: str) -> Invitation:
        """Look up a live invitation by its secret token, without authentication"""
        result = await self.db.execute(
            select(Invitation)
            .options(selectinload(Invitation.inviter))
            .where(
                and_(
                    Invitation.token == token,
                    Invitation.status == InvitationStatus.PENDING,
                    Invitation.expires_at > self.clock(),
                )
            )
        )
        invitation = result.scalar_one_or_none()
        if invitation is None:
            raise NotFound("Invitation not found or no longer valid")
        return invitation

    async def accept(self, invitation_id: int, acting_user_id: int) -> Tuple[Invitation, Permission]:
        async with self.uow.transaction():
            invitation = await self._load_addressed(invitation_id, acting_user_id)
            await self._transition(invitation, InvitationStatus.ACCEPTED)
            permission = await self.permissions.create(
                acting_user_id,
                invitation.entity_type,
                invitation.entity_id,
                invitation.access_level,
            )

        logger.info("User %s accepted invitation %s", acting_user_id, invitation.id)
        return invitation, permission

    async def decline(self, invitation_id: int, acting_user_id: int) -> Invitation:
        async with self.uow.transaction():
            invitation = await self._load_addressed(invitation_id, acting_user_id)
            await self._transition(invitation, InvitationStatus.DECLINED)

        logger.info("User %s declined invitation %s", acting_user_id, invitation.id)
        return invitation

    async def _find_pending(self, entity_type: EntityType, entity_id: int, email: str) -> Optional[Invitation]:
        result = await self.db.execute(
            select(Invitation).where(
                and_(
                    Invitation.entity_type == entity_type,
                    Invitation.entity_id == entity_id,
                    func.lower(Invitation.invitee_email) == email.lower(),
                    Invitation.status == InvitationStatus.PENDING,
                )
            )
        )
        return result.scalars().first()

    async def _load_addressed(self, invitation_id: int, acting_user_id: int) -> Invitation:
        """Fetch an invitation and run the addressee and lifecycle checks, in order"""
        user = await self.db.get(User, acting_user_id)
        if user is None:
            raise Unauthorized("User not found")

        result = await self.db.execute(
            select(Invitation).where(Invitation.id == invitation_id).with_for_update()
        )
        invitation = result.scalar_one_or_none()
        if invitation is None:
            raise NotFound("Invitation not found")

        # Invitations are addressed to an email, not a user id
        if invitation.invitee_email.lower() != user.email.lower():
            raise Forbidden("This invitation is not addressed to you")

        self._ensure_pending(invitation)
        return invitation

    def _ensure_pending(self, invitation: Invitation) -> None:
        status = InvitationStatus(invitation.status)
        if status != InvitationStatus.PENDING:
            raise InvalidState(f"Invitation has already been {status.value}")
        if self.is_expired(invitation):
            raise Expired("Invitation has expired")

    async def _transition(self, invitation: Invitation, new_status: InvitationStatus) -> None:
        result = await self.db.execute(
            update(Invitation)
            .where(
                and_(
                    Invitation.id == invitation.id,
                    Invitation.status == InvitationStatus.PENDING,
                )
            )
            .values(status=new_status)
        )
        if result.rowcount != 1:
            await self.db.refresh(invitation)
            raise InvalidState(f"Invitation has already been {InvitationStatus(invitation.status).value}")
