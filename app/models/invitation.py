from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, Index, text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.models.enums import AccessLevel, EntityType, InvitationStatus, enum_values


class Invitation(Base):
    __tablename__ = "invitations"
    __table_args__ = (
        Index("ix_invitation_entity_invitee", "entity_type", "entity_id", "invitee_email"),
        # One stored pending invitation per entity and invitee
        Index(
            "uq_invitation_pending_entity_invitee",
            "entity_type", "entity_id", "invitee_email",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    inviter_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    invitee_email = Column(String(255), nullable=False, index=True)
    entity_type = Column(Enum(EntityType, name="entity_type", values_callable=enum_values), nullable=False)
    entity_id = Column(Integer, nullable=False)
    access_level = Column(Enum(AccessLevel, name="access_level", values_callable=enum_values), nullable=False)
    token = Column(String(64), unique=True, nullable=False)
    # Expiry is derived from expires_at at read time, never stored as a status
    status = Column(
        Enum(InvitationStatus, name="invitation_status", values_callable=enum_values),
        nullable=False,
        default=InvitationStatus.PENDING,
    )
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    inviter = relationship("User", back_populates="sent_invitations")
