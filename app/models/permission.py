from sqlalchemy import Column, Integer, DateTime, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.models.enums import AccessLevel, EntityType, enum_values


class Permission(Base):
    __tablename__ = "permissions"
    __table_args__ = (
        # At most one grant per user per entity
        UniqueConstraint("user_id", "entity_type", "entity_id", name="uq_permission_user_entity"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    entity_type = Column(Enum(EntityType, name="entity_type", values_callable=enum_values), nullable=False)
    entity_id = Column(Integer, nullable=False, index=True)
    access_level = Column(Enum(AccessLevel, name="access_level", values_callable=enum_values), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="permissions")
