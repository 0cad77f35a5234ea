from .user import User
from .folder import Folder
from .note import Note
from .permission import Permission
from .invitation import Invitation
from .enums import AccessLevel, EntityType, InvitationStatus

__all__ = [
    "User", "Folder", "Note", "Permission", "Invitation",
    "AccessLevel", "EntityType", "InvitationStatus",
]
