from .user import UserCreate, UserResponse, UserLogin
from .note import PublicToggle, PublicToggleResponse, PublicNoteResponse, PublicFolderResponse
from .auth import Token, MessageResponse
from .invitation import (
    InvitationCreate,
    InvitationResponse,
    PendingInvitationResponse,
    InvitationAcceptResponse,
    InvitationDeclineResponse,
)
from .permission import UserAccessResponse

__all__ = [
    "UserCreate", "UserResponse", "UserLogin",
    "PublicToggle", "PublicToggleResponse", "PublicNoteResponse", "PublicFolderResponse",
    "Token", "MessageResponse",
    "InvitationCreate", "InvitationResponse", "PendingInvitationResponse",
    "InvitationAcceptResponse", "InvitationDeclineResponse",
    "UserAccessResponse",
]
