from pydantic import BaseModel
from datetime import datetime
from typing import Optional, List


class OwnerSummary(BaseModel):
    id: int
    email: str

    class Config:
        from_attributes = True


class PublicToggle(BaseModel):
    isPublic: bool


class ShareState(BaseModel):
    is_public: bool
    public_share_token: Optional[str] = None

    class Config:
        from_attributes = True


class PublicToggleResponse(BaseModel):
    message: str
    entity: ShareState


class PublicNoteResponse(BaseModel):
    id: int
    title: str
    content_markdown: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    owner: OwnerSummary

    class Config:
        from_attributes = True


class PublicFolderNote(BaseModel):
    id: int
    title: str
    content_markdown: Optional[str] = None
    is_public: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PublicFolderNode(BaseModel):
    id: int
    name: str
    is_public: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    notes: List[PublicFolderNote] = []
    sub_folders: List["PublicFolderNode"] = []


class PublicFolderResponse(PublicFolderNode):
    owner: OwnerSummary


PublicFolderNode.model_rebuild()
