from pydantic import BaseModel
from typing import Optional

from app.schemas.note import OwnerSummary


class UserAccessResponse(BaseModel):
    permissionId: Optional[int] = None
    user: OwnerSummary
    accessLevel: str
    isOwner: bool
