from fastapi import APIRouter, Depends

from app.api.deps import get_public_share_gateway
from app.schemas.note import PublicFolderResponse, PublicNoteResponse
from app.services.public_share import PublicShareGateway

router = APIRouter()


@router.get("/notes/{token}", response_model=PublicNoteResponse)
async def get_public_note(token: str, gateway: PublicShareGateway = Depends(get_public_share_gateway)):
    """Get a publicly shared note by token (no authentication)"""
    return await gateway.resolve_note(token)


@router.get("/folders/{token}", response_model=PublicFolderResponse)
async def get_public_folder(token: str, gateway: PublicShareGateway = Depends(get_public_share_gateway)):
    """Get a publicly shared folder and its visible contents by token (no authentication)"""
    return await gateway.resolve_folder(token)
