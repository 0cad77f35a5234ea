from fastapi import APIRouter
from app.api.v1.endpoints import auth, users, notes, folders, invitations, permissions, public

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(notes.router, prefix="/notes", tags=["notes"])
api_router.include_router(folders.router, prefix="/folders", tags=["folders"])
api_router.include_router(invitations.router, prefix="/invitations", tags=["invitations"])
api_router.include_router(permissions.router, prefix="/permissions", tags=["permissions"])
api_router.include_router(public.router, prefix="/public", tags=["public"])
