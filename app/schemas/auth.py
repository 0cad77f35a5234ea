from pydantic import BaseModel


class Token(BaseModel):
    accessToken: str


class MessageResponse(BaseModel):
    message: str
