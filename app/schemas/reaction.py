from pydantic import BaseModel


class ReactionRequest(BaseModel):
    emoji: str
