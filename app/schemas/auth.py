from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    username: str
    password: str


class RegisterRequest(BaseModel):
    username: str = Field(min_length=2, max_length=30)
    password: str = Field(min_length=9)


class LoginResponse(BaseModel):
    user_id: str
    display_name: str
    is_admin: bool


class AuthIdentity(BaseModel):
    """Resolved caller of a request. Built from a validated session, never stored."""

    user_id: str | None
    auth_id: str | None = None
    display_name: str = ""
    is_admin: bool = False

    model_config = {"frozen": True}
