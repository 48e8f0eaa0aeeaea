# luukahead/app/schemas/user.py
from pydantic import BaseModel, ConfigDict, Field

USERNAME_PATTERN = r"^[A-Za-z0-9_-]+$"


# Form body for both /auth/login and /auth/register
class Credentials(BaseModel):
    username: str = Field(..., min_length=3, max_length=31, pattern=USERNAME_PATTERN)
    password: str = Field(..., min_length=6, max_length=255)


# Returned to the client; never carries the password hash
class UserResponse(BaseModel):
    id: str
    username: str
    has_password: bool
    google_linked: bool
    microsoft_linked: bool

    @classmethod
    def from_user(cls, user) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            has_password=bool(user.password_hash),
            google_linked=bool(user.google_id),
            microsoft_linked=bool(user.microsoft_id),
        )


class MessageResponse(BaseModel):
    message: str


class ProvidersResponse(BaseModel):
    google: bool
    microsoft: bool

    model_config = ConfigDict(frozen=True)
