from uuid import UUID

from pydantic import BaseModel


class TokenData(BaseModel):
    """Verified claims extracted from an access token."""

    user_id: UUID
    username: str
    jti: str
