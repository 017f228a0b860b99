"""User repository for database operations."""

from app.models import UserDB
from app.repositories.base import BaseRepository


class UserRepository(BaseRepository[UserDB]):
    """Read access to author accounts."""

    model = UserDB
    id_field = "uuid"

    async def create(self, username: str, email: str, display_name: str | None = None) -> UserDB:
        user = UserDB(username=username, email=email, display_name=display_name)
        return await self._add_and_refresh(user)
