# backend/servicespot/repositories/user_repository.py
"""
User Repository for the ServiceSpot bookings core.

Read-mostly lookups used by the user directory.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.enums import RoleName
from ..models.user import User
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    """Repository for User data access."""

    def __init__(self, db: Session):
        """Initialize with User model."""
        super().__init__(db, User)
        self.logger = logging.getLogger(__name__)

    def get_by_email(self, email: str) -> Optional[User]:
        return self.find_one_by(email=email.lower())

    def get_by_role(self, role: RoleName) -> List[User]:
        return self._execute_query(
            self._build_query().filter(User.role == role.value).order_by(User.name)
        )
