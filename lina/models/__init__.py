from lina.models.user import User
from lina.models.user_record import UserRecord

__all__ = [
    "User",
    "UserRecord",
]
