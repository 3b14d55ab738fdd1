from .base import Base
from .user import UserModel

__all__ = ["Base", "UserModel"]
