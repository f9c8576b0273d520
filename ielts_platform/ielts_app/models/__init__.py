"""Database models package."""

from .user import User, UserSecret
from .usage import ModelDailyUsage
from .practice import GeneratedTest

__all__ = [
    "User",
    "UserSecret",
    "ModelDailyUsage",
    "GeneratedTest",
]
