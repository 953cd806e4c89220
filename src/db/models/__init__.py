# SQLAlchemy models
from .base import Base
from .profile import LearnerProfileRecord

__all__ = [
    "Base",
    "LearnerProfileRecord",
]
