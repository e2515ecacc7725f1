from datetime import datetime
from enum import Enum

from sqlalchemy import Column, Integer, String, DateTime, Boolean

from signoff.db.base import Base


class UserRole(str, Enum):
    ADMIN = "admin"
    CONSULTANT = "consultant"
    CLIENT = "client"  # read-only


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    role = Column(String(50), nullable=False, default=UserRole.CONSULTANT.value)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<User {self.email} [{self.role}]>"
