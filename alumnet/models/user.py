"""User model for SQLModel."""
from sqlmodel import SQLModel, Field
from datetime import datetime
from enum import Enum
from typing import Optional
import uuid


class UserRole(str, Enum):
    """Roles issued by the identity provider."""
    STUDENT = "student"
    ALUMNI = "alumni"
    ADMIN = "admin"


class User(SQLModel, table=True):
    """
    Local projection of the alumni directory.

    Accounts are created and verified by the identity/profile services; the
    messaging core only reads them to render participants and to check the
    admin-bypass rules (peer must be verified, bulk recipients must be alumni).
    """
    __tablename__ = "users"

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        primary_key=True,
        index=True
    )
    name: str = Field(max_length=100)
    email: str = Field(unique=True, index=True, max_length=255)
    role: str = Field(default=UserRole.STUDENT.value, max_length=20)
    is_verified: bool = Field(default=False)
    batch: Optional[int] = Field(default=None)
    profile_url: Optional[str] = Field(default=None, max_length=500)
    current_company: Optional[str] = Field(default=None, max_length=255)
    current_position: Optional[str] = Field(default=None, max_length=255)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def public_profile(self) -> dict:
        """Fields safe to show next to a message or in a conversation list."""
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "profileUrl": self.profile_url,
        }
