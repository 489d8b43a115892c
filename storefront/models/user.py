"""
User model
Only the profile fields the order subsystem denormalizes are kept here
"""

from sqlalchemy import Column, String, Boolean, Enum, Uuid
import uuid
import enum

from .base import Base, TimestampedModel

class UserRole(str, enum.Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    SUPPORT = "support"
    USER = "user"

class User(Base, TimestampedModel):
    """Customer or staff account"""

    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Identity
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(150), nullable=True)
    role = Column(
        Enum(UserRole, values_callable=lambda e: [m.value for m in e], name="user_role"),
        default=UserRole.USER,
        nullable=False
    )
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    # Contact details copied into orders at creation time
    phone = Column(String(30))
    address = Column(String(500))
    region = Column(String(100))
