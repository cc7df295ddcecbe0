import datetime
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, JSON, String
from sqlalchemy.orm import relationship

from gamehub.core.database import Base

DEFAULT_AVATAR = "/images/avatar-default.png"

class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    username = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=True) # null for Google-only accounts
    google_id = Column(String, unique=True, index=True, nullable=True)
    avatar = Column(String, default=DEFAULT_AVATAR)
    is_admin = Column(Boolean, default=False)

    is_email_verified = Column(Boolean, default=False)
    email_verification_code = Column(String, nullable=True)
    email_verification_expire = Column(DateTime, nullable=True)
    password_reset_token = Column(String, nullable=True, index=True) # sha256 of the emailed token
    password_reset_expire = Column(DateTime, nullable=True)

    is_online = Column(Boolean, default=False)
    last_seen = Column(DateTime, nullable=True)
    is_banned = Column(Boolean, default=False)
    ban_reason = Column(String, nullable=True)
    ban_expire = Column(DateTime, nullable=True)

    # UserStats / UserSettings documents, always replaced whole
    stats = Column(JSON, nullable=False, default=dict)
    settings = Column(JSON, nullable=False, default=dict)

    # user ids; friend_requests holds pending incoming requests
    friends = Column(JSON, nullable=False, default=list)
    friend_requests = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime, default=datetime.datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    notifications = relationship("Notification", back_populates="user")
