from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Integer, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
import uuid

from app.db.base import Base

class MessageRole(str, enum.Enum):
    USER = "USER"
    ASSISTANT = "ASSISTANT"
    SYSTEM = "SYSTEM"

class ModerationStatus(str, enum.Enum):
    OK = "OK"
    BLOCKED = "BLOCKED"

class ProviderLogKind(str, enum.Enum):
    LLM = "LLM"
    MODERATION = "MODERATION"

class AppUser(Base):
    __tablename__ = "app_user"

    id = Column(String(64), primary_key=True)
    email = Column(String(255), nullable=True, unique=True)
    name = Column(String(255), nullable=True)
    language = Column(String(2), nullable=True)  # RU | EN
    preferences = Column(JSON, nullable=True)  # saved preference baseline

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    dialog = relationship("Dialog", back_populates="user", uselist=False, cascade="all, delete-orphan")

class Dialog(Base):
    __tablename__ = "dialog"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(64), ForeignKey("app_user.id"), nullable=False, unique=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), index=True)

    # Relationships
    user = relationship("AppUser", back_populates="dialog")
    messages = relationship("Message", back_populates="dialog", cascade="all, delete-orphan")

class Message(Base):
    __tablename__ = "message"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    dialog_id = Column(UUID(as_uuid=True), ForeignKey("dialog.id"), nullable=False, index=True)

    role = Column(String(20), nullable=False)  # USER, ASSISTANT, SYSTEM
    content = Column(Text, nullable=False)
    moderation_status = Column(String(20), nullable=False, default=ModerationStatus.OK.value, index=True)
    blocked_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    dialog = relationship("Dialog", back_populates="messages")

class ProviderLog(Base):
    __tablename__ = "provider_log"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    kind = Column(String(20), nullable=False)
    user_id = Column(String(64), nullable=True, index=True)
    dialog_id = Column(UUID(as_uuid=True), nullable=True)
    request = Column(JSON, nullable=True)
    response = Column(JSON, nullable=True)
    status = Column(String(20), nullable=True)
    latency_ms = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
