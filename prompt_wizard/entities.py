# prompt_wizard/entities.py
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Index,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

from typing import TypeAlias
UUID: TypeAlias = str

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
    )


class PromptHistory(Base):
    """
    One copied prompt. Rows are append-only: they are created on a copy
    action and otherwise only ever deleted.
    """
    __tablename__ = "prompt_history"

    id: Mapped[UUID] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[UUID] = mapped_column(String(36), nullable=False)

    title: Mapped[str] = mapped_column(
        String,
        nullable=False,
        server_default=text("''"),
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)

    # the Answer Set snapshot the content was composed from
    wizard_data: Mapped[dict[str, object]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    __table_args__ = (
        Index("ix_prompt_history_user_id", "user_id"),
    )


class UserLlmApi(Base, TimestampMixin):
    __tablename__ = "user_llm_apis"

    id: Mapped[UUID] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[UUID] = mapped_column(String(36), nullable=False)

    provider: Mapped[str] = mapped_column(String(20), nullable=False)  # openai, gemini, groq, deepseek
    api_key: Mapped[str] = mapped_column(Text, nullable=False)
    models: Mapped[list[str] | None] = mapped_column(JSON)

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    test_status: Mapped[str | None] = mapped_column(String(20))  # success, failure
    last_tested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("ix_user_llm_apis_user_id", "user_id"),
    )


class LlmSystemMessage(Base, TimestampMixin):
    __tablename__ = "llm_system_messages"

    id: Mapped[UUID] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_by_admin_id: Mapped[UUID] = mapped_column(String(36), nullable=False)
    is_default: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
