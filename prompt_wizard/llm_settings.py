# prompt_wizard/llm_settings.py
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, sessionmaker

from prompt_wizard.db_helpers import logger
from prompt_wizard.entities import Base, LlmSystemMessage, UserLlmApi
from prompt_wizard.llm_client import PROVIDER_BASE_URLS

TEST_STATUSES = ("success", "failure")


def _mask_key(api_key: str) -> str:
    if len(api_key) <= 8:
        return "*" * len(api_key)
    return f"{api_key[:4]}...{api_key[-4:]}"


def api_key_to_dict(row: UserLlmApi, *, reveal: bool = False) -> Dict[str, Any]:
    return {
        "id": row.id,
        "provider": row.provider,
        "api_key": row.api_key if reveal else _mask_key(row.api_key),
        "models": list(row.models or []),
        "is_active": bool(row.is_active),
        "test_status": row.test_status or "untested",
        "last_tested_at": row.last_tested_at.isoformat() if row.last_tested_at else None,
    }


def system_message_to_dict(row: LlmSystemMessage) -> Dict[str, Any]:
    return {
        "id": row.id,
        "content": row.content,
        "is_default": bool(row.is_default),
    }


class LlmSettingsStore:
    """
    Per-user LLM API keys (one active at a time) and the admin-managed
    system messages used when calling a provider.
    """

    def __init__(self, session_factory: sessionmaker):
        self.SessionFactory = session_factory
        Base.metadata.create_all(session_factory.kw["bind"])

    # -----------------------
    # User API keys
    # -----------------------

    def add_api_key(
        self,
        user_id: str,
        provider: str,
        api_key: str,
        models: Optional[List[str]] = None,
    ) -> UserLlmApi:
        if not user_id or not provider or not api_key:
            raise ValueError("User ID, provider, and API key are required.")
        if provider not in PROVIDER_BASE_URLS:
            raise ValueError(f"Unsupported provider: {provider}")

        session: Session = self.SessionFactory()
        try:
            has_keys = (
                session.query(UserLlmApi)
                .filter(UserLlmApi.user_id == str(user_id))
                .count()
            )
            row = UserLlmApi(
                user_id=str(user_id),
                provider=provider,
                api_key=api_key,
                models=list(models or []),
                # the first key a user registers becomes the active one
                is_active=not has_keys,
            )
            session.add(row)
            session.commit()
            logger.info(f"[LLM-SETTINGS] Added {provider} key {row.id} for user {user_id}")
            return row
        finally:
            session.close()

    def list_api_keys(self, user_id: str) -> List[UserLlmApi]:
        if not user_id:
            return []
        session: Session = self.SessionFactory()
        try:
            return (
                session.query(UserLlmApi)
                .filter(UserLlmApi.user_id == str(user_id))
                .order_by(UserLlmApi.created_at.asc())
                .all()
            )
        finally:
            session.close()

    def delete_api_key(self, user_id: str, key_id: str) -> bool:
        if not key_id:
            raise ValueError("API Key ID is required for deletion.")
        session: Session = self.SessionFactory()
        try:
            deleted = (
                session.query(UserLlmApi)
                .filter(UserLlmApi.id == str(key_id))
                .filter(UserLlmApi.user_id == str(user_id))
                .delete(synchronize_session=False)
            )
            session.commit()
            return bool(deleted)
        finally:
            session.close()

    def set_active_api_key(self, user_id: str, key_id: str) -> None:
        if not user_id or not key_id:
            raise ValueError("User ID and API Key ID are required to set active API.")

        session: Session = self.SessionFactory()
        try:
            target = (
                session.query(UserLlmApi)
                .filter(UserLlmApi.id == str(key_id))
                .filter(UserLlmApi.user_id == str(user_id))
                .one_or_none()
            )
            if target is None:
                raise ValueError(f"API key not found: {key_id}")

            # single transaction: deactivate the others, activate the target
            (
                session.query(UserLlmApi)
                .filter(UserLlmApi.user_id == str(user_id))
                .filter(UserLlmApi.id != str(key_id))
                .update({UserLlmApi.is_active: False}, synchronize_session=False)
            )
            target.is_active = True
            session.commit()
        finally:
            session.close()

    def get_active_api_key(self, user_id: str) -> Optional[UserLlmApi]:
        if not user_id:
            return None
        session: Session = self.SessionFactory()
        try:
            return (
                session.query(UserLlmApi)
                .filter(UserLlmApi.user_id == str(user_id))
                .filter(UserLlmApi.is_active.is_(True))
                .order_by(UserLlmApi.created_at.asc())
                .first()
            )
        finally:
            session.close()

    def get_api_key(self, user_id: str, key_id: str) -> Optional[UserLlmApi]:
        session: Session = self.SessionFactory()
        try:
            return (
                session.query(UserLlmApi)
                .filter(UserLlmApi.id == str(key_id))
                .filter(UserLlmApi.user_id == str(user_id))
                .one_or_none()
            )
        finally:
            session.close()

    def record_test_result(self, key_id: str, status: str) -> None:
        if status not in TEST_STATUSES:
            raise ValueError(f"Unknown test status: {status}")
        session: Session = self.SessionFactory()
        try:
            row = session.query(UserLlmApi).filter(UserLlmApi.id == str(key_id)).one_or_none()
            if row is None:
                raise ValueError(f"API key not found: {key_id}")
            row.test_status = status
            row.last_tested_at = datetime.now(timezone.utc)
            session.commit()
        finally:
            session.close()

    # -----------------------
    # System messages
    # -----------------------

    def add_system_message(self, content: str, admin_id: str, is_default: bool = False) -> LlmSystemMessage:
        if not content or not admin_id:
            raise ValueError("Content and admin ID are required.")

        session: Session = self.SessionFactory()
        try:
            if is_default:
                self._clear_default_unlocked(session)
            row = LlmSystemMessage(
                content=content,
                created_by_admin_id=str(admin_id),
                is_default=bool(is_default),
            )
            session.add(row)
            session.commit()
            return row
        finally:
            session.close()

    def list_system_messages(self) -> List[LlmSystemMessage]:
        session: Session = self.SessionFactory()
        try:
            return (
                session.query(LlmSystemMessage)
                .order_by(LlmSystemMessage.created_at.asc())
                .all()
            )
        finally:
            session.close()

    def set_default_system_message(self, message_id: str) -> None:
        session: Session = self.SessionFactory()
        try:
            row = (
                session.query(LlmSystemMessage)
                .filter(LlmSystemMessage.id == str(message_id))
                .one_or_none()
            )
            if row is None:
                raise ValueError(f"System message not found: {message_id}")
            self._clear_default_unlocked(session, keep_id=row.id)
            row.is_default = True
            session.commit()
        finally:
            session.close()

    def get_default_system_message(self) -> Optional[LlmSystemMessage]:
        session: Session = self.SessionFactory()
        try:
            return (
                session.query(LlmSystemMessage)
                .filter(LlmSystemMessage.is_default.is_(True))
                .first()
            )
        finally:
            session.close()

    def delete_system_message(self, message_id: str) -> bool:
        session: Session = self.SessionFactory()
        try:
            row = (
                session.query(LlmSystemMessage)
                .filter(LlmSystemMessage.id == str(message_id))
                .one_or_none()
            )
            if row is None:
                return False
            if row.is_default:
                raise ValueError("Cannot delete the default system message. Set another default first.")
            session.delete(row)
            session.commit()
            return True
        finally:
            session.close()

    def _clear_default_unlocked(self, session: Session, keep_id: str | None = None) -> None:
        q = session.query(LlmSystemMessage).filter(LlmSystemMessage.is_default.is_(True))
        if keep_id:
            q = q.filter(LlmSystemMessage.id != keep_id)
        q.update({LlmSystemMessage.is_default: False}, synchronize_session=False)
