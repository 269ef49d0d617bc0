# prompt_wizard/history_store.py
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, sessionmaker

from prompt_wizard.answers import read_text, resolve_choice, snapshot
from prompt_wizard.db_helpers import logger
from prompt_wizard.entities import Base, PromptHistory

LABEL_OBJECTIVE_CHARS = 60


@dataclass(frozen=True)
class HistoryEntry:
    id: str
    timestamp: datetime
    generated_text: str
    derived_label: str
    user_id: str = ""
    wizard_data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: PromptHistory) -> "HistoryEntry":
        return cls(
            id=row.id,
            timestamp=row.created_at,
            generated_text=row.content,
            derived_label=row.title,
            user_id=row.user_id,
            wizard_data=dict(row.wizard_data or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "generated_text": self.generated_text,
            "derived_label": self.derived_label,
        }


def derive_label(answers: Any, timestamp: datetime) -> str:
    """
    "Sistema <type> - <first line of the objective>", or a timestamped
    fallback when neither is filled.
    """
    snap = snapshot(answers)
    parts: List[str] = []

    system_type = resolve_choice(snap, "systemType", "systemTypeCustom")
    if system_type:
        parts.append(f"Sistema {system_type}")

    objective = read_text(snap, "objective").splitlines()
    if objective:
        first = objective[0].strip()
        if len(first) > LABEL_OBJECTIVE_CHARS:
            first = first[:LABEL_OBJECTIVE_CHARS].rstrip() + "..."
        if first:
            parts.append(first)

    if parts:
        return " - ".join(parts)
    return f"Prompt {timestamp.strftime('%Y-%m-%d %H:%M')}"


class HistoryStore:
    """
    Append-only store of copied prompts, scoped by user.
    """

    def __init__(self, session_factory: sessionmaker):
        self.SessionFactory = session_factory
        Base.metadata.create_all(session_factory.kw["bind"])

    def save(self, user_id: str, generated_text: str, wizard_data: Any = None) -> HistoryEntry:
        if not user_id:
            raise ValueError("save requires an identified user")
        if not generated_text:
            raise ValueError("save requires a non-empty document")

        snap = dict(snapshot(wizard_data))
        now = datetime.now(timezone.utc)

        session: Session = self.SessionFactory()
        try:
            row = PromptHistory(
                user_id=str(user_id),
                title=derive_label(snap, now),
                content=generated_text,
                wizard_data=snap,
                created_at=now,
            )
            session.add(row)
            session.commit()
            logger.info(f"[HISTORY] Saved entry {row.id} for user {user_id}")
            return HistoryEntry.from_row(row)
        finally:
            session.close()

    def list(self, user_id: str) -> List[HistoryEntry]:
        session: Session = self.SessionFactory()
        try:
            rows = (
                session.query(PromptHistory)
                .filter(PromptHistory.user_id == str(user_id))
                .order_by(PromptHistory.created_at.desc())
                .all()
            )
            return [HistoryEntry.from_row(r) for r in rows]
        finally:
            session.close()

    def get(self, user_id: str, entry_id: str) -> Optional[HistoryEntry]:
        session: Session = self.SessionFactory()
        try:
            row = (
                session.query(PromptHistory)
                .filter(PromptHistory.id == str(entry_id))
                .filter(PromptHistory.user_id == str(user_id))
                .one_or_none()
            )
            return HistoryEntry.from_row(row) if row else None
        finally:
            session.close()

    def delete(self, user_id: str, entry_id: str) -> bool:
        session: Session = self.SessionFactory()
        try:
            deleted = (
                session.query(PromptHistory)
                .filter(PromptHistory.id == str(entry_id))
                .filter(PromptHistory.user_id == str(user_id))
                .delete(synchronize_session=False)
            )
            session.commit()
            if deleted:
                logger.info(f"[HISTORY] Deleted entry {entry_id} for user {user_id}")
            return bool(deleted)
        finally:
            session.close()
