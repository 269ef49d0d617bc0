# prompt_wizard/backend.py

import json
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from sqlalchemy.orm import sessionmaker

from prompt_wizard.answers import AnswerSet, read_text
from prompt_wizard.base_utils import BaseUtils
from prompt_wizard.catalog import Catalog, get_catalog
from prompt_wizard.composer import compose
from prompt_wizard.db_helpers import STEP_CACHE_TTL_SECONDS, create_session_factory, logger
from prompt_wizard.history_store import HistoryEntry, HistoryStore
from prompt_wizard.llm_client import ChatLlmClient, MaxRetryErrorsException
from prompt_wizard.llm_prompts import (
    CONNECTION_TEST_PROMPT,
    DEFAULT_SYSTEM_MESSAGE,
    DIAGRAM_PROMPT,
    DIAGRAM_SYSTEM_MESSAGE,
    ENHANCE_PROMPT,
)
from prompt_wizard.llm_settings import LlmSettingsStore, api_key_to_dict, system_message_to_dict
from prompt_wizard.step_cache import StepRecordCache
from prompt_wizard.steps import completed_steps, progress

# (provider, api_key, model_name) -> object exposing invoke(messages, retries=...)
ClientFactory = Callable[[str, str, Optional[str]], Any]

EXPORT_FILENAME_FORMAT = "prompt-%Y%m%d-%H%M%S.md"

# errors a single request may fail with without affecting the next one
REQUEST_ERRORS = (ValueError, RuntimeError, MaxRetryErrorsException)


def _default_client_factory(provider: str, api_key: str, model_name: Optional[str]) -> ChatLlmClient:
    return ChatLlmClient(provider, api_key, model_name=model_name)


def export_filename(timestamp: datetime) -> str:
    return timestamp.strftime(EXPORT_FILENAME_FORMAT)


class Backend(BaseUtils):
    def __init__(
        self,
        session_factory: sessionmaker | None = None,
        *,
        catalog: Catalog | None = None,
        client_factory: ClientFactory | None = None,
        step_cache: StepRecordCache | None = None,
    ):
        self.SessionFactory = session_factory or create_session_factory()
        self.catalog = catalog or get_catalog()
        self.client_factory = client_factory or _default_client_factory
        self.step_cache = step_cache or StepRecordCache(STEP_CACHE_TTL_SECONDS, self.catalog)

        self.history = HistoryStore(self.SessionFactory)
        self.llm_settings = LlmSettingsStore(self.SessionFactory)

    def process_request(self, request_data: dict) -> dict:
        """
        Entry point used by the HTTP layer. Expected failures of one request
        come back as an error response; anything else propagates.
        """
        try:
            return self._process_request_data(request_data)
        except REQUEST_ERRORS as e:
            logger.warning(f"Request {request_data.get('type')!r} failed: {e}")
            return {
                "status": "error",
                "message": str(e),
                "data": None,
            }

    def _process_request_data(self, request_data: dict) -> dict:
        """
        Core request handling logic.
        Takes a parsed JSON dict and returns the response_data dict.
        """
        request_type = request_data.get("type")
        payload = request_data.get("payload")
        if not isinstance(payload, Mapping):
            payload = {}
        user_id = request_data.get("user_id")
        user_id = str(user_id) if user_id else None
        session_id = request_data.get("session_id")

        try:
            preview = json.dumps(request_data, indent=2, default=str)
        except (TypeError, ValueError):
            preview = str(request_data)

        logger.debug(f"process_request request {preview}")

        response_data: Dict[str, Any] = {
            "status": "success",
            "message": "",
            "data": None,
        }

        if request_type == "compose":
            response_data["data"] = {"document": self.compose_document(payload)}

        elif request_type == "steps":
            response_data["data"] = self.handle_steps(session_id, payload)

        elif request_type == "catalog":
            response_data["data"] = self.handle_catalog(payload)

        elif request_type == "copy":
            response_data["data"] = self.handle_copy(user_id, payload)
            if response_data["data"]["entry"] is not None:
                response_data["message"] = "Prompt copied and saved to history."
            else:
                response_data["message"] = "Prompt copied."

        elif request_type == "list_history":
            self._require_user(user_id)
            response_data["data"] = [e.to_dict() for e in self.history.list(user_id)]

        elif request_type == "get_history":
            response_data["data"] = self.handle_get_history(user_id, payload)

        elif request_type == "delete_history":
            self.handle_delete_history(user_id, payload)
            response_data["message"] = "History entry deleted."

        elif request_type == "export":
            response_data["data"] = self.handle_export(user_id, payload)

        elif request_type == "enhance":
            response_data["data"] = self.handle_enhance(user_id, payload)

        elif request_type == "diagram":
            response_data["data"] = self.handle_diagram(user_id, payload)

        elif request_type == "add_api_key":
            self._require_user(user_id)
            row = self.llm_settings.add_api_key(
                user_id,
                read_text(payload, "provider"),
                read_text(payload, "api_key"),
                payload.get("models") if isinstance(payload.get("models"), list) else None,
            )
            response_data["data"] = api_key_to_dict(row)
            response_data["message"] = "API key added."

        elif request_type == "list_api_keys":
            self._require_user(user_id)
            response_data["data"] = [api_key_to_dict(r) for r in self.llm_settings.list_api_keys(user_id)]

        elif request_type == "delete_api_key":
            self._require_user(user_id)
            if not self.llm_settings.delete_api_key(user_id, read_text(payload, "id")):
                raise ValueError("API key not found.")
            response_data["message"] = "API key deleted."

        elif request_type == "set_active_api_key":
            self._require_user(user_id)
            self.llm_settings.set_active_api_key(user_id, read_text(payload, "id"))
            response_data["message"] = "Active API key updated."

        elif request_type == "test_connection":
            response_data["data"] = self.handle_test_connection(user_id, payload)

        elif request_type == "add_system_message":
            self._require_user(user_id)
            row = self.llm_settings.add_system_message(
                read_text(payload, "content"),
                user_id,
                is_default=bool(payload.get("is_default")),
            )
            response_data["data"] = system_message_to_dict(row)

        elif request_type == "list_system_messages":
            response_data["data"] = [
                system_message_to_dict(r) for r in self.llm_settings.list_system_messages()
            ]

        elif request_type == "set_default_system_message":
            self.llm_settings.set_default_system_message(read_text(payload, "id"))
            response_data["message"] = "Default system message updated."

        elif request_type == "delete_system_message":
            if not self.llm_settings.delete_system_message(read_text(payload, "id")):
                raise ValueError("System message not found.")
            response_data["message"] = "System message deleted."

        else:
            response_data["status"] = "error"
            response_data["message"] = f"Unknown request type: {request_type}"

        try:
            preview = json.dumps(response_data, indent=2, default=str)
        except (TypeError, ValueError):
            preview = str(response_data)

        logger.debug(f"response {preview}")

        return response_data

    # -----------------------
    # Helpers
    # -----------------------

    def _require_user(self, user_id: Optional[str]) -> str:
        if not user_id:
            raise ValueError("This operation requires an identified user.")
        return user_id

    def _answers_from_payload(self, payload: Any) -> AnswerSet:
        """
        Requests carry the Answer Set either as payload["answers"] or as the
        payload itself. Every request type reads it through AnswerSet.
        """
        if not isinstance(payload, Mapping):
            return AnswerSet()
        answers = payload.get("answers")
        if isinstance(answers, Mapping):
            return AnswerSet.from_payload(answers)
        return AnswerSet.from_payload(payload)

    def compose_document(self, payload: Any) -> str:
        return compose(self._answers_from_payload(payload), self.catalog)

    def _chat_for_user(self, user_id: Optional[str]):
        self._require_user(user_id)
        active = self.llm_settings.get_active_api_key(user_id)
        if active is None:
            raise ValueError("No active API key found for the user.")
        model_name = active.models[0] if active.models else None
        return self.client_factory(active.provider, active.api_key, model_name)

    def _system_message(self, fallback: str) -> str:
        row = self.llm_settings.get_default_system_message()
        return row.content if row is not None and row.content else fallback

    # -----------------------
    # Handlers
    # -----------------------

    def handle_steps(self, session_id: Optional[str], payload) -> dict:
        answers = self._answers_from_payload(payload)
        if session_id:
            record, changed = self.step_cache.refresh(str(session_id), answers)
        else:
            record, changed = completed_steps(answers, self.catalog), True
        return {
            "steps": record,
            "progress": progress(record),
            "changed": changed,
        }

    def handle_catalog(self, payload) -> dict:
        data = self.catalog.to_dict()
        system_type = read_text(payload, "system_type") if isinstance(payload, Mapping) else ""
        if system_type:
            data["specific_features_for_type"] = list(self.catalog.specific_features_for(system_type))
        return data

    def handle_copy(self, user_id: Optional[str], payload) -> dict:
        answers = self._answers_from_payload(payload)
        document = compose(answers, self.catalog)

        entry: Optional[HistoryEntry] = None
        if user_id and document:
            entry = self.history.save(user_id, document, answers)
        elif user_id:
            self.color_print(f"[HISTORY] Empty document not saved for user {user_id}", color="yellow")

        return {
            "document": document,
            "entry": entry.to_dict() if entry else None,
        }

    def handle_get_history(self, user_id: Optional[str], payload) -> dict:
        self._require_user(user_id)
        entry = self.history.get(user_id, read_text(payload, "id"))
        if entry is None:
            raise ValueError("History entry not found.")
        data = entry.to_dict()
        data["wizard_data"] = entry.wizard_data
        return data

    def handle_delete_history(self, user_id: Optional[str], payload) -> None:
        self._require_user(user_id)
        if not self.history.delete(user_id, read_text(payload, "id")):
            raise ValueError("History entry not found.")

    def export_history_entry(self, user_id: Optional[str], entry_id: str) -> Optional[dict]:
        if not user_id:
            return None
        entry = self.history.get(user_id, entry_id)
        if entry is None:
            return None
        return {
            "filename": export_filename(entry.timestamp),
            "content": entry.generated_text,
        }

    def handle_export(self, user_id: Optional[str], payload) -> dict:
        entry_id = read_text(payload, "id") if isinstance(payload, Mapping) else ""
        if entry_id:
            self._require_user(user_id)
            exported = self.export_history_entry(user_id, entry_id)
            if exported is None:
                raise ValueError("History entry not found.")
            return exported

        document = self.compose_document(payload)
        if not document:
            raise ValueError("Nothing to export: the prompt is empty.")
        return {
            "filename": export_filename(datetime.now(timezone.utc)),
            "content": document,
        }

    def handle_enhance(self, user_id: Optional[str], payload) -> dict:
        prompt = read_text(payload, "prompt") if isinstance(payload, Mapping) else ""
        if not prompt:
            prompt = self.compose_document(payload)
        if not prompt:
            raise ValueError("Nothing to enhance: the prompt is empty.")

        chat_llm = self._chat_for_user(user_id)
        messages = [
            SystemMessage(content=self._system_message(DEFAULT_SYSTEM_MESSAGE)),
            HumanMessage(content=self.unsafe_string_format(ENHANCE_PROMPT, PROMPT=prompt)),
        ]
        enhanced = chat_llm.invoke(messages)
        return {"original": prompt, "enhanced": enhanced}

    def handle_diagram(self, user_id: Optional[str], payload) -> dict:
        answers = self._answers_from_payload(payload)
        chat_llm = self._chat_for_user(user_id)

        messages = [
            SystemMessage(content=self._system_message(DIAGRAM_SYSTEM_MESSAGE)),
            HumanMessage(content=self.unsafe_string_format(DIAGRAM_PROMPT, PROJECT_DATA=answers.to_json())),
        ]
        raw = chat_llm.invoke(messages)
        return {"diagram": self.clean_triple_backticks(raw)}

    def handle_test_connection(self, user_id: Optional[str], payload) -> dict:
        self._require_user(user_id)
        key_id = read_text(payload, "id")
        row = self.llm_settings.get_api_key(user_id, key_id)
        if row is None:
            raise ValueError("API key not found.")

        model_name = row.models[0] if row.models else None
        error = None
        try:
            chat_llm = self.client_factory(row.provider, row.api_key, model_name)
            reply = chat_llm.invoke([HumanMessage(content=CONNECTION_TEST_PROMPT)], retries=1)
            status = "success" if reply else "failure"
            if not reply:
                error = f"No response from {row.provider} API"
        except REQUEST_ERRORS as e:
            status = "failure"
            error = str(e.__cause__ or e)
            logger.warning(f"[LLM-SETTINGS] Connection test failed for key {key_id}: {error}")

        self.llm_settings.record_test_result(row.id, status)
        return {"success": status == "success", "status": status, "error": error}
