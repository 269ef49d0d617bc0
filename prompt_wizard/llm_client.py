import asyncio
import hashlib
import threading
import random
import time
import traceback
from typing import Callable, TypeVar, Any, Dict, List, Optional

from openai import OpenAI
from langchain_core.messages import HumanMessage, AIMessage, SystemMessage, BaseMessage

from prompt_wizard.db_helpers import LLM_RETRIES, LLM_TIMEOUT, logger

T = TypeVar("T")

PROVIDER_BASE_URLS: Dict[str, Optional[str]] = {
    "openai": None,
    "gemini": "https://generativelanguage.googleapis.com/v1beta/openai/",
    "groq": "https://api.groq.com/openai/v1",
    "deepseek": "https://api.deepseek.com/v1",
}

DEFAULT_MODELS: Dict[str, str] = {
    "openai": "gpt-3.5-turbo",
    "gemini": "gemini-1.5-flash",
    "groq": "llama3-8b-8192",
    "deepseek": "deepseek-chat",
}


class MaxRetryErrorsException(Exception):
    pass


_BACKOFF_START_SECONDS = 30.0
_BACKOFF_MAX_SECONDS = 600.0


class BackoffState:
    """
    429/timeout backoff shared by every call made with one provider key.
    """

    def __init__(self):
        self.lock = threading.Lock()
        self.wait_until = 0.0
        self.backoff_seconds = _BACKOFF_START_SECONDS


# (provider, key fingerprint) -> BackoffState
_backoff_states_lock = threading.Lock()
_backoff_states: Dict[tuple, BackoffState] = {}
_default_backoff = BackoffState()


def backoff_state_for(provider: str, api_key: str) -> BackoffState:
    fingerprint = hashlib.sha256(api_key.encode("utf-8")).hexdigest()
    with _backoff_states_lock:
        state = _backoff_states.get((provider, fingerprint))
        if state is None:
            state = BackoffState()
            _backoff_states[(provider, fingerprint)] = state
        return state


def call_with_retries_sync(
    fn: Callable[[], T],
    *,
    retries: int = 3,
    log: Callable[[str], None] | None = None,
    backoff: BackoffState | None = None,
) -> T:
    """
    Run a sync LLM call with 429/timeout backoff + retries.
    The backoff window belongs to `backoff`, so a rate limit hit by one key
    never stalls calls made with another.
    """
    last_exception: Exception | None = None
    state = backoff or _default_backoff

    def _is_timeout_error(e: Exception) -> bool:
        if isinstance(e, asyncio.TimeoutError):
            return True
        msg = repr(e)
        return "TimeoutError" in msg or "timed out" in msg.lower()

    def _is_rate_limited_error(e: Exception) -> bool:
        msg = str(e)
        return (
            "429" in msg
            and (
                "RESOURCE_EXHAUSTED" in msg
                or "rate limit" in msg.lower()
                or "Too Many Requests" in msg
            )
        )

    def _respect_backoff() -> None:
        while True:
            with state.lock:
                now = time.monotonic()
                wait = state.wait_until - now
            if wait <= 0:
                return
            time.sleep(min(wait, 1.0))

    def _register_429_and_get_delay() -> float:
        with state.lock:
            now = time.monotonic()
            base = state.backoff_seconds
            delay = random.uniform(base * 0.95, base * 1.35)
            state.backoff_seconds = min(state.backoff_seconds * 2, _BACKOFF_MAX_SECONDS)
            state.wait_until = max(state.wait_until, now + delay)
            return delay

    def _reset_backoff_on_success() -> None:
        with state.lock:
            state.backoff_seconds = max(1.0, state.backoff_seconds * 0.5)

    for attempt in range(retries):
        _respect_backoff()
        start_time = time.time()
        try:
            result = fn()
            _reset_backoff_on_success()
            return result
        except Exception as e:
            elapsed = time.time() - start_time
            last_exception = e

            if _is_rate_limited_error(e) or _is_timeout_error(e):
                delay = _register_429_and_get_delay()
                msg = f"Attempt {attempt+1} got 429/timeout, backing off ~{delay:.1f}s."
            else:
                msg = f"Attempt {attempt+1} failed."

            if log:
                log(f"{msg} (elapsed={elapsed:.2f}s): {e}\n{traceback.format_exc()}")

    raise MaxRetryErrorsException(f"All {retries} retry attempts failed.") from last_exception


class ChatLlmClient:
    """
    Minimal wrapper for chat-style use against any supported provider:

        text = chat_llm.invoke([SystemMessage(...), HumanMessage(...)])

    Every provider is reached through its OpenAI-compatible Chat Completions
    endpoint, so one SDK covers openai, gemini, groq and deepseek.
    """

    def __init__(
        self,
        provider: str,
        api_key: str,
        *,
        model_name: str | None = None,
        timeout: float | None = None,
        client: Any = None,
    ):
        if provider not in PROVIDER_BASE_URLS:
            raise ValueError(f"Unknown LLM provider: {provider}")
        if not api_key:
            raise ValueError("An API key is required to build an LLM client")

        self.provider = provider
        self.model_name = model_name or DEFAULT_MODELS[provider]
        self._timeout = timeout if timeout is not None else LLM_TIMEOUT
        self.last_usage: Optional[Dict[str, int]] = None
        self._backoff = backoff_state_for(provider, api_key)

        if client is not None:
            self._client = client
        else:
            client_kwargs: Dict[str, Any] = {
                "api_key": api_key,
                "max_retries": 0,
                "timeout": self._timeout,
            }
            base_url = PROVIDER_BASE_URLS[provider]
            if base_url:
                client_kwargs["base_url"] = base_url
            self._client = OpenAI(**client_kwargs)

    def _to_openai_messages(self, messages: List[BaseMessage]) -> List[Dict[str, str]]:
        out: List[Dict[str, str]] = []
        for m in messages:
            if isinstance(m, SystemMessage):
                role = "system"
            elif isinstance(m, HumanMessage):
                role = "user"
            elif isinstance(m, AIMessage):
                role = "assistant"
            else:
                role = "user"
            out.append({"role": role, "content": str(m.content)})
        return out

    def _merge_usage(self, resp: Any) -> None:
        usage = getattr(resp, "usage", None)
        if usage is None:
            return
        inc = {
            "prompt_token_count": getattr(usage, "prompt_tokens", 0) or 0,
            "candidates_token_count": getattr(usage, "completion_tokens", 0) or 0,
            "total_token_count": getattr(usage, "total_tokens", 0) or 0,
        }
        if self.last_usage is None:
            self.last_usage = inc
            return
        for k, v in inc.items():
            self.last_usage[k] = (self.last_usage.get(k, 0) or 0) + (v or 0)

    def _invoke_once(self, messages: List[BaseMessage]) -> str:
        """
        Single HTTP call without retries/backoff.
        """
        resp = self._client.chat.completions.create(
            model=self.model_name,
            messages=self._to_openai_messages(messages),
        )
        self._merge_usage(resp)

        choices = getattr(resp, "choices", None) or []
        if not choices:
            return ""
        message = getattr(choices[0], "message", None)
        text = getattr(message, "content", "") or ""
        return text.strip()

    def invoke(
        self,
        messages: List[BaseMessage],
        *,
        retries: int | None = None,
    ) -> str:
        """
        Synchronous chat call with per-key 429/timeout backoff + retries.
        """
        return call_with_retries_sync(
            lambda: self._invoke_once(messages),
            retries=retries or LLM_RETRIES,
            log=lambda msg: logger.warning(f"[CHAT-LLM-RETRY] {msg}"),
            backoff=self._backoff,
        )
