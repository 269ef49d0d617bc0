from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from prompt_wizard.backend import Backend
from prompt_wizard.catalog import DEFAULT_CATALOG
from prompt_wizard.step_cache import StepRecordCache


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    engine.dispose()


class FakeChat:
    """Stands in for ChatLlmClient; records every message list it receives."""

    def __init__(self, reply="", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def invoke(self, messages, *, retries=None):
        self.calls.append({"messages": list(messages), "retries": retries})
        if self.error is not None:
            raise self.error
        return self.reply


class FakeClientFactory:
    def __init__(self, chat: FakeChat):
        self.chat = chat
        self.built = []

    def __call__(self, provider, api_key, model_name):
        self.built.append((provider, api_key, model_name))
        return self.chat


@pytest.fixture
def fake_chat():
    return FakeChat(reply="Enhanced prompt")


@pytest.fixture
def client_factory(fake_chat):
    return FakeClientFactory(fake_chat)


@pytest.fixture
def backend(session_factory, client_factory):
    return Backend(
        session_factory,
        catalog=DEFAULT_CATALOG,
        client_factory=client_factory,
        step_cache=StepRecordCache(60, DEFAULT_CATALOG),
    )


def make_openai_response(content, prompt_tokens=3, completion_tokens=2):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        ),
    )


class FakeOpenAI:
    """Minimal object shaped like openai.OpenAI for chat.completions.create."""

    def __init__(self, responses):
        self._responses = list(responses)
        self.requests = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        self.requests.append(kwargs)
        item = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def fake_openai_factory():
    return FakeOpenAI


@pytest.fixture
def openai_response():
    return make_openai_response
