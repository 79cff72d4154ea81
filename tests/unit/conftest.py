"""
Unit test fixtures.

All unit tests should be:
- Fast (< 100ms)
- Isolated (no network; the chat client is scripted)
- Deterministic (zero delays, same result every time)
"""

import json

import pytest

from auditor.client import ChatResponse, ModelGateway
from auditor.keys import KeyPool
from auditor.settings import PipelineConfig


class ScriptedChatClient:
    """
    Stand-in for ChatClient.

    `handler(request, credential)` returns the answer: a str (raw content),
    a dict or list (sent as JSON), a ChatResponse, or an exception to raise.
    """

    def __init__(self, handler=None):
        self.handler = handler or (lambda request, credential: {})
        self.calls = []

    async def send(self, credential, request):
        self.calls.append((credential, request))
        outcome = self.handler(request, credential)
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, ChatResponse):
            return outcome
        if isinstance(outcome, (dict, list)):
            outcome = json.dumps(outcome, ensure_ascii=False)
        return ChatResponse(content=outcome, finish_reason="stop")

    @property
    def operations(self):
        return [request.operation for _, request in self.calls]

    @property
    def credentials(self):
        return [credential for credential, _ in self.calls]


def by_operation(answers: dict, default=None):
    """Handler answering by operation name prefix, longest prefix first."""
    prefixes = sorted(answers, key=len, reverse=True)

    def handler(request, credential):
        for prefix in prefixes:
            if request.operation.startswith(prefix):
                answer = answers[prefix]
                return answer(request, credential) if callable(answer) else answer
        return {} if default is None else default

    return handler


@pytest.fixture
def config():
    """Production limits, no sleeping."""
    return PipelineConfig.immediate()


@pytest.fixture
def keys():
    return ["sk-test-key-alpha-0001", "sk-test-key-bravo-0002", "sk-test-key-charlie-03"]


@pytest.fixture
def pool(keys):
    return KeyPool(keys)


@pytest.fixture
def make_gateway(pool):
    """make_gateway(handler) -> (gateway, client) sharing the `pool` fixture."""
    def make(handler=None, key_pool=None):
        client = ScriptedChatClient(handler)
        return ModelGateway(key_pool or pool, client), client
    return make


@pytest.fixture
def answers():
    """The by_operation handler builder, for tests that script several calls."""
    return by_operation
