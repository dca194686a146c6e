from __future__ import annotations

import pytest

from emma_chat.errors import ChatError


class ScriptedLLM:
    """Stands in for the completion endpoint: records prompts, returns canned replies."""

    def __init__(self, *replies: str, error: ChatError | None = None) -> None:
        self.replies = list(replies)
        self.error = error
        self.calls: list[list[dict[str, str]]] = []

    def __call__(self, messages: list[dict[str, str]]) -> str:
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return self.replies.pop(0)

    @property
    def last_directive(self) -> str:
        return self.calls[-1][-1]["content"]


@pytest.fixture()
def scripted_llm():
    return ScriptedLLM
