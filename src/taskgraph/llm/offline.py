# src/taskgraph/llm/offline.py

from __future__ import annotations

import json
import logging
from collections.abc import Iterable

from ..core.ports import ChatMessage

logger = logging.getLogger(__name__)

PLAN_MARKER = "<plan_json>"


class OfflineLLMClient:
    """
    Stand-in used when no API key is configured; never touches the network.

    Planner prompts (recognized by the <plan_json> contract) get an empty plan, so
    LLMPlanner drops through to its keyword tables. Anything else gets a notice.
    """

    EMPTY_PLAN = json.dumps({"subtasks": []})
    NOTICE = "Offline mode: set TASKGRAPH_OPENROUTER_API_KEY (and TASKGRAPH_LLM_MODELS) to use a real model."

    def __init__(self) -> None:
        self.calls = 0

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        self.calls += 1
        if PLAN_MARKER in (system_prompt or ""):
            logger.debug("Offline LLM: empty plan for %d message(s)", len(messages))
            yield self.EMPTY_PLAN
            return
        yield self.NOTICE
