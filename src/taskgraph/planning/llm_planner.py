# src/taskgraph/planning/llm_planner.py

from __future__ import annotations

import json
import logging
from typing import Any

from ..core.ports import LLMClient, Planner
from ..tasks.task_models import SubtaskTemplate, TaskPriority, clamp01
from .keyword_planner import KeywordPlanner

logger = logging.getLogger(__name__)

PLANNER_SYSTEM_PROMPT = """You are a task planner.
Break the user's goal into 3-7 ordered, concrete steps. Steps run strictly one after another.

Reply with ONE JSON object and nothing else:
<plan_json>
{"subtasks": [{"title": "...", "description": "...", "priority": "low|medium|high|urgent", "confidence": 0.0-1.0}]}
</plan_json>
"""

MAX_STEPS = 12


def _extract_json_object(raw: str) -> str:
    raw = raw.strip()
    if raw.startswith("{") and raw.endswith("}"):
        return raw
    first = raw.find("{")
    last = raw.rfind("}")
    if first != -1 and last != -1 and last > first:
        return raw[first : last + 1]
    return raw


def _to_template(item: Any) -> SubtaskTemplate | None:
    if not isinstance(item, dict):
        return None
    title = str(item.get("title") or "").strip()
    if not title:
        return None
    return SubtaskTemplate(
        title=title,
        description=str(item.get("description") or "").strip(),
        priority=TaskPriority.from_db(str(item.get("priority") or "").strip().lower()),
        confidence=clamp01(item.get("confidence", 0.9)),
    )


class LLMPlanner:
    """
    Planner backed by a chat model.

    Any failure (LLM error, unparsable JSON, empty plan) falls back to the wrapped
    planner, so breakdown never depends on the model being reachable.
    Critical classification always comes from the fallback (deterministic).
    """

    def __init__(self, llm: LLMClient, fallback: Planner | None = None) -> None:
        self._llm = llm
        self._fallback = fallback or KeywordPlanner()

    def plan(self, goal_title: str) -> list[SubtaskTemplate]:
        raw = ""
        try:
            for piece in self._llm.stream_chat(
                [{"role": "user", "content": f"Goal: {goal_title}"}],
                PLANNER_SYSTEM_PROMPT,
            ):
                raw += piece
        except Exception:
            logger.exception("LLM planner call failed; using fallback planner.")
            return self._fallback.plan(goal_title)

        try:
            data = json.loads(_extract_json_object(raw))
        except json.JSONDecodeError:
            logger.warning("LLM planner JSON parse failed. Raw=%r", raw[:2000])
            return self._fallback.plan(goal_title)

        items = data.get("subtasks") if isinstance(data, dict) else None
        steps = [t for t in (_to_template(i) for i in items or []) if t is not None]
        if not steps:
            logger.info("LLM planner returned no steps for %r; using fallback planner.", goal_title)
            return self._fallback.plan(goal_title)

        logger.debug("LLM planner produced %s steps for %r", len(steps), goal_title)
        return steps[:MAX_STEPS]

    def is_critical(self, goal_title: str) -> bool:
        return self._fallback.is_critical(goal_title)
