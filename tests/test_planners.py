# tests/test_planners.py

from __future__ import annotations

import json

from taskgraph.cli.bootstrap import create_initial_state
from taskgraph.llm.offline import OfflineLLMClient
from taskgraph.planning.keyword_planner import KeywordPlanner
from taskgraph.planning.llm_planner import MAX_STEPS, PLANNER_SYSTEM_PROMPT, LLMPlanner
from taskgraph.storage.kv_store import MemoryKVStore
from taskgraph.tasks.task_models import SubtaskTemplate, TaskPriority

from .fakes import FakeLLMClient, FakePlanner


def test_keyword_planner_first_matching_group_wins() -> None:
    planner = KeywordPlanner()
    # "optimize" is checked before "fix"
    steps = planner.plan("Optimize and fix the parser")
    assert steps[0].title == "Analyze current implementation and identify issues"
    assert len(steps) == 5


def test_keyword_planner_is_case_insensitive_and_word_start() -> None:
    planner = KeywordPlanner()
    assert len(planner.plan("FIXING the flaky login")) == 5
    assert planner.plan("prefix tables") == []


def test_keyword_planner_critical_detection() -> None:
    planner = KeywordPlanner()
    assert planner.is_critical("Remove old backups")
    assert planner.is_critical("fix the login bug")
    assert not planner.is_critical("review the docs")


def test_keyword_planner_custom_tables() -> None:
    planner = KeywordPlanner(
        patterns=[(("bake",), [SubtaskTemplate("Preheat"), SubtaskTemplate("Bake")])],
        critical_keywords=["oven"],
    )
    assert [s.title for s in planner.plan("bake bread")] == ["Preheat", "Bake"]
    assert planner.is_critical("clean the oven")
    assert not planner.is_critical("fix everything")


def test_keyword_planner_empty_critical_list() -> None:
    assert KeywordPlanner(critical_keywords=[]).is_critical("delete everything") is False


def test_llm_planner_parses_json_reply() -> None:
    reply = "Sure!\n<plan_json>\n" + json.dumps(
        {
            "subtasks": [
                {"title": "Draft", "description": "first pass", "priority": "high", "confidence": 1.7},
                {"title": "  "},
                {"title": "Polish", "priority": "whenever"},
            ]
        }
    ) + "\n</plan_json>"
    llm = FakeLLMClient(next_text=reply)

    steps = LLMPlanner(llm).plan("write an essay")

    assert [s.title for s in steps] == ["Draft", "Polish"]
    assert steps[0].priority == TaskPriority.HIGH
    assert steps[0].confidence == 1.0
    assert steps[1].priority == TaskPriority.MEDIUM
    messages, system_prompt = llm.calls[0]
    assert system_prompt == PLANNER_SYSTEM_PROMPT
    assert "write an essay" in messages[0]["content"]


def test_llm_planner_caps_step_count() -> None:
    reply = json.dumps({"subtasks": [{"title": f"s{i}"} for i in range(MAX_STEPS + 5)]})
    assert len(LLMPlanner(FakeLLMClient(next_text=reply)).plan("big goal")) == MAX_STEPS


def test_llm_planner_falls_back_on_errors() -> None:
    fallback = FakePlanner(steps=[SubtaskTemplate("fallback step")], critical=True)

    broken = LLMPlanner(FakeLLMClient(error=RuntimeError("down")), fallback=fallback)
    assert [s.title for s in broken.plan("x")] == ["fallback step"]

    garbage = LLMPlanner(FakeLLMClient(next_text="not json at all"), fallback=fallback)
    assert [s.title for s in garbage.plan("x")] == ["fallback step"]

    assert broken.is_critical("anything") is True
    assert fallback.calls == ["x", "x"]


def test_llm_planner_offline_client_defers_to_keywords() -> None:
    planner = LLMPlanner(OfflineLLMClient())
    assert len(planner.plan("fix the login bug")) == 5
    assert planner.is_critical("fix the login bug")


def test_bootstrap_llm_planner_without_key_goes_offline(settings) -> None:
    settings.planner = "llm"
    settings.openrouter_api_key = None

    state = create_initial_state(settings=settings, storage=MemoryKVStore())

    assert isinstance(state.llm, OfflineLLMClient)
    assert isinstance(state.planner, LLMPlanner)
    assert len(state.planner.plan("fix it")) == 5
