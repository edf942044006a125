# src/taskgraph/planning/keyword_planner.py

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence

from ..tasks.task_models import SubtaskTemplate, TaskPriority

logger = logging.getLogger(__name__)

H = TaskPriority.HIGH
M = TaskPriority.MEDIUM
L = TaskPriority.LOW

# Checked in order; the first group with a matching keyword wins.
DEFAULT_PATTERNS: list[tuple[tuple[str, ...], list[SubtaskTemplate]]] = [
    (
        ("optimize", "refactor", "improve", "enhance", "performance"),
        [
            SubtaskTemplate("Analyze current implementation and identify issues", "Review existing code and performance bottlenecks", H),
            SubtaskTemplate("Plan optimization strategy", "Define approach and expected improvements", H),
            SubtaskTemplate("Implement optimizations", "Apply performance improvements and refactoring", H),
            SubtaskTemplate("Test and verify improvements", "Validate that optimizations work correctly", M),
            SubtaskTemplate("Document changes and cleanup", "Update documentation and remove dead code", L),
        ],
    ),
    (
        ("implement", "create", "add", "build", "develop"),
        [
            SubtaskTemplate("Analyze requirements and plan approach", "Understand what needs to be built and how", H),
            SubtaskTemplate("Set up project structure and files", "Create necessary files and directories", H),
            SubtaskTemplate("Implement core functionality", "Write the main logic and features", H),
            SubtaskTemplate("Add error handling and validation", "Ensure robust error handling", M),
            SubtaskTemplate("Test implementation", "Verify functionality works as expected", M),
            SubtaskTemplate("Update documentation", "Document the new functionality", L),
        ],
    ),
    (
        ("fix", "debug", "resolve", "repair", "solve"),
        [
            SubtaskTemplate("Reproduce and understand the issue", "Identify the exact problem and conditions", H),
            SubtaskTemplate("Analyze root cause", "Find the underlying cause of the issue", H),
            SubtaskTemplate("Design and implement solution", "Create a fix for the identified problem", H),
            SubtaskTemplate("Test the fix thoroughly", "Ensure the fix works and doesn't break anything", M),
            SubtaskTemplate("Add preventive measures", "Add tests or checks to prevent regression", M),
        ],
    ),
    (
        ("review", "audit", "analyze", "examine", "inspect"),
        [
            SubtaskTemplate("Gather and examine all relevant files", "Collect and review all related code/documents", H),
            SubtaskTemplate("Analyze structure and implementation", "Understand the current architecture and design", H),
            SubtaskTemplate("Identify issues and improvements", "Document problems and potential enhancements", M),
            SubtaskTemplate("Provide recommendations", "Suggest specific improvements and next steps", M),
        ],
    ),
    (
        ("test", "validate", "verify", "check"),
        [
            SubtaskTemplate("Plan testing strategy", "Define what and how to test", H),
            SubtaskTemplate("Create test cases", "Write comprehensive test scenarios", H),
            SubtaskTemplate("Execute tests", "Run tests and collect results", M),
            SubtaskTemplate("Analyze results and report findings", "Document test outcomes and issues found", M),
        ],
    ),
]

DEFAULT_CRITICAL_KEYWORDS: tuple[str, ...] = (
    "refactor",
    "implement",
    "create",
    "add",
    "build",
    "develop",
    "fix",
    "delete",
    "remove",
)


def _keyword_regex(keywords: Iterable[str]) -> re.Pattern[str] | None:
    words = [re.escape(k.strip().lower()) for k in keywords if k and k.strip()]
    if not words:
        return None
    # Word-start match: "fix" hits "fixing" but not "prefix".
    return re.compile(r"\b(?:" + "|".join(words) + r")")


class KeywordPlanner:
    """
    Keyword-table planner.

    plan() returns the template list of the first keyword group found in the goal
    title, or [] when nothing matches (the orchestrator then uses its fallback).
    """

    def __init__(
        self,
        patterns: Sequence[tuple[Sequence[str], Sequence[SubtaskTemplate]]] | None = None,
        critical_keywords: Iterable[str] | None = None,
    ) -> None:
        groups = DEFAULT_PATTERNS if patterns is None else patterns
        self._patterns: list[tuple[re.Pattern[str], list[SubtaskTemplate]]] = []
        for keywords, steps in groups:
            rx = _keyword_regex(keywords)
            if rx is not None:
                self._patterns.append((rx, list(steps)))

        crit = DEFAULT_CRITICAL_KEYWORDS if critical_keywords is None else tuple(critical_keywords)
        self._critical = _keyword_regex(crit)

    def plan(self, goal_title: str) -> list[SubtaskTemplate]:
        text = (goal_title or "").lower()
        for rx, steps in self._patterns:
            m = rx.search(text)
            if m:
                logger.debug("KeywordPlanner: matched %r for goal %r", m.group(0), goal_title)
                return list(steps)
        return []

    def is_critical(self, goal_title: str) -> bool:
        if self._critical is None:
            return False
        return self._critical.search((goal_title or "").lower()) is not None
