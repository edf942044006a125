# src/taskgraph/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (storage/bus/graph/planner/LLM),
- initializes the task graph from storage.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.events import NotificationBus
from ..core.ports import LLMClient, Planner, StorageGateway
from ..core.state import AppState
from ..llm.client import OpenRouterLLMClient, friendly_llm_error_message
from ..llm.offline import OfflineLLMClient
from ..planning.keyword_planner import KeywordPlanner
from ..planning.llm_planner import LLMPlanner
from ..storage.kv_store import SQLiteKVStore
from ..tasks.task_store import TaskGraph

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def build_planner(settings, llm: LLMClient | None) -> Planner:
    keyword = KeywordPlanner(critical_keywords=getattr(settings, "critical_keywords", None))
    if getattr(settings, "planner", "keyword") == "llm" and llm is not None:
        return LLMPlanner(llm, fallback=keyword)
    return keyword


def create_initial_state(*, settings=None, storage: StorageGateway | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings/storage injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    if storage is None:
        _ensure_local_dirs(settings)
        storage = SQLiteKVStore(settings.db_path)

    llm_client: LLMClient | None = None
    if getattr(settings, "planner", "keyword") == "llm":
        try:
            llm_client = OpenRouterLLMClient(settings)
        except RuntimeError as e:
            logger.info("LLM planner unavailable (%s); using offline client.", friendly_llm_error_message(e))
            llm_client = OfflineLLMClient()

    bus = NotificationBus()
    graph = TaskGraph(
        storage,
        bus,
        storage_key=settings.storage_key,
        default_list_name=settings.default_list_name,
        default_list_color=settings.default_list_color,
    )
    graph.init()

    return AppState(
        settings=settings,
        storage=storage,
        bus=bus,
        graph=graph,
        planner=build_planner(settings, llm_client),
        llm=llm_client,
    )
