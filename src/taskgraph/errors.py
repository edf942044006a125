# src/taskgraph/errors.py

"""Exceptions raised by the task graph to its callers."""

from __future__ import annotations


class TaskGraphError(Exception):
    """Base class for every error the core raises on purpose."""


class NotFoundError(TaskGraphError, LookupError):
    """An id-based operation referenced an unknown task or list."""


class ValidationError(TaskGraphError, ValueError):
    """A required field is blank or a value/format is not supported."""


class FormatError(TaskGraphError, ValueError):
    """An import payload could not be parsed."""
