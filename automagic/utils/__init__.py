"""Utility functions for the automagic daemon."""

from automagic.utils.logging import (
    StructuredFormatter,
    TaskContextFilter,
    configure_logging,
    get_task_name,
    set_task_name,
)

__all__ = [
    "StructuredFormatter",
    "TaskContextFilter",
    "configure_logging",
    "get_task_name",
    "set_task_name",
]
