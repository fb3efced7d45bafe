"""Shared pytest fixtures for crmdeck tests."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

import pytest

from crmdeck.core.descriptors import KanbanColumn


@pytest.fixture
def stage_columns() -> list[KanbanColumn]:
    """Three pipeline columns with integer ids."""
    return [
        KanbanColumn(id=1, label="New"),
        KanbanColumn(id=2, label="Qualified"),
        KanbanColumn(id=3, label="Won"),
    ]


@pytest.fixture
def staged_leads() -> list[dict[str, Any]]:
    """Seven leads with stage ids 1, 1, 2, 3, 3, 3, 99."""
    stage_ids = [1, 1, 2, 3, 3, 3, 99]
    return [
        {"id": i + 1, "name": f"Lead {i + 1}", "stage": {"id": stage_id}}
        for i, stage_id in enumerate(stage_ids)
    ]


@pytest.fixture
def restore_crmdeck_loggers() -> Iterator[None]:
    """Undo handler/level/propagation changes made by setup_logging."""
    saved = {}
    for name in ("crmdeck", "crmdeck_ui"):
        logger = logging.getLogger(name)
        saved[name] = (list(logger.handlers), logger.level, logger.propagate)
    yield
    for name, (handlers, level, propagate) in saved.items():
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            if handler not in handlers:
                logger.removeHandler(handler)
                handler.close()
        for handler in handlers:
            if handler not in logger.handlers:
                logger.addHandler(handler)
        logger.setLevel(level)
        logger.propagate = propagate
