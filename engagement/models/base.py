"""Shared helpers for engagement models"""
from datetime import datetime, timezone
from typing import TypeVar
from uuid import uuid4

from pydantic import BaseModel

M = TypeVar("M", bound=BaseModel)


def new_id() -> str:
    return str(uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def evolve(model: M, **changes) -> M:
    """
    Copy a model with changes applied, re-running validation

    model_copy(update=...) skips validators, which would let invariants such
    as best_count >= current_count slip through.
    """
    data = model.model_dump()
    data.update(changes)
    return type(model).model_validate(data)
