"""Shared types, enums, and base models used across treasure hunt domain models."""

from datetime import datetime, timezone
from enum import StrEnum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    """Return the current UTC timestamp (timezone-aware)."""
    return datetime.now(tz=timezone.utc)


# --- Reusable annotated types ---

UTCTimestamp = Annotated[
    datetime, Field(description="UTC timezone-aware timestamp.")
]


# --- Shared enums ---


class SolveStatus(StrEnum):
    """Lifecycle status of an asynchronous solve job."""

    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    FAILED = "Failed"


TERMINAL_STATUSES: frozenset[SolveStatus] = frozenset({
    SolveStatus.COMPLETED,
    SolveStatus.CANCELLED,
    SolveStatus.FAILED,
})


# --- Base model ---


class TreasureHuntBase(BaseModel):
    """Base model with common configuration for all treasure hunt Pydantic models.

    Fields serialize with camelCase aliases on the wire and accept either
    spelling on input.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
    )
