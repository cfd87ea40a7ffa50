# tm_core/lifecycle/results.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from django.db import models


class ErrorKind(models.TextChoices):
    INVALID_STATE = "invalid_state", "Invalid state"
    GUARD_FAILED = "guard_failed", "Guard failed"
    NOT_FOUND = "not_found", "Not found"


@dataclass(frozen=True)
class TransitionError:
    kind: ErrorKind
    detail: str = ""

    @classmethod
    def invalid_state(cls, action: str, status: str) -> "TransitionError":
        return cls(ErrorKind.INVALID_STATE, f"Action '{action}' is not allowed while status is {status}.")

    @classmethod
    def guard_failed(cls, detail: str) -> "TransitionError":
        return cls(ErrorKind.GUARD_FAILED, detail)

    @classmethod
    def not_found(cls, detail: str) -> "TransitionError":
        return cls(ErrorKind.NOT_FOUND, detail)


@dataclass(frozen=True)
class TransitionResult:
    """
    Outcome of validating one transition.

    ok=True  -> status is the target status, snapshot is the proposed new copy
    ok=False -> error says why; the caller keeps its previous snapshot
    """

    ok: bool
    status: Optional[str] = None
    snapshot: Any = None
    error: Optional[TransitionError] = None

    @classmethod
    def success(cls, status: str, snapshot: Any = None) -> "TransitionResult":
        return cls(ok=True, status=status, snapshot=snapshot)

    @classmethod
    def failure(cls, error: TransitionError) -> "TransitionResult":
        return cls(ok=False, error=error)
