"""Per-instance registration outcomes."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class OutcomeKind(str, enum.Enum):
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"
    FAILED = "failed"


@dataclass(frozen=True)
class RegistrationOutcome:
    """Result of one upsert. Aggregated into the pass summary, never persisted."""

    kind: OutcomeKind
    entity: str
    endpoint: str
    status_code: int | None = None
    reason: str | None = None
    unreachable: bool = False  # failed before any HTTP response was received

    @classmethod
    def created(cls, entity: str, endpoint: str, status_code: int) -> RegistrationOutcome:
        return cls(OutcomeKind.CREATED, entity, endpoint, status_code=status_code)

    @classmethod
    def already_exists(cls, entity: str, endpoint: str) -> RegistrationOutcome:
        return cls(OutcomeKind.ALREADY_EXISTS, entity, endpoint, status_code=409)

    @classmethod
    def failed(
        cls, entity: str, endpoint: str, reason: str, status_code: int | None = None
    ) -> RegistrationOutcome:
        return cls(
            OutcomeKind.FAILED, entity, endpoint,
            status_code=status_code, reason=reason, unreachable=status_code is None,
        )
