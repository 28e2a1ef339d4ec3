"""
Máquina de estados de una solicitud de insignia.

    draft -> submitted -> accepted | rejected
    accepted <-> used_in_promotion   (solo lo mueve el flujo de promociones)
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, FrozenSet, Union

from badger.models.badge_application import BadgeApplication, BadgeApplicationStatus as S
from badger.domain.errors import InvalidTransition, InconsistentState

TRANSITIONS: Dict[S, FrozenSet[S]] = {
    S.draft: frozenset({S.submitted}),
    S.submitted: frozenset({S.accepted, S.rejected}),
    S.accepted: frozenset({S.used_in_promotion}),
    S.used_in_promotion: frozenset({S.accepted}),
    S.rejected: frozenset(),
}

REVIEW_DECISIONS = frozenset({S.accepted, S.rejected})


def can_transition(current: S, target: S) -> bool:
    return target in TRANSITIONS.get(S(current), frozenset())


def require_transition(current: S, target: S) -> None:
    if not can_transition(current, target):
        raise InvalidTransition(current)


# ---- Estado con sus datos (unión etiquetada) ----

@dataclass(frozen=True)
class Draft:
    status = S.draft


@dataclass(frozen=True)
class Submitted:
    submitted_at: datetime
    status = S.submitted


@dataclass(frozen=True)
class Reviewed:
    reviewed_by: str
    reviewed_at: datetime
    note: str | None = None


@dataclass(frozen=True)
class Accepted(Reviewed):
    status = S.accepted


@dataclass(frozen=True)
class Rejected(Reviewed):
    status = S.rejected


@dataclass(frozen=True)
class UsedInPromotion(Reviewed):
    status = S.used_in_promotion


ApplicationState = Union[Draft, Submitted, Accepted, Rejected, UsedInPromotion]

_REVIEWED = {S.accepted: Accepted, S.rejected: Rejected, S.used_in_promotion: UsedInPromotion}


def application_state(row: BadgeApplication) -> ApplicationState:
    """Construye el estado tipado; falla si la fila no trae los datos que su estado exige."""
    status = S(row.status)
    if status == S.draft:
        return Draft()
    if status == S.submitted:
        if row.submitted_at is None:
            raise InconsistentState(f"badge application {row.id} is submitted without submitted_at")
        return Submitted(submitted_at=row.submitted_at)
    if row.reviewed_by is None or row.reviewed_at is None:
        raise InconsistentState(f"badge application {row.id} is {status.value} without review metadata")
    return _REVIEWED[status](reviewed_by=row.reviewed_by, reviewed_at=row.reviewed_at, note=row.review_reason)
