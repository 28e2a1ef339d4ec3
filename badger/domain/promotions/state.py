"""
Máquina de estados de una promoción: draft -> submitted -> approved | rejected.
approved y rejected son finales.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, FrozenSet, Union

from badger.models.promotion import Promotion, PromotionStatus as S
from badger.domain.errors import InvalidTransition, InconsistentState

TRANSITIONS: Dict[S, FrozenSet[S]] = {
    S.draft: frozenset({S.submitted}),
    S.submitted: frozenset({S.approved, S.rejected}),
    S.approved: frozenset(),
    S.rejected: frozenset(),
}


def require_transition(current: S, target: S) -> None:
    if target not in TRANSITIONS.get(S(current), frozenset()):
        raise InvalidTransition(current)


@dataclass(frozen=True)
class Draft:
    status = S.draft


@dataclass(frozen=True)
class Submitted:
    submitted_at: datetime
    status = S.submitted


@dataclass(frozen=True)
class Approved:
    submitted_at: datetime
    approved_by: str
    approved_at: datetime
    status = S.approved


@dataclass(frozen=True)
class Rejected:
    submitted_at: datetime
    rejected_by: str
    rejected_at: datetime
    reason: str
    status = S.rejected


PromotionState = Union[Draft, Submitted, Approved, Rejected]


def promotion_state(row: Promotion) -> PromotionState:
    status = S(row.status)
    try:
        if status == S.draft:
            return Draft()
        if row.submitted_at is None:
            raise ValueError("submitted_at")
        if status == S.submitted:
            return Submitted(submitted_at=row.submitted_at)
        if status == S.approved:
            if row.approved_by is None or row.approved_at is None or not row.executed:
                raise ValueError("approval metadata")
            return Approved(submitted_at=row.submitted_at, approved_by=row.approved_by, approved_at=row.approved_at)
        if row.rejected_by is None or row.rejected_at is None or not row.reject_reason:
            raise ValueError("rejection metadata")
        return Rejected(
            submitted_at=row.submitted_at, rejected_by=row.rejected_by,
            rejected_at=row.rejected_at, reason=row.reject_reason,
        )
    except ValueError as e:
        raise InconsistentState(f"promotion {row.id} is {status.value} but is missing {e}")
