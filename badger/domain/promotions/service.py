"""
Flujo de promociones: borrador, reservas, validación, envío y resolución.

Sin locks en proceso: las carreras las decide la BD.
  - toda operación que mira el estado de la promoción y luego escribe lo
    hace con la fila bloqueada (ledger.lock_promotion, SELECT ... FOR UPDATE);
  - cambios de estado = UPDATE ... WHERE status = <esperado>; quien no
    actualiza filas pierde y recibe InvalidTransition;
  - reservas = índice único parcial (ver reservations.ledger).
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple, Union

from sqlalchemy import select, update, delete, func
from sqlalchemy.orm import Session

from badger.core.settings import MAX_BADGES_PER_REQUEST, MAX_REASON_LENGTH
from badger.domain.auth import AuthContext, require_admin
from badger.domain.badge_applications import service as badge_applications
from badger.domain.eligibility.validator import Eligibility, evaluate
from badger.domain.errors import (
    Forbidden, InconsistentState, InvalidPrecondition, InvalidTransition, NotFound,
    ReservationConflict, ValidationError, ValidationFailed,
)
from badger.domain.pagination import Page, check_window
from badger.domain.promotions.state import Draft, PromotionState, promotion_state, require_transition
from badger.domain.reservations import ledger
from badger.domain.uow import unit_of_work
from badger.models.badge_application import BadgeApplication
from badger.models.promotion import Promotion, PromotionStatus as S
from badger.models.promotion_badge import PromotionBadge
from badger.models.promotion_template import PromotionTemplate, PromotionPath

log = logging.getLogger("promotions")


@dataclass(frozen=True)
class BadgesAdded:
    promotion_id: str
    badge_application_ids: List[str]

    @property
    def added_count(self) -> int:
        return len(self.badge_application_ids)


@dataclass(frozen=True)
class PromotionDetail:
    promotion: Promotion
    badge_applications: List[BadgeApplication]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _load(db: Session, promotion_id: str, lock: bool = False) -> Tuple[Promotion, PromotionState]:
    promotion = ledger.lock_promotion(db, promotion_id) if lock else db.get(Promotion, promotion_id)
    if promotion is None:
        raise NotFound(f"Promotion {promotion_id} not found")
    return promotion, promotion_state(promotion)


def _load_visible(db: Session, caller: AuthContext, promotion_id: str) -> Promotion:
    promotion, _ = _load(db, promotion_id)
    if not caller.is_admin and promotion.created_by != caller.user_id:
        raise NotFound(f"Promotion {promotion_id} not found")
    return promotion


def _load_own_draft(db: Session, caller: AuthContext, promotion_id: str, action: str) -> Promotion:
    promotion, state = _load(db, promotion_id, lock=True)
    if promotion.created_by != caller.user_id:
        raise Forbidden(f"Only the creator can {action} this promotion")
    if not isinstance(state, Draft):
        raise InvalidTransition(state.status, f"Promotion must be in draft status to {action} it")
    return promotion


def _transition(db: Session, promotion_id: str, source: S, target: S, **values) -> None:
    """Cambio de estado condicional; el que llega segundo ve rowcount 0."""
    require_transition(source, target)
    res = db.execute(
        update(Promotion)
        .where(Promotion.id == promotion_id, Promotion.status == source)
        .values(status=target, **values)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 1:
        return
    current = db.execute(select(Promotion.status).where(Promotion.id == promotion_id)).scalar_one_or_none()
    if current is None:
        raise NotFound(f"Promotion {promotion_id} not found")
    raise InvalidTransition(current)


def _clean_ids(ids: Sequence[str]) -> List[str]:
    out: List[str] = []
    for i in ids or []:
        i = (i or "").strip()
        if i and i not in out:
            out.append(i)
    if not out:
        raise ValidationError("At least one badge application ID is required")
    if len(out) > MAX_BADGES_PER_REQUEST:
        raise ValidationError(f"Cannot process more than {MAX_BADGES_PER_REQUEST} badges at once")
    return out


def _eligibility(db: Session, promotion: Promotion) -> Eligibility:
    return evaluate(promotion.template.rules, ledger.reserved_badges(db, promotion.id))


# --------------------------
# Borrador
# --------------------------

def create_promotion_draft(db: Session, caller: AuthContext, template_id: str) -> Promotion:
    with unit_of_work(db, "create_promotion_draft", template_id=template_id, creator=caller.user_id):
        template = db.get(PromotionTemplate, template_id)
        if template is None:
            raise NotFound(f"Promotion template {template_id} not found")
        if not template.is_active:
            raise InvalidPrecondition("Promotion template is not active", template_id=template_id)
        promotion = Promotion(
            template_id=template.id,
            created_by=caller.user_id,
            path=template.path,
            from_level=template.from_level,
            to_level=template.to_level,
            status=S.draft,
            executed=False,
        )
        db.add(promotion)
        db.commit()
        db.refresh(promotion)
    log.info("promotion %s created by %s from template %s", promotion.id, caller.user_id, template_id)
    return promotion


def add_badges_to_promotion(
    db: Session, caller: AuthContext, promotion_id: str, application_ids: Sequence[str],
) -> Union[BadgesAdded, ReservationConflict]:
    """
    Reserva las solicitudes para el borrador. Todo o nada: ante el primer
    conflicto no se reserva ninguna y se devuelve el conflicto.
    """
    ids = _clean_ids(application_ids)
    with unit_of_work(db, "add_badges_to_promotion", promotion_id=promotion_id, ids=ids, caller=caller.user_id):
        result = ledger.add_reservations(db, promotion_id, ids, caller.user_id)
        if isinstance(result, ReservationConflict):
            db.rollback()
            return result
        db.commit()
    log.info("promotion %s: reserved %d badge application(s)", promotion_id, len(ids))
    return BadgesAdded(promotion_id=promotion_id, badge_application_ids=ids)


def remove_badges_from_promotion(
    db: Session, caller: AuthContext, promotion_id: str, application_ids: Sequence[str],
) -> List[str]:
    ids = _clean_ids(application_ids)
    with unit_of_work(db, "remove_badges_from_promotion", promotion_id=promotion_id, ids=ids, caller=caller.user_id):
        removed = ledger.remove_reservations(db, promotion_id, ids, caller.user_id)
        db.commit()
    log.info("promotion %s: released %d badge application(s) from draft", promotion_id, len(removed))
    return removed


def delete_promotion(db: Session, caller: AuthContext, promotion_id: str) -> None:
    with unit_of_work(db, "delete_promotion", promotion_id=promotion_id, caller=caller.user_id):
        promotion = _load_own_draft(db, caller, promotion_id, "delete")
        db.execute(
            delete(PromotionBadge)
            .where(PromotionBadge.promotion_id == promotion_id)
            .execution_options(synchronize_session=False)
        )
        db.execute(
            delete(Promotion)
            .where(Promotion.id == promotion_id)
            .execution_options(synchronize_session=False)
        )
        db.expunge(promotion)
        db.commit()
    log.info("promotion %s deleted by %s", promotion_id, caller.user_id)


# --------------------------
# Consulta
# --------------------------

def preview_eligibility(db: Session, caller: AuthContext, promotion_id: str) -> Eligibility:
    promotion = _load_visible(db, caller, promotion_id)
    return _eligibility(db, promotion)


def get_promotion(db: Session, caller: AuthContext, promotion_id: str) -> PromotionDetail:
    promotion = _load_visible(db, caller, promotion_id)
    apps = db.execute(
        select(BadgeApplication)
        .join(PromotionBadge, PromotionBadge.badge_application_id == BadgeApplication.id)
        .where(PromotionBadge.promotion_id == promotion_id)
        .order_by(PromotionBadge.assigned_at, PromotionBadge.id)
    ).scalars().unique().all()
    return PromotionDetail(promotion=promotion, badge_applications=list(apps))


def list_promotions(
    db: Session,
    caller: AuthContext,
    status: Optional[str] = None,
    path: Optional[str] = None,
    created_by: Optional[str] = None,
    limit: int = 20,
    offset: int = 0,
) -> Page[Promotion]:
    check_window(limit, offset)

    conds = []
    if not caller.is_admin:
        conds.append(Promotion.created_by == caller.user_id)
    elif created_by:
        conds.append(Promotion.created_by == created_by)
    try:
        if status:
            conds.append(Promotion.status == S(status))
        if path:
            conds.append(Promotion.path == PromotionPath(path))
    except ValueError as e:
        raise ValidationError(str(e))

    total = db.execute(select(func.count(Promotion.id)).where(*conds)).scalar_one() or 0
    items = db.execute(
        select(Promotion).where(*conds)
        .order_by(Promotion.created_at.desc(), Promotion.id)
        .limit(limit).offset(offset)
    ).scalars().unique().all()
    return Page(items=list(items), total=int(total), limit=limit, offset=offset)


# --------------------------
# Envío y resolución
# --------------------------

def submit_promotion(db: Session, caller: AuthContext, promotion_id: str) -> Promotion:
    """
    Con la fila bloqueada: se pasa a submitted, se evalúan las reservas que
    hay en ese momento y esas mismas pasan a used_in_promotion. Si no cumple
    la plantilla, el rollback deja la promoción en borrador.
    """
    with unit_of_work(db, "submit_promotion", promotion_id=promotion_id, caller=caller.user_id):
        promotion = _load_own_draft(db, caller, promotion_id, "submit")

        _transition(db, promotion_id, S.draft, S.submitted, submitted_at=_now())
        reserved = ledger.reserved_badges(db, promotion_id)
        eligibility = evaluate(promotion.template.rules, reserved)
        if not eligibility.is_valid:
            raise ValidationFailed(eligibility.missing)
        for badge in reserved:
            badge_applications.mark_used(db, badge.badge_application_id)
        db.commit()
        db.refresh(promotion)
    log.info("promotion %s submitted by %s (%d badge application(s) in use)", promotion_id, caller.user_id, len(reserved))
    return promotion


def approve_promotion(db: Session, caller: AuthContext, promotion_id: str) -> Promotion:
    require_admin(caller)
    with unit_of_work(db, "approve_promotion", promotion_id=promotion_id, admin=caller.user_id):
        promotion, _ = _load(db, promotion_id, lock=True)
        _transition(
            db, promotion_id, S.submitted, S.approved,
            approved_by=caller.user_id, approved_at=_now(), executed=True,
        )
        # solo se consume lo que el envío dejó en used_in_promotion
        stray = ledger.reserved_not_in_use(db, promotion_id)
        if stray:
            log.error("promotion %s holds reservations not in use: %s", promotion_id, ", ".join(stray))
            raise InconsistentState(f"Promotion {promotion_id} holds reservations for badge applications not in use")
        consumed = ledger.consume(db, promotion_id)
        db.commit()
        db.refresh(promotion)
    log.info("promotion %s approved by %s (%d reservation(s) consumed)", promotion_id, caller.user_id, consumed)
    return promotion


def reject_promotion(db: Session, caller: AuthContext, promotion_id: str, reason: str) -> Promotion:
    require_admin(caller)
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("Reject reason is required")
    if len(reason) > MAX_REASON_LENGTH:
        raise ValidationError(f"Reject reason cannot exceed {MAX_REASON_LENGTH} characters")

    with unit_of_work(db, "reject_promotion", promotion_id=promotion_id, admin=caller.user_id):
        promotion, _ = _load(db, promotion_id, lock=True)
        _transition(
            db, promotion_id, S.submitted, S.rejected,
            rejected_by=caller.user_id, rejected_at=_now(), reject_reason=reason,
        )
        released = ledger.release(db, promotion_id)
        db.commit()
        db.refresh(promotion)
    log.info("promotion %s rejected by %s (%d badge application(s) released)", promotion_id, caller.user_id, len(released))
    return promotion
