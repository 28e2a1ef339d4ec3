import logging
from datetime import date, datetime, timezone
from typing import Optional, Tuple

from sqlalchemy import select, update, delete, exists, func
from sqlalchemy.orm import Session

from badger.core.settings import MAX_REASON_LENGTH
from badger.domain.auth import AuthContext, require_admin
from badger.domain.errors import (
    Forbidden, InvalidPrecondition, InvalidTransition, NotFound, ValidationError,
)
from badger.domain.badge_applications.state import (
    REVIEW_DECISIONS, ApplicationState, Draft, application_state, require_transition,
)
from badger.domain.pagination import Page, check_window
from badger.domain.uow import unit_of_work
from badger.models.badge_application import BadgeApplication, BadgeApplicationStatus as S
from badger.models.catalog_badge import CatalogBadge, CatalogBadgeStatus
from badger.models.promotion_badge import PromotionBadge

log = logging.getLogger("badge_applications")

SORT_COLUMNS = {
    "created_at": BadgeApplication.created_at,
    "submitted_at": BadgeApplication.submitted_at,
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def lock_application(db: Session, application_id: str) -> Optional[BadgeApplication]:
    """Lee la solicitud con SELECT ... FOR UPDATE (el resto espera hasta el commit)."""
    return db.execute(
        select(BadgeApplication)
        .where(BadgeApplication.id == application_id)
        .with_for_update(of=BadgeApplication)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def _load(db: Session, application_id: str, lock: bool = False) -> Tuple[BadgeApplication, ApplicationState]:
    row = lock_application(db, application_id) if lock else db.get(BadgeApplication, application_id)
    if row is None:
        raise NotFound(f"Badge application {application_id} not found")
    return row, application_state(row)


def _active_catalog_badge(db: Session, catalog_badge_id: str) -> CatalogBadge:
    badge = db.get(CatalogBadge, catalog_badge_id)
    if badge is None:
        raise NotFound(f"Catalog badge {catalog_badge_id} not found")
    if badge.status != CatalogBadgeStatus.active:
        raise InvalidPrecondition("Catalog badge is not active", catalog_badge_id=catalog_badge_id)
    return badge


def _check_reason(field: str, text: Optional[str]) -> None:
    if text is not None and len(text) > MAX_REASON_LENGTH:
        raise ValidationError(f"{field} cannot exceed {MAX_REASON_LENGTH} characters")


def _check_dates(date_of_application: date, date_of_fulfillment: Optional[date]) -> None:
    if date_of_fulfillment is not None and date_of_fulfillment < date_of_application:
        raise ValidationError("date_of_fulfillment cannot be before date_of_application")


def _transition(db: Session, application_id: str, source: S, target: S, **values) -> None:
    """
    UPDATE ... WHERE status = :source. Si no afecta filas, otro llegó antes
    (o el estado nunca fue el esperado) y se informa el estado actual.
    """
    require_transition(source, target)
    res = db.execute(
        update(BadgeApplication)
        .where(BadgeApplication.id == application_id, BadgeApplication.status == source)
        .values(status=target, updated_at=_now(), **values)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 1:
        return
    current = db.execute(
        select(BadgeApplication.status).where(BadgeApplication.id == application_id)
    ).scalar_one_or_none()
    if current is None:
        raise NotFound(f"Badge application {application_id} not found")
    raise InvalidTransition(current)


def _own_draft(db: Session, caller: AuthContext, application_id: str) -> BadgeApplication:
    row, state = _load(db, application_id, lock=True)
    if row.applicant_id != caller.user_id:
        raise Forbidden("Only the applicant can modify this badge application")
    if not isinstance(state, Draft):
        raise InvalidTransition(state.status)
    return row


# --------------------------
# Operaciones públicas
# --------------------------

def create_badge_application(
    db: Session,
    caller: AuthContext,
    catalog_badge_id: str,
    date_of_application: date,
    date_of_fulfillment: Optional[date] = None,
    reason: Optional[str] = None,
) -> BadgeApplication:
    _check_dates(date_of_application, date_of_fulfillment)
    _check_reason("reason", reason)

    with unit_of_work(db, "create_badge_application", catalog_badge_id=catalog_badge_id, applicant_id=caller.user_id):
        badge = _active_catalog_badge(db, catalog_badge_id)
        row = BadgeApplication(
            applicant_id=caller.user_id,
            catalog_badge_id=badge.id,
            catalog_badge_version=badge.version,
            date_of_application=date_of_application,
            date_of_fulfillment=date_of_fulfillment,
            reason=reason,
            status=S.draft,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
    log.info("badge application %s created by %s (badge=%s v%s)", row.id, caller.user_id, badge.id, badge.version)
    return row


def get_badge_application(db: Session, caller: AuthContext, application_id: str) -> BadgeApplication:
    row, _ = _load(db, application_id)
    # no se revela la existencia de solicitudes ajenas
    if not caller.is_admin and row.applicant_id != caller.user_id:
        raise NotFound(f"Badge application {application_id} not found")
    return row


def list_badge_applications(
    db: Session,
    caller: AuthContext,
    status: Optional[str] = None,
    catalog_badge_id: Optional[str] = None,
    applicant_id: Optional[str] = None,
    sort: str = "created_at",
    order: str = "desc",
    limit: int = 20,
    offset: int = 0,
) -> Page[BadgeApplication]:
    """
    Cola de revisión (admin) y selector de insignias para una promoción
    (usuario). Un usuario solo ve las suyas; applicant_id solo filtra para admin.
    """
    check_window(limit, offset)
    if sort not in SORT_COLUMNS:
        raise ValidationError(f"sort must be one of {', '.join(SORT_COLUMNS)}")
    if order not in ("asc", "desc"):
        raise ValidationError("order must be 'asc' or 'desc'")

    conds = []
    if not caller.is_admin:
        conds.append(BadgeApplication.applicant_id == caller.user_id)
    elif applicant_id:
        conds.append(BadgeApplication.applicant_id == applicant_id)
    if status:
        try:
            conds.append(BadgeApplication.status == S(status))
        except ValueError as e:
            raise ValidationError(str(e))
    if catalog_badge_id:
        conds.append(BadgeApplication.catalog_badge_id == catalog_badge_id)

    column = SORT_COLUMNS[sort]
    total = db.execute(select(func.count(BadgeApplication.id)).where(*conds)).scalar_one() or 0
    items = db.execute(
        select(BadgeApplication).where(*conds)
        .order_by(column.asc() if order == "asc" else column.desc(), BadgeApplication.id)
        .limit(limit).offset(offset)
    ).scalars().all()
    return Page(items=list(items), total=int(total), limit=limit, offset=offset)


def update_badge_application(
    db: Session,
    caller: AuthContext,
    application_id: str,
    catalog_badge_id: Optional[str] = None,
    date_of_application: Optional[date] = None,
    date_of_fulfillment: Optional[date] = None,
    reason: Optional[str] = None,
) -> BadgeApplication:
    """
    El solicitante edita su borrador. None = no cambiar. Si cambia la
    insignia de catálogo se vuelve a tomar su versión.
    """
    _check_reason("reason", reason)

    with unit_of_work(db, "update_badge_application", badge_application_id=application_id, caller=caller.user_id):
        row = _own_draft(db, caller, application_id)
        values = {}
        if catalog_badge_id is not None and catalog_badge_id != row.catalog_badge_id:
            badge = _active_catalog_badge(db, catalog_badge_id)
            values.update(catalog_badge_id=badge.id, catalog_badge_version=badge.version)
        if date_of_application is not None:
            values["date_of_application"] = date_of_application
        if date_of_fulfillment is not None:
            values["date_of_fulfillment"] = date_of_fulfillment
        if reason is not None:
            values["reason"] = reason
        _check_dates(
            values.get("date_of_application", row.date_of_application),
            values.get("date_of_fulfillment", row.date_of_fulfillment),
        )

        if values:
            res = db.execute(
                update(BadgeApplication)
                .where(BadgeApplication.id == application_id, BadgeApplication.status == S.draft)
                .values(updated_at=_now(), **values)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount == 0:
                raise InvalidTransition(db.execute(
                    select(BadgeApplication.status).where(BadgeApplication.id == application_id)
                ).scalar_one())
        db.commit()
        db.refresh(row)
    log.info("badge application %s updated by %s (%s)", application_id, caller.user_id, ", ".join(sorted(values)) or "no changes")
    return row


def submit_badge_application(db: Session, caller: AuthContext, application_id: str) -> BadgeApplication:
    with unit_of_work(db, "submit_badge_application", badge_application_id=application_id, caller=caller.user_id):
        row = _own_draft(db, caller, application_id)
        _active_catalog_badge(db, row.catalog_badge_id)

        _transition(db, application_id, S.draft, S.submitted, submitted_at=_now())
        db.commit()
        db.refresh(row)
    log.info("badge application %s submitted", application_id)
    return row


def review_badge_application(
    db: Session,
    caller: AuthContext,
    application_id: str,
    decision: S,
    note: Optional[str] = None,
) -> BadgeApplication:
    require_admin(caller)
    try:
        decision = S(decision)
    except ValueError:
        raise ValidationError("decision must be 'accepted' or 'rejected'")
    if decision not in REVIEW_DECISIONS:
        raise ValidationError("decision must be 'accepted' or 'rejected'")
    _check_reason("note", note)

    with unit_of_work(db, "review_badge_application", badge_application_id=application_id, reviewer=caller.user_id):
        row, _ = _load(db, application_id)
        _transition(
            db, application_id, S.submitted, decision,
            reviewed_by=caller.user_id, reviewed_at=_now(), review_reason=note,
        )
        db.commit()
        db.refresh(row)
    log.info("badge application %s %s by %s", application_id, decision.value, caller.user_id)
    return row


def delete_badge_application(db: Session, caller: AuthContext, application_id: str) -> None:
    with unit_of_work(db, "delete_badge_application", badge_application_id=application_id, caller=caller.user_id):
        row, state = _load(db, application_id, lock=True)
        if not caller.is_admin and row.applicant_id != caller.user_id:
            raise NotFound(f"Badge application {application_id} not found")
        if not caller.is_admin and not isinstance(state, Draft):
            raise InvalidTransition(state.status, "Only draft badge applications can be deleted")
        attached = db.execute(
            select(exists().where(PromotionBadge.badge_application_id == application_id))
        ).scalar()
        if attached:
            raise InvalidPrecondition("Badge application is attached to a promotion", badge_application_id=application_id)
        db.execute(
            delete(BadgeApplication)
            .where(BadgeApplication.id == application_id)
            .execution_options(synchronize_session=False)
        )
        db.expunge(row)
        db.commit()
    log.info("badge application %s deleted by %s", application_id, caller.user_id)


# --------------------------
# Transiciones internas (flujo de promociones). No hacen commit.
# --------------------------

def mark_used(db: Session, application_id: str) -> None:
    _transition(db, application_id, S.accepted, S.used_in_promotion)


def mark_accepted(db: Session, application_id: str) -> None:
    _transition(db, application_id, S.used_in_promotion, S.accepted)
