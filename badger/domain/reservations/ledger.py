"""
Libro de reservas (tabla promotion_badges).

Invariante: por cada solicitud hay como mucho UNA reserva con consumed = false.
No se comprueba leyendo antes de escribir: lo garantiza el índice único
parcial de la BD. Aquí se inserta y, si la BD lo rechaza, se busca quién
tiene la reserva y se devuelve un ReservationConflict.

Las comprobaciones de estado (promoción en borrador, solicitud aceptada) se
hacen con la fila bloqueada (SELECT ... FOR UPDATE), así un envío o una
aprobación concurrentes esperan a que esta transacción termine.

Estas funciones no hacen commit; la transacción es de quien las llama.
"""
import logging
from typing import Iterable, List, Optional, Sequence, Union

from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from badger.domain.badge_applications import service as badge_applications
from badger.domain.badge_applications.state import Accepted, application_state
from badger.domain.eligibility.validator import ReservedBadge
from badger.domain.errors import (
    BadgerError, Forbidden, InvalidPrecondition, NotFound, ReservationConflict,
)
from badger.domain.promotions.state import Draft, promotion_state
from badger.models.badge_application import BadgeApplication, BadgeApplicationStatus
from badger.models.catalog_badge import CatalogBadge
from badger.models.promotion import Promotion
from badger.models.promotion_badge import PromotionBadge, UNCONSUMED_RESERVATION_INDEX

log = logging.getLogger("reservations")


def _is_unconsumed_violation(exc: IntegrityError) -> bool:
    msg = str(exc.orig)
    # PostgreSQL nombra el índice; SQLite nombra la columna
    return UNCONSUMED_RESERVATION_INDEX in msg or "promotion_badges.badge_application_id" in msg


def promotion_lock(promotion_id: str):
    return (
        select(Promotion)
        .where(Promotion.id == promotion_id)
        .with_for_update(of=Promotion)
        .execution_options(populate_existing=True)
    )


def lock_promotion(db: Session, promotion_id: str) -> Optional[Promotion]:
    """La promoción con su fila bloqueada hasta el final de la transacción."""
    return db.execute(promotion_lock(promotion_id)).scalar_one_or_none()


def _draft_promotion(db: Session, promotion_id: str, assigner_id: str) -> Promotion:
    promotion = lock_promotion(db, promotion_id)
    if promotion is None:
        raise NotFound(f"Promotion {promotion_id} not found")
    if promotion.created_by != assigner_id:
        raise Forbidden("User does not own this promotion")
    state = promotion_state(promotion)
    if not isinstance(state, Draft):
        raise InvalidPrecondition(
            "Promotion is not in draft status", promotion_id=promotion_id,
            current_status=state.status.value,
        )
    return promotion


def _accepted_application(db: Session, application_id: str, owner_id: str) -> BadgeApplication:
    app = badge_applications.lock_application(db, application_id)
    if app is None:
        raise NotFound(f"Badge application {application_id} not found")
    if app.applicant_id != owner_id:
        raise Forbidden("Badge application belongs to another user")
    state = application_state(app)
    if not isinstance(state, Accepted):
        raise InvalidPrecondition(
            "Badge application is not accepted", badge_application_id=application_id,
            current_status=state.status.value,
        )
    return app


def find_owner(db: Session, application_id: str) -> Optional[str]:
    """Promoción que tiene la reserva sin consumir de esta solicitud (o None)."""
    return db.execute(
        select(PromotionBadge.promotion_id).where(
            PromotionBadge.badge_application_id == application_id,
            PromotionBadge.consumed.is_(False),
        )
    ).scalar_one_or_none()


def _insert(db: Session, promotion_id: str, application_id: str, assigner_id: str) -> Union[PromotionBadge, ReservationConflict]:
    row = PromotionBadge(
        promotion_id=promotion_id,
        badge_application_id=application_id,
        assigned_by=assigner_id,
        consumed=False,
    )
    try:
        with db.begin_nested():
            db.add(row)
            db.flush()
    except IntegrityError as e:
        if not _is_unconsumed_violation(e):
            raise
        owner = find_owner(db, application_id)
        log.warning(
            "reservation conflict: badge application %s requested by promotion %s is held by %s",
            application_id, promotion_id, owner,
        )
        return ReservationConflict(badge_application_id=application_id, owning_promotion_id=owner)
    return row


def add_reservation(db: Session, promotion_id: str, application_id: str, assigner_id: str) -> Union[PromotionBadge, ReservationConflict]:
    promotion = _draft_promotion(db, promotion_id, assigner_id)
    _accepted_application(db, application_id, promotion.created_by)
    return _insert(db, promotion_id, application_id, assigner_id)


def add_reservations(
    db: Session, promotion_id: str, application_ids: Sequence[str], assigner_id: str,
) -> Union[List[PromotionBadge], ReservationConflict]:
    """
    Todo o nada: si una solicitud no se puede reservar (conflicto o precondición)
    no queda ninguna reserva de este lote.
    """
    promotion = _draft_promotion(db, promotion_id, assigner_id)
    batch = db.begin_nested()
    added: List[PromotionBadge] = []
    try:
        for application_id in application_ids:
            _accepted_application(db, application_id, promotion.created_by)
            result = _insert(db, promotion_id, application_id, assigner_id)
            if isinstance(result, ReservationConflict):
                batch.rollback()
                return result
            added.append(result)
    except (BadgerError, SQLAlchemyError):
        batch.rollback()
        raise
    batch.commit()
    return added


def remove_reservations(db: Session, promotion_id: str, application_ids: Iterable[str], assigner_id: str) -> List[str]:
    _draft_promotion(db, promotion_id, assigner_id)
    ids = list(application_ids)
    attached = set(db.execute(
        select(PromotionBadge.badge_application_id).where(
            PromotionBadge.promotion_id == promotion_id,
            PromotionBadge.badge_application_id.in_(ids),
            PromotionBadge.consumed.is_(False),
        )
    ).scalars())
    not_attached = [i for i in ids if i not in attached]
    if not_attached:
        raise NotFound(f"Badge applications not attached to promotion {promotion_id}: {', '.join(not_attached)}")
    db.execute(
        delete(PromotionBadge)
        .where(PromotionBadge.promotion_id == promotion_id, PromotionBadge.badge_application_id.in_(ids))
        .execution_options(synchronize_session=False)
    )
    return ids


def reserved_application_ids(db: Session, promotion_id: str) -> List[str]:
    return list(db.execute(
        select(PromotionBadge.badge_application_id)
        .where(PromotionBadge.promotion_id == promotion_id, PromotionBadge.consumed.is_(False))
        .order_by(PromotionBadge.assigned_at, PromotionBadge.id)
    ).scalars())


def reserved_badges(db: Session, promotion_id: str) -> List[ReservedBadge]:
    """Insignias con reserva sin consumir, con categoría/nivel del catálogo."""
    rows = db.execute(
        select(BadgeApplication.id, CatalogBadge.category, CatalogBadge.level)
        .join(PromotionBadge, PromotionBadge.badge_application_id == BadgeApplication.id)
        .join(CatalogBadge, CatalogBadge.id == BadgeApplication.catalog_badge_id)
        .where(PromotionBadge.promotion_id == promotion_id, PromotionBadge.consumed.is_(False))
        .order_by(PromotionBadge.assigned_at, PromotionBadge.id)
    ).all()
    return [ReservedBadge(badge_application_id=r[0], category=r[1], level=r[2]) for r in rows]


def reserved_not_in_use(db: Session, promotion_id: str) -> List[str]:
    """Reservas sin consumir cuya solicitud no está en used_in_promotion."""
    return list(db.execute(
        select(PromotionBadge.badge_application_id)
        .join(BadgeApplication, BadgeApplication.id == PromotionBadge.badge_application_id)
        .where(
            PromotionBadge.promotion_id == promotion_id,
            PromotionBadge.consumed.is_(False),
            BadgeApplication.status != BadgeApplicationStatus.used_in_promotion,
        )
    ).scalars())


def consume(db: Session, promotion_id: str) -> int:
    """Marca como consumidas todas las reservas de la promoción. Irreversible."""
    res = db.execute(
        update(PromotionBadge)
        .where(PromotionBadge.promotion_id == promotion_id, PromotionBadge.consumed.is_(False))
        .values(consumed=True)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount


def release(db: Session, promotion_id: str) -> List[str]:
    """
    Borra las reservas de la promoción y devuelve cada solicitud a 'accepted'.
    El borrado va en la transacción del llamante; la reversión de cada
    solicitud es best-effort (savepoint propio, se registra y se sigue).
    """
    application_ids = reserved_application_ids(db, promotion_id)
    db.execute(
        delete(PromotionBadge)
        .where(PromotionBadge.promotion_id == promotion_id, PromotionBadge.consumed.is_(False))
        .execution_options(synchronize_session=False)
    )
    reverted: List[str] = []
    for application_id in application_ids:
        try:
            with db.begin_nested():
                badge_applications.mark_accepted(db, application_id)
            reverted.append(application_id)
        except (BadgerError, SQLAlchemyError) as e:
            log.warning(
                "could not revert badge application %s to accepted after releasing promotion %s: %s",
                application_id, promotion_id, e,
            )
    return reverted
