import logging

import pytest
from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql

from badger.domain.errors import (
    Forbidden, InconsistentState, InvalidPrecondition, InvalidTransition, NotFound,
    ReservationConflict, ValidationError, ValidationFailed,
)
from badger.domain.promotions import service
from badger.domain.promotions.state import Approved, Draft, Rejected, Submitted, promotion_state
from badger.domain.reservations import ledger
from badger.models import (
    BadgeApplication, BadgeApplicationStatus, Promotion, PromotionBadge, PromotionStatus,
)
from tests.conftest import ADMIN, ALICE, BOB

SILVER_SIX = [{"category": "technical", "level": "silver", "count": 6}]
GOLD_PAIR = [
    {"category": "any", "level": "gold", "count": 1},
    {"category": "technical", "level": "gold", "count": 1},
]


def reservations(db, promotion_id):
    return db.execute(select(PromotionBadge).where(PromotionBadge.promotion_id == promotion_id)).scalars().all()


def app_status(db, app_id):
    return db.execute(select(BadgeApplication.status).where(BadgeApplication.id == app_id)).scalar_one()


@pytest.fixture
def submitted_gold(db, make_template, accepted_application):
    """Promoción enviada con dos oros (uno técnico y otro organizativo)."""
    tpl = make_template(GOLD_PAIR)
    apps = [accepted_application("technical", "gold"), accepted_application("organizational", "gold")]
    promo = service.create_promotion_draft(db, ALICE, tpl.id)
    service.add_badges_to_promotion(db, ALICE, promo.id, [a.id for a in apps])
    service.submit_promotion(db, ALICE, promo.id)
    return promo, apps


# --------------------------
# Borrador y reservas
# --------------------------

def test_create_draft_snapshots_template(db, make_template):
    tpl = make_template(SILVER_SIX, path="technical", from_level="S1", to_level="S2")
    promo = service.create_promotion_draft(db, ALICE, tpl.id)

    assert promo.status == PromotionStatus.draft
    assert (promo.path.value, promo.from_level, promo.to_level) == ("technical", "S1", "S2")
    assert promo.executed is False
    assert isinstance(promotion_state(promo), Draft)


def test_create_draft_needs_active_template(db, make_template):
    tpl = make_template(SILVER_SIX, is_active=False)
    with pytest.raises(InvalidPrecondition):
        service.create_promotion_draft(db, ALICE, tpl.id)
    with pytest.raises(NotFound):
        service.create_promotion_draft(db, ALICE, "nope")


def test_second_promotion_gets_conflict_naming_the_first(db, make_template, accepted_application):
    tpl = make_template(SILVER_SIX)
    app = accepted_application()
    first = service.create_promotion_draft(db, ALICE, tpl.id)
    second = service.create_promotion_draft(db, ALICE, tpl.id)

    added = service.add_badges_to_promotion(db, ALICE, first.id, [app.id])
    assert added.badge_application_ids == [app.id]

    result = service.add_badges_to_promotion(db, ALICE, second.id, [app.id])
    assert result == ReservationConflict(badge_application_id=app.id, owning_promotion_id=first.id)
    assert reservations(db, second.id) == []


def test_batch_is_all_or_nothing(db, make_template, accepted_application):
    tpl = make_template(SILVER_SIX)
    free, taken = accepted_application(), accepted_application()
    holder = service.create_promotion_draft(db, ALICE, tpl.id)
    service.add_badges_to_promotion(db, ALICE, holder.id, [taken.id])

    promo = service.create_promotion_draft(db, ALICE, tpl.id)
    result = service.add_badges_to_promotion(db, ALICE, promo.id, [free.id, taken.id])

    assert isinstance(result, ReservationConflict)
    assert result.owning_promotion_id == holder.id
    assert reservations(db, promo.id) == []
    assert ledger.find_owner(db, free.id) is None


def test_batch_with_invalid_application_reserves_nothing(db, make_template, accepted_application, make_badge):
    from datetime import date
    from badger.domain.badge_applications import service as badge_applications

    tpl = make_template(SILVER_SIX)
    ok = accepted_application()
    draft_app = badge_applications.create_badge_application(db, ALICE, make_badge().id, date(2026, 3, 1))
    promo = service.create_promotion_draft(db, ALICE, tpl.id)

    with pytest.raises(InvalidPrecondition):
        service.add_badges_to_promotion(db, ALICE, promo.id, [ok.id, draft_app.id])
    assert reservations(db, promo.id) == []


def test_add_badges_preconditions(db, make_template, accepted_application):
    tpl = make_template(SILVER_SIX)
    promo = service.create_promotion_draft(db, ALICE, tpl.id)
    app = accepted_application()

    with pytest.raises(Forbidden):
        service.add_badges_to_promotion(db, BOB, promo.id, [app.id])
    with pytest.raises(NotFound):
        service.add_badges_to_promotion(db, ALICE, promo.id, ["missing"])
    with pytest.raises(NotFound):
        service.add_badges_to_promotion(db, ALICE, "missing", [app.id])
    with pytest.raises(ValidationError):
        service.add_badges_to_promotion(db, ALICE, promo.id, [])

    bobs = accepted_application(owner=BOB)
    with pytest.raises(Forbidden):
        service.add_badges_to_promotion(db, ALICE, promo.id, [bobs.id])


def test_cannot_add_badges_to_submitted_promotion(db, submitted_gold, accepted_application):
    promo, _ = submitted_gold
    with pytest.raises(InvalidPrecondition):
        service.add_badges_to_promotion(db, ALICE, promo.id, [accepted_application("technical", "gold").id])


def test_remove_badges_frees_them(db, make_template, accepted_application):
    tpl = make_template(SILVER_SIX)
    app = accepted_application()
    first = service.create_promotion_draft(db, ALICE, tpl.id)
    second = service.create_promotion_draft(db, ALICE, tpl.id)
    service.add_badges_to_promotion(db, ALICE, first.id, [app.id])

    assert service.remove_badges_from_promotion(db, ALICE, first.id, [app.id]) == [app.id]
    assert reservations(db, first.id) == []
    assert not isinstance(service.add_badges_to_promotion(db, ALICE, second.id, [app.id]), ReservationConflict)

    with pytest.raises(NotFound):
        service.remove_badges_from_promotion(db, ALICE, first.id, [app.id])


def test_delete_draft_releases_reservations(db, make_template, accepted_application):
    tpl = make_template(SILVER_SIX)
    app = accepted_application()
    promo = service.create_promotion_draft(db, ALICE, tpl.id)
    service.add_badges_to_promotion(db, ALICE, promo.id, [app.id])

    service.delete_promotion(db, ALICE, promo.id)

    assert db.get(Promotion, promo.id) is None
    assert ledger.find_owner(db, app.id) is None


def test_delete_submitted_promotion_is_rejected(db, submitted_gold):
    promo, _ = submitted_gold
    with pytest.raises(InvalidTransition):
        service.delete_promotion(db, ALICE, promo.id)


# --------------------------
# Elegibilidad y envío
# --------------------------

def test_preview_reports_progress(db, make_template, accepted_application):
    tpl = make_template(SILVER_SIX)
    promo = service.create_promotion_draft(db, ALICE, tpl.id)
    service.add_badges_to_promotion(db, ALICE, promo.id, [accepted_application().id for _ in range(3)])

    result = service.preview_eligibility(db, ALICE, promo.id)

    assert not result.is_valid
    assert result.requirements[0].current == 3
    assert result.missing[0].count == 3
    with pytest.raises(NotFound):
        service.preview_eligibility(db, BOB, promo.id)


def test_submit_with_shortfall_fails_and_stays_draft(db, make_template, accepted_application):
    tpl = make_template(SILVER_SIX)
    promo = service.create_promotion_draft(db, ALICE, tpl.id)
    service.add_badges_to_promotion(db, ALICE, promo.id, [accepted_application().id for _ in range(4)])

    with pytest.raises(ValidationFailed) as exc:
        service.submit_promotion(db, ALICE, promo.id)

    assert [m.to_dict() for m in exc.value.missing] == [{"category": "technical", "level": "silver", "count": 2}]
    db.refresh(promo)
    assert promo.status == PromotionStatus.draft
    assert promo.submitted_at is None


def test_submit_marks_badges_used(db, submitted_gold):
    promo, apps = submitted_gold
    db.refresh(promo)

    assert promo.status == PromotionStatus.submitted
    assert isinstance(promotion_state(promo), Submitted)
    assert {app_status(db, a.id) for a in apps} == {BadgeApplicationStatus.used_in_promotion}


def test_submit_only_by_creator_and_only_once(db, submitted_gold, make_template):
    promo, _ = submitted_gold
    with pytest.raises(InvalidTransition) as exc:
        service.submit_promotion(db, ALICE, promo.id)
    assert exc.value.current == "submitted"

    other = service.create_promotion_draft(db, ALICE, make_template([]).id)
    with pytest.raises(Forbidden):
        service.submit_promotion(db, BOB, other.id)


# --------------------------
# Aprobación / rechazo
# --------------------------

def test_approve_consumes_reservations_for_good(db, make_template, accepted_application):
    tpl = make_template([{"category": "technical", "level": "silver", "count": 3}])
    apps = [accepted_application() for _ in range(3)]
    promo = service.create_promotion_draft(db, ALICE, tpl.id)
    service.add_badges_to_promotion(db, ALICE, promo.id, [a.id for a in apps])
    service.submit_promotion(db, ALICE, promo.id)

    service.approve_promotion(db, ADMIN, promo.id)

    db.refresh(promo)
    assert promo.status == PromotionStatus.approved
    assert promo.executed is True
    assert promo.approved_by == ADMIN.user_id
    assert isinstance(promotion_state(promo), Approved)
    rows = reservations(db, promo.id)
    assert len(rows) == 3 and all(r.consumed for r in rows)

    elsewhere = service.create_promotion_draft(db, ALICE, tpl.id)
    for a in apps:
        with pytest.raises(InvalidPrecondition):
            service.add_badges_to_promotion(db, ALICE, elsewhere.id, [a.id])
    assert reservations(db, elsewhere.id) == []


def test_reject_releases_badges(db, make_template, accepted_application):
    tpl = make_template([{"category": "technical", "level": "silver", "count": 2}])
    apps = [accepted_application() for _ in range(2)]
    promo = service.create_promotion_draft(db, ALICE, tpl.id)
    service.add_badges_to_promotion(db, ALICE, promo.id, [a.id for a in apps])
    service.submit_promotion(db, ALICE, promo.id)

    service.reject_promotion(db, ADMIN, promo.id, "insufficient evidence")

    db.refresh(promo)
    assert promo.status == PromotionStatus.rejected
    assert promo.reject_reason == "insufficient evidence"
    assert promo.rejected_by == ADMIN.user_id
    assert isinstance(promotion_state(promo), Rejected)
    assert reservations(db, promo.id) == []
    assert {app_status(db, a.id) for a in apps} == {BadgeApplicationStatus.accepted}

    again = service.create_promotion_draft(db, ALICE, tpl.id)
    added = service.add_badges_to_promotion(db, ALICE, again.id, [a.id for a in apps])
    assert added.added_count == 2


def test_reject_revert_is_best_effort(db, submitted_gold, caplog):
    promo, apps = submitted_gold
    # una solicitud ya no está en used_in_promotion: su reversión falla
    db.execute(update(BadgeApplication).where(BadgeApplication.id == apps[0].id)
               .values(status=BadgeApplicationStatus.accepted))
    db.commit()

    with caplog.at_level(logging.WARNING, logger="reservations"):
        service.reject_promotion(db, ADMIN, promo.id, "insufficient evidence")

    db.refresh(promo)
    assert promo.status == PromotionStatus.rejected
    assert reservations(db, promo.id) == []
    assert app_status(db, apps[1].id) == BadgeApplicationStatus.accepted
    assert any(apps[0].id in r.getMessage() for r in caplog.records)


def test_approve_and_reject_need_admin(db, submitted_gold):
    promo, _ = submitted_gold
    with pytest.raises(Forbidden):
        service.approve_promotion(db, ALICE, promo.id)
    with pytest.raises(Forbidden):
        service.reject_promotion(db, ALICE, promo.id, "nope")


@pytest.mark.parametrize("reason", ["", "   ", "x" * 2001])
def test_reject_reason_length(db, submitted_gold, reason):
    promo, _ = submitted_gold
    with pytest.raises(ValidationError):
        service.reject_promotion(db, ADMIN, promo.id, reason)


def test_terminal_states_do_not_move(db, submitted_gold):
    promo, _ = submitted_gold
    service.approve_promotion(db, ADMIN, promo.id)

    with pytest.raises(InvalidTransition) as exc:
        service.reject_promotion(db, ADMIN, promo.id, "too late")
    assert exc.value.current == "approved"
    with pytest.raises(InvalidTransition):
        service.approve_promotion(db, ADMIN, promo.id)
    db.refresh(promo)
    assert promo.status == PromotionStatus.approved


def test_approve_draft_is_invalid_transition(db, make_template):
    promo = service.create_promotion_draft(db, ALICE, make_template(SILVER_SIX).id)
    with pytest.raises(InvalidTransition) as exc:
        service.approve_promotion(db, ADMIN, promo.id)
    assert exc.value.current == "draft"


def test_promotion_state_checks_metadata(db, submitted_gold):
    promo, _ = submitted_gold
    promo.status = PromotionStatus.approved
    with pytest.raises(InconsistentState):
        promotion_state(promo)
    db.rollback()


# --------------------------
# Consulta
# --------------------------

def test_get_and_list_respect_ownership(db, submitted_gold, make_template):
    promo, apps = submitted_gold
    service.create_promotion_draft(db, BOB, make_template(SILVER_SIX).id)

    detail = service.get_promotion(db, ALICE, promo.id)
    assert {a.id for a in detail.badge_applications} == {a.id for a in apps}
    with pytest.raises(NotFound):
        service.get_promotion(db, BOB, promo.id)

    mine = service.list_promotions(db, ALICE)
    assert [p.id for p in mine.items] == [promo.id]
    assert mine.total == 1 and not mine.has_more

    everything = service.list_promotions(db, ADMIN, limit=1)
    assert everything.total == 2 and everything.has_more
    assert service.list_promotions(db, ADMIN, status="submitted").total == 1
    assert service.list_promotions(db, ADMIN, created_by=BOB.user_id).total == 1


# --------------------------
# Bloqueos y coherencia de reservas
# --------------------------

def test_state_checks_lock_the_promotion_row():
    sql = str(ledger.promotion_lock("p-1").compile(dialect=postgresql.dialect()))
    assert "FOR UPDATE OF promotions" in sql


def test_approve_refuses_reservations_not_in_use(db, submitted_gold):
    promo, apps = submitted_gold
    # reserva que el envío no llegó a marcar como usada
    db.execute(update(BadgeApplication).where(BadgeApplication.id == apps[1].id)
               .values(status=BadgeApplicationStatus.accepted))
    db.commit()

    with pytest.raises(InconsistentState):
        service.approve_promotion(db, ADMIN, promo.id)

    db.refresh(promo)
    assert promo.status == PromotionStatus.submitted
    assert not any(r.consumed for r in reservations(db, promo.id))


def test_submit_marks_exactly_the_evaluated_reservations(db, make_template, accepted_application):
    tpl = make_template([{"category": "technical", "level": "silver", "count": 1}])
    apps = [accepted_application() for _ in range(3)]
    promo = service.create_promotion_draft(db, ALICE, tpl.id)
    service.add_badges_to_promotion(db, ALICE, promo.id, [a.id for a in apps])

    service.submit_promotion(db, ALICE, promo.id)

    assert ledger.reserved_not_in_use(db, promo.id) == []
    service.approve_promotion(db, ADMIN, promo.id)
    assert all(r.consumed for r in reservations(db, promo.id))


def test_inconsistent_promotion_row_fails_on_load(db, submitted_gold):
    promo, _ = submitted_gold
    db.execute(update(Promotion).where(Promotion.id == promo.id).values(submitted_at=None))
    db.commit()

    with pytest.raises(InconsistentState):
        service.get_promotion(db, ALICE, promo.id)
    with pytest.raises(InconsistentState):
        service.approve_promotion(db, ADMIN, promo.id)
