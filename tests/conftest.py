"""
Fixtures comunes.

Cada test tiene su propia BD SQLite en fichero (tmp_path) para que varios
hilos/sesiones compartan datos en los tests de concurrencia.
"""
from datetime import date

import pytest
from sqlalchemy.orm import sessionmaker

from badger.db import Base, make_engine
import badger.models  # noqa: F401
from badger.domain.auth import AuthContext, ADMIN_ROLE
from badger.domain.badge_applications import service as badge_applications
from badger.models import BadgeApplicationStatus, CatalogBadge, PromotionTemplate

ALICE = AuthContext(user_id="user-alice")
BOB = AuthContext(user_id="user-bob")
ADMIN = AuthContext(user_id="admin-1", role=ADMIN_ROLE)


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'badger-test.db'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def make_badge(db):
    def _make(category="technical", level="silver", title=None, status="active"):
        badge = CatalogBadge(title=title or f"{category} {level}", category=category, level=level, status=status)
        db.add(badge)
        db.commit()
        return badge
    return _make


@pytest.fixture
def make_template(db):
    def _make(rules, path="technical", from_level="S1", to_level="S2", is_active=True):
        tpl = PromotionTemplate(
            name=f"{path} {from_level} -> {to_level}", path=path,
            from_level=from_level, to_level=to_level, rules=rules, is_active=is_active,
        )
        db.add(tpl)
        db.commit()
        return tpl
    return _make


@pytest.fixture
def accepted_application(db, make_badge):
    """Crea una solicitud y la lleva por draft -> submitted -> accepted."""
    def _make(category="technical", level="silver", owner=ALICE, badge=None):
        badge = badge or make_badge(category, level)
        app = badge_applications.create_badge_application(db, owner, badge.id, date(2026, 1, 15))
        badge_applications.submit_badge_application(db, owner, app.id)
        badge_applications.review_badge_application(db, ADMIN, app.id, BadgeApplicationStatus.accepted)
        assert app.status == BadgeApplicationStatus.accepted
        return app
    return _make
