from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Index, false
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from uuid import uuid4
from badger.db import Base

class PromotionBadge(Base):
    """Reserva: une una solicitud aceptada a una promoción."""
    __tablename__ = "promotion_badges"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    promotion_id = Column(String(36), ForeignKey("promotions.id", ondelete="CASCADE"), index=True, nullable=False)
    badge_application_id = Column(String(36), ForeignKey("badge_applications.id"), nullable=False)
    assigned_by = Column(String(36), nullable=False)
    assigned_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    consumed = Column(Boolean, nullable=False, default=False)

    badge_application = relationship("BadgeApplication", lazy="joined")

# Una solicitud solo puede tener UNA reserva sin consumir. Lo garantiza la base de datos.
UNCONSUMED_RESERVATION_INDEX = "ux_promotion_badges_badge_application_unconsumed"

Index(
    UNCONSUMED_RESERVATION_INDEX,
    PromotionBadge.badge_application_id,
    unique=True,
    postgresql_where=PromotionBadge.consumed == false(),
    sqlite_where=PromotionBadge.consumed == false(),
)
