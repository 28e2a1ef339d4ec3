from sqlalchemy import Column, Integer, String, Text, Date, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from enum import Enum as PyEnum
from uuid import uuid4
from badger.db import Base

class BadgeApplicationStatus(str, PyEnum):
    draft = "draft"
    submitted = "submitted"
    accepted = "accepted"
    rejected = "rejected"
    used_in_promotion = "used_in_promotion"

class BadgeApplication(Base):
    __tablename__ = "badge_applications"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    applicant_id = Column(String(36), index=True, nullable=False)
    catalog_badge_id = Column(String(36), ForeignKey("catalog_badges.id"), index=True, nullable=False)
    catalog_badge_version = Column(Integer, nullable=False)
    date_of_application = Column(Date, nullable=False)
    date_of_fulfillment = Column(Date, nullable=True)
    reason = Column(Text, nullable=True)

    status = Column(Enum(BadgeApplicationStatus, name="badge_application_status", native_enum=False, length=32),
                    nullable=False, default=BadgeApplicationStatus.draft, index=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by = Column(String(36), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    review_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    catalog_badge = relationship("CatalogBadge", lazy="joined")
