from sqlalchemy import Column, String, Text, Boolean, DateTime, Enum, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from enum import Enum as PyEnum
from uuid import uuid4
from badger.db import Base
from badger.models.promotion_template import PromotionPath

class PromotionStatus(str, PyEnum):
    draft = "draft"
    submitted = "submitted"
    approved = "approved"
    rejected = "rejected"

class Promotion(Base):
    __tablename__ = "promotions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    template_id = Column(String(36), ForeignKey("promotion_templates.id"), index=True, nullable=False)
    created_by = Column(String(36), index=True, nullable=False)

    # snapshot de la plantilla al crear el borrador
    path = Column(Enum(PromotionPath, name="promotion_path", native_enum=False, length=20), nullable=False)
    from_level = Column(String(20), nullable=False)
    to_level = Column(String(20), nullable=False)

    status = Column(Enum(PromotionStatus, name="promotion_status", native_enum=False, length=20),
                    nullable=False, default=PromotionStatus.draft)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    approved_by = Column(String(36), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejected_by = Column(String(36), nullable=True)
    reject_reason = Column(Text, nullable=True)
    executed = Column(Boolean, nullable=False, default=False)

    template = relationship("PromotionTemplate", lazy="joined")

    __table_args__ = (
        Index("ix_promotions_status_created_at", "status", "created_at"),
    )
