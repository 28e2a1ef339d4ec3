from sqlalchemy import Column, String, Boolean, DateTime, JSON, Enum, Index
from sqlalchemy.sql import func
from enum import Enum as PyEnum
from uuid import uuid4
from badger.db import Base

class PromotionPath(str, PyEnum):
    technical = "technical"
    financial = "financial"
    management = "management"

class PromotionTemplate(Base):
    __tablename__ = "promotion_templates"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    name = Column(String(200), nullable=False)
    path = Column(Enum(PromotionPath, name="promotion_path", native_enum=False, length=20), nullable=False)
    from_level = Column(String(20), nullable=False)     # p.ej. "S1", "J2", "M1"
    to_level = Column(String(20), nullable=False)
    rules = Column(JSON, nullable=False, default=list)  # [{"category": "technical"|"any", "level": "gold", "count": 2}, ...]
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_promotion_templates_path_from_to", "path", "from_level", "to_level"),
    )
