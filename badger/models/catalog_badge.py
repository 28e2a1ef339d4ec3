from sqlalchemy import Column, Integer, String, Text, DateTime, Enum, Index
from sqlalchemy.sql import func
from enum import Enum as PyEnum
from uuid import uuid4
from badger.db import Base

class BadgeCategory(str, PyEnum):
    technical = "technical"
    organizational = "organizational"
    softskilled = "softskilled"

class BadgeLevel(str, PyEnum):
    gold = "gold"
    silver = "silver"
    bronze = "bronze"

class CatalogBadgeStatus(str, PyEnum):
    active = "active"
    inactive = "inactive"

class CatalogBadge(Base):
    __tablename__ = "catalog_badges"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(Enum(BadgeCategory, name="badge_category", native_enum=False, length=20), nullable=False)
    level = Column(Enum(BadgeLevel, name="badge_level", native_enum=False, length=20), nullable=False)
    status = Column(Enum(CatalogBadgeStatus, name="catalog_badge_status", native_enum=False, length=20),
                    nullable=False, default=CatalogBadgeStatus.active)
    version = Column(Integer, nullable=False, default=1)   # se copia en la solicitud al crearla
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    deactivated_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_catalog_badges_category_level", "category", "level"),
    )
