# Importa todos los modelos para que Base.metadata los conozca (create_all / Alembic)
from badger.models.catalog_badge import CatalogBadge, BadgeCategory, BadgeLevel, CatalogBadgeStatus
from badger.models.badge_application import BadgeApplication, BadgeApplicationStatus
from badger.models.promotion_template import PromotionTemplate, PromotionPath
from badger.models.promotion import Promotion, PromotionStatus
from badger.models.promotion_badge import PromotionBadge, UNCONSUMED_RESERVATION_INDEX

__all__ = [
    "CatalogBadge", "BadgeCategory", "BadgeLevel", "CatalogBadgeStatus",
    "BadgeApplication", "BadgeApplicationStatus",
    "PromotionTemplate", "PromotionPath",
    "Promotion", "PromotionStatus",
    "PromotionBadge", "UNCONSUMED_RESERVATION_INDEX",
]
