from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime

from badger.schemas.badge_application import BadgeApplicationOut
from badger.schemas.pagination import PaginationOut

class PromotionCreate(BaseModel):
    template_id: str = Field(min_length=1)

class BadgeIdsIn(BaseModel):
    badge_application_ids: List[str] = Field(min_length=1, max_length=100)

class RejectIn(BaseModel):
    reject_reason: str = Field(min_length=1, max_length=2000)

class TemplateRuleOut(BaseModel):
    category: str
    level: str
    count: int

class TemplateOut(BaseModel):
    id: str
    name: str
    path: str
    from_level: str
    to_level: str
    rules: List[TemplateRuleOut]
    is_active: bool
    model_config = ConfigDict(from_attributes=True)

class PromotionOut(BaseModel):
    id: str
    template_id: str
    created_by: str
    path: str
    from_level: str
    to_level: str
    status: str
    created_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejected_by: Optional[str] = None
    reject_reason: Optional[str] = None
    executed: bool
    model_config = ConfigDict(from_attributes=True)

class PromotionDetailOut(PromotionOut):
    template: TemplateOut
    badge_applications: List[BadgeApplicationOut] = []

class PromotionListOut(BaseModel):
    data: List[PromotionOut]
    pagination: PaginationOut

class BadgesAddedOut(BaseModel):
    promotion_id: str
    badge_application_ids: List[str]
    added_count: int
    message: str

class RequirementOut(BaseModel):
    category: str
    level: str
    required: int
    current: int
    satisfied: bool

class MissingOut(BaseModel):
    category: str
    level: str
    count: int

class EligibilityOut(BaseModel):
    promotion_id: str
    is_valid: bool
    requirements: List[RequirementOut]
    missing: List[MissingOut]

