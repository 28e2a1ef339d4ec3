from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import List, Optional, Literal
from datetime import date, datetime

from badger.schemas.pagination import PaginationOut

class BadgeApplicationCreate(BaseModel):
    catalog_badge_id: str = Field(min_length=1)
    date_of_application: date
    date_of_fulfillment: Optional[date] = None
    reason: Optional[str] = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def check_dates(self):
        if self.date_of_fulfillment and self.date_of_fulfillment < self.date_of_application:
            raise ValueError("date_of_fulfillment cannot be before date_of_application")
        return self

class BadgeApplicationUpdate(BaseModel):
    catalog_badge_id: Optional[str] = Field(default=None, min_length=1)
    date_of_application: Optional[date] = None
    date_of_fulfillment: Optional[date] = None
    reason: Optional[str] = Field(default=None, max_length=2000)

class ReviewIn(BaseModel):
    decision: Literal["accepted", "rejected"]
    note: Optional[str] = Field(default=None, max_length=2000)

class CatalogBadgeSummary(BaseModel):
    id: str
    title: str
    category: str
    level: str
    model_config = ConfigDict(from_attributes=True)

class BadgeApplicationOut(BaseModel):
    id: str
    applicant_id: str
    catalog_badge_id: str
    catalog_badge_version: int
    date_of_application: date
    date_of_fulfillment: Optional[date] = None
    reason: Optional[str] = None
    status: str
    submitted_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    catalog_badge: Optional[CatalogBadgeSummary] = None
    # IMPORTANTE para devolver ORM:
    model_config = ConfigDict(from_attributes=True)

class BadgeApplicationListOut(BaseModel):
    data: List[BadgeApplicationOut]
    pagination: PaginationOut
