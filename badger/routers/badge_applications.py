from typing import Literal, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from badger.deps import get_db, get_caller
from badger.domain.auth import AuthContext
from badger.domain.badge_applications import service
from badger.schemas.badge_application import (
    BadgeApplicationCreate, BadgeApplicationListOut, BadgeApplicationOut, BadgeApplicationUpdate, ReviewIn,
)
from badger.schemas.pagination import pagination_of

router = APIRouter(prefix="/badge-applications", tags=["badge-applications"])

@router.get("", response_model=BadgeApplicationListOut)
def list_badge_applications(
    status_: Optional[Literal["draft", "submitted", "accepted", "rejected", "used_in_promotion"]] = Query(default=None, alias="status"),
    catalog_badge_id: Optional[str] = None,
    applicant_id: Optional[str] = None,
    sort: Literal["created_at", "submitted_at"] = "created_at",
    order: Literal["asc", "desc"] = "desc",
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    caller: AuthContext = Depends(get_caller),
):
    page = service.list_badge_applications(
        db, caller, status=status_, catalog_badge_id=catalog_badge_id, applicant_id=applicant_id,
        sort=sort, order=order, limit=limit, offset=offset,
    )
    return {"data": page.items, "pagination": pagination_of(page)}

@router.post("", response_model=BadgeApplicationOut, status_code=status.HTTP_201_CREATED)
def create_badge_application(
    payload: BadgeApplicationCreate,
    db: Session = Depends(get_db),
    caller: AuthContext = Depends(get_caller),
):
    return service.create_badge_application(
        db, caller,
        catalog_badge_id=payload.catalog_badge_id,
        date_of_application=payload.date_of_application,
        date_of_fulfillment=payload.date_of_fulfillment,
        reason=payload.reason,
    )

@router.get("/{application_id}", response_model=BadgeApplicationOut)
def get_badge_application(application_id: str, db: Session = Depends(get_db), caller: AuthContext = Depends(get_caller)):
    return service.get_badge_application(db, caller, application_id)

@router.put("/{application_id}", response_model=BadgeApplicationOut)
def update_badge_application(
    application_id: str,
    payload: BadgeApplicationUpdate,
    db: Session = Depends(get_db),
    caller: AuthContext = Depends(get_caller),
):
    return service.update_badge_application(db, caller, application_id, **payload.model_dump(exclude_none=True))

@router.delete("/{application_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_badge_application(application_id: str, db: Session = Depends(get_db), caller: AuthContext = Depends(get_caller)):
    service.delete_badge_application(db, caller, application_id)

@router.post("/{application_id}/submit", response_model=BadgeApplicationOut)
def submit_badge_application(application_id: str, db: Session = Depends(get_db), caller: AuthContext = Depends(get_caller)):
    return service.submit_badge_application(db, caller, application_id)

@router.post("/{application_id}/review", response_model=BadgeApplicationOut)
def review_badge_application(
    application_id: str,
    payload: ReviewIn,
    db: Session = Depends(get_db),
    caller: AuthContext = Depends(get_caller),
):
    return service.review_badge_application(db, caller, application_id, payload.decision, payload.note)
