from typing import Literal, Optional
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from badger.deps import get_db, get_caller
from badger.domain.auth import AuthContext
from badger.domain.errors import ReservationConflict
from badger.domain.promotions import service
from badger.schemas.badge_application import BadgeApplicationOut
from badger.schemas.pagination import pagination_of
from badger.schemas.promotion import (
    BadgeIdsIn, BadgesAddedOut, EligibilityOut, PromotionCreate, PromotionDetailOut,
    PromotionListOut, PromotionOut, RejectIn, TemplateOut,
)

router = APIRouter(prefix="/promotions", tags=["promotions"])

@router.post("", response_model=PromotionOut, status_code=status.HTTP_201_CREATED)
def create_promotion(payload: PromotionCreate, db: Session = Depends(get_db), caller: AuthContext = Depends(get_caller)):
    return service.create_promotion_draft(db, caller, payload.template_id)

@router.get("", response_model=PromotionListOut)
def list_promotions(
    status_: Optional[Literal["draft", "submitted", "approved", "rejected"]] = Query(default=None, alias="status"),
    path: Optional[Literal["technical", "financial", "management"]] = None,
    created_by: Optional[str] = None,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    caller: AuthContext = Depends(get_caller),
):
    page = service.list_promotions(db, caller, status=status_, path=path, created_by=created_by, limit=limit, offset=offset)
    return {
        "data": page.items,
        "pagination": pagination_of(page),
    }

@router.get("/{promotion_id}", response_model=PromotionDetailOut)
def get_promotion(promotion_id: str, db: Session = Depends(get_db), caller: AuthContext = Depends(get_caller)):
    detail = service.get_promotion(db, caller, promotion_id)
    out = PromotionOut.model_validate(detail.promotion).model_dump()
    out["template"] = TemplateOut.model_validate(detail.promotion.template)
    out["badge_applications"] = [BadgeApplicationOut.model_validate(a) for a in detail.badge_applications]
    return out

@router.delete("/{promotion_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_promotion(promotion_id: str, db: Session = Depends(get_db), caller: AuthContext = Depends(get_caller)):
    service.delete_promotion(db, caller, promotion_id)

@router.post("/{promotion_id}/badges", response_model=BadgesAddedOut)
def add_badges(promotion_id: str, payload: BadgeIdsIn, db: Session = Depends(get_db), caller: AuthContext = Depends(get_caller)):
    result = service.add_badges_to_promotion(db, caller, promotion_id, payload.badge_application_ids)
    if isinstance(result, ReservationConflict):
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=result.to_dict())
    return {
        "promotion_id": result.promotion_id,
        "badge_application_ids": result.badge_application_ids,
        "added_count": result.added_count,
        "message": f"{result.added_count} badge(s) added successfully",
    }

@router.delete("/{promotion_id}/badges")
def remove_badges(promotion_id: str, payload: BadgeIdsIn, db: Session = Depends(get_db), caller: AuthContext = Depends(get_caller)):
    removed = service.remove_badges_from_promotion(db, caller, promotion_id, payload.badge_application_ids)
    return {"promotion_id": promotion_id, "removed_count": len(removed), "badge_application_ids": removed}

@router.get("/{promotion_id}/validation", response_model=EligibilityOut)
def validate_promotion(promotion_id: str, db: Session = Depends(get_db), caller: AuthContext = Depends(get_caller)):
    result = service.preview_eligibility(db, caller, promotion_id)
    return {
        "promotion_id": promotion_id,
        "is_valid": result.is_valid,
        "requirements": [r.to_dict() for r in result.requirements],
        "missing": [m.to_dict() for m in result.missing],
    }

@router.post("/{promotion_id}/submit", response_model=PromotionOut)
def submit_promotion(promotion_id: str, db: Session = Depends(get_db), caller: AuthContext = Depends(get_caller)):
    return service.submit_promotion(db, caller, promotion_id)

@router.post("/{promotion_id}/approve", response_model=PromotionOut)
def approve_promotion(promotion_id: str, db: Session = Depends(get_db), caller: AuthContext = Depends(get_caller)):
    return service.approve_promotion(db, caller, promotion_id)

@router.post("/{promotion_id}/reject", response_model=PromotionOut)
def reject_promotion(promotion_id: str, payload: RejectIn, db: Session = Depends(get_db), caller: AuthContext = Depends(get_caller)):
    return service.reject_promotion(db, caller, promotion_id, payload.reject_reason)
