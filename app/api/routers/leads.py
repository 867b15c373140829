from typing import Any

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db
from app.schemas.lead import Lead, LeadCreate, LeadUpdate
from app.services.lead import create_lead, delete_lead, get_lead, update_lead

router = APIRouter(prefix="/leads", tags=["leads"])


@router.post("", response_model=Lead, status_code=status.HTTP_201_CREATED)
def create_new_lead(
    lead_data: LeadCreate,
    db: Session = Depends(get_db),
    current_user: dict[str, Any] = Depends(get_current_user),
):
    """Create a new lead. A duplicate email is rejected by the database."""
    lead = create_lead(db, lead_data)
    return Lead.model_validate(lead)


@router.get("/{lead_id}", response_model=Lead)
def get_lead_by_id(
    lead_id: int,
    db: Session = Depends(get_db),
    current_user: dict[str, Any] = Depends(get_current_user),
):
    lead = get_lead(db, lead_id)
    return Lead.model_validate(lead)


@router.patch("/{lead_id}", response_model=Lead)
def update_lead_by_id(
    lead_id: int,
    lead_data: LeadUpdate,
    db: Session = Depends(get_db),
    current_user: dict[str, Any] = Depends(get_current_user),
):
    lead = update_lead(db, lead_id, lead_data)
    return Lead.model_validate(lead)


@router.delete("/{lead_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_lead_by_id(
    lead_id: int,
    db: Session = Depends(get_db),
    current_user: dict[str, Any] = Depends(get_current_user),
):
    delete_lead(db, lead_id)
