from sqlalchemy.orm import Session

import app.repositories.lead as lead_repo
from app.db.models.lead import Lead as LeadModel
from app.errors import NotFoundError, ValidationError
from app.schemas.lead import LeadCreate, LeadUpdate

LEAD_STATUSES = ("new", "contacted", "qualified", "lost", "won")


def _validate_status(status: str | None) -> None:
    if status is not None and status not in LEAD_STATUSES:
        raise ValidationError(
            f"Invalid lead status '{status}'. Allowed: {', '.join(LEAD_STATUSES)}"
        )


def create_lead(db: Session, lead_data: LeadCreate) -> LeadModel:
    """
    Create a new lead.

    - Validates the status against the pipeline stages
    - Email uniqueness is left to the database constraint
    """
    _validate_status(lead_data.status)
    return lead_repo.create_lead(
        db,
        name=lead_data.name,
        email=lead_data.email,
        status=lead_data.status,
        company=lead_data.company,
        source=lead_data.source,
    )


def get_lead(db: Session, lead_id: int) -> LeadModel:
    """
    Get a lead by ID.

    Raises:
        NotFoundError: If the lead doesn't exist
    """
    lead = lead_repo.get_lead_by_id(db, lead_id)
    if not lead:
        raise NotFoundError("Lead not found")
    return lead


def update_lead(db: Session, lead_id: int, lead_data: LeadUpdate) -> LeadModel:
    """Update a lead. A missing lead surfaces as the repository's not-found error."""
    _validate_status(lead_data.status)
    return lead_repo.update_lead(db, lead_id, **lead_data.model_dump(exclude_unset=True))


def delete_lead(db: Session, lead_id: int) -> None:
    lead_repo.delete_lead(db, lead_id)
