from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.models.lead import Lead as LeadModel


def _commit(db: Session) -> None:
    """Commit, rolling back first if the database rejects the write."""
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise


def get_lead_by_id(db: Session, lead_id: int) -> LeadModel | None:
    """Get a lead by ID."""
    return db.query(LeadModel).filter(LeadModel.id == lead_id).first()


def create_lead(
    db: Session,
    name: str,
    email: str,
    status: str,
    company: str | None = None,
    source: str | None = None,
) -> LeadModel:
    """Create a new lead. Uniqueness is enforced by the database."""
    db_lead = LeadModel(name=name, email=email, company=company, status=status, source=source)
    db.add(db_lead)
    _commit(db)
    db.refresh(db_lead)
    return db_lead


def update_lead(db: Session, lead_id: int, **fields) -> LeadModel:
    """
    Update lead fields. Only fields with a value other than None are written.

    Raises:
        NoResultFound: If the lead doesn't exist
    """
    lead = db.query(LeadModel).filter(LeadModel.id == lead_id).one()
    for key, value in fields.items():
        if value is not None:
            setattr(lead, key, value)
    _commit(db)
    db.refresh(lead)
    return lead


def delete_lead(db: Session, lead_id: int) -> None:
    """
    Delete a lead.

    Raises:
        NoResultFound: If the lead doesn't exist
    """
    lead = db.query(LeadModel).filter(LeadModel.id == lead_id).one()
    db.delete(lead)
    _commit(db)
