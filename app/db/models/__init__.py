from app.db.models.lead import Lead

__all__ = ["Lead"]
