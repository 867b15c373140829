from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class Lead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    company: str | None = None
    status: str
    source: str | None = None
    created_at: datetime


class LeadCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    company: str | None = Field(None, max_length=255)
    status: str = "new"
    source: str | None = Field(None, max_length=64)


class LeadUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    email: EmailStr | None = None
    company: str | None = Field(None, max_length=255)
    status: str | None = None
    source: str | None = Field(None, max_length=64)
