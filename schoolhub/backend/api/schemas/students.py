from pydantic import BaseModel, Field, EmailStr
from datetime import date
from typing import Optional
from uuid import UUID


class StudentCreateRequest(BaseModel):
    """Request model for adding a student."""
    name: str = Field(..., min_length=1, description="The student's full name.")
    dob: Optional[date] = Field(None, description="Date of birth in YYYY-MM-DD format.")
    parent_id: Optional[UUID] = Field(None, description="Profile id of the parent account, if linked.")


class StudentUpdateRequest(BaseModel):
    """Partial update; only the fields that are sent are changed."""
    name: Optional[str] = Field(None, min_length=1)
    dob: Optional[date] = None
    parent_id: Optional[UUID] = None


class AccountCreateRequest(BaseModel):
    """Request model for creating a teacher or parent account."""
    full_name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6, description="Initial password for the account.")
