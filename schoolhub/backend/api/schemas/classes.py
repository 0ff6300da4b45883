from pydantic import BaseModel, Field
from uuid import UUID


class ClassCreateRequest(BaseModel):
    """Request model for creating a class owned by one teacher."""
    name: str = Field(..., min_length=1, description="The class name, e.g. 'Year 3 Maths'.")
    teacher_id: UUID = Field(..., description="Profile id of the owning teacher.")


class EnrollmentRequest(BaseModel):
    student_id: UUID
    class_id: UUID
