"""
Database Schemas for the School Admin API

Each Pydantic model represents a MongoDB collection. The collection name is the
lowercase of the entity (e.g., Student -> "student"); see COLLECTIONS below.
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, PositiveFloat, PositiveInt
from typing import List, Union

CLASS_TEACHER = "Class Teacher"

DEFAULT_CLASSES = [f"Grade {n}" for n in range(1, 10)]


class Payment(BaseModel):
    amount: Union[PositiveInt, PositiveFloat] = Field(..., description="Amount paid")
    date: str = Field(..., min_length=1, description="Payment date as entered by the office")


class Fees(BaseModel):
    due: Union[int, float] = Field(..., description="Amount owed; not reduced by payments")
    payments: List[Payment] = Field(default_factory=list)


class Student(BaseModel):
    """
    Enrolled students
    Collection: "student"
    """
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, description="Full name")
    age: int = Field(..., gt=0, description="Age in years")
    class_: str = Field(..., alias="class", min_length=1, description="Class name, free text")
    fees: Fees


class Teacher(BaseModel):
    """
    Teaching staff
    Collection: "teacher"
    """
    name: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    role: str = Field(..., min_length=1, description='Free text; "Class Teacher" is special')
    classTeacherClass: str = Field("", description="Class led, only for class teachers")
    email: EmailStr


class SchoolClass(BaseModel):
    """
    Classes (grades)
    Collection: "class"
    """
    name: str = Field(..., min_length=1)
    teacher: str = ""
    leader: str = ""


class Announcement(BaseModel):
    """
    School-wide announcements, emailed to every teacher on creation
    Collection: "announcement"
    """
    text: str = Field(..., min_length=1)


COLLECTIONS = {
    Student: "student",
    Teacher: "teacher",
    SchoolClass: "class",
    Announcement: "announcement",
}


def to_document(model: BaseModel) -> dict:
    """Dump a model the way it is stored (aliases, e.g. ``class``)."""
    return model.model_dump(by_alias=True)
