from datetime import datetime
from typing import List, Optional, Literal
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel
from .models import UserRole


class CamelModel(BaseModel):
    """Wire models use camelCase keys; snake_case is accepted on input too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class UserRegister(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=1)
    role: Optional[Literal["student", "organizer", "admin"]] = None
    roll_no: Optional[str] = Field(default=None, max_length=100)
    college_name: Optional[str] = None
    branch: Optional[str] = None
    course: Optional[str] = None
    interests: List[str] = Field(default_factory=list)
    enroll_year: Optional[int] = None
    address: Optional[str] = None
    profile_pic: Optional[str] = Field(default=None, max_length=500)


class UserLogin(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class UserSummary(CamelModel):
    id: int
    name: str
    email: str
    role: UserRole
    interests: List[str] = Field(default_factory=list)


class AuthResponse(CamelModel):
    message: str
    token: str
    user: UserSummary


class TokenData(BaseModel):
    user_id: int
    role: UserRole


class UserProfileResponse(CamelModel):
    id: int
    name: str
    email: str
    role: UserRole
    roll_no: Optional[str] = None
    college_name: Optional[str] = None
    branch: Optional[str] = None
    course: Optional[str] = None
    interests: List[str] = Field(default_factory=list)
    enroll_year: Optional[int] = None
    address: Optional[str] = None
    profile_pic: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class StudentProfileResponse(UserProfileResponse):
    completion_year: Optional[int] = None


class InterestsUpdate(CamelModel):
    interests: List[str]


class ProfileUpdate(CamelModel):
    """Fields a user may change on their own record. Anything else in the body is dropped."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    roll_no: Optional[str] = Field(default=None, max_length=100)
    college_name: Optional[str] = None
    branch: Optional[str] = None
    course: Optional[str] = None
    enroll_year: Optional[int] = None
    address: Optional[str] = None
    profile_pic: Optional[str] = Field(default=None, max_length=500)
    interests: Optional[List[str]] = None


class EventCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1, max_length=100)
    date: datetime
    venue: str = Field(..., min_length=1, max_length=255)
    capacity: int


class OrganizerSummary(CamelModel):
    id: int
    name: str
    email: str


class EventResponse(CamelModel):
    id: int
    title: str
    description: str
    category: str
    date: datetime
    venue: str
    capacity: int
    registered_count: int
    organizer_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class EventWithOrganizerResponse(EventResponse):
    organizer: Optional[OrganizerSummary] = None


class MessageResponse(BaseModel):
    message: str
