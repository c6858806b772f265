"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and provide validation for
controller handlers and tests. Response models read attributes straight
off the SQLModel rows (`from_attributes`).
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .models import LessonStatus, StudyStatus, SubscriptionTier, UserRole

SLUG_PATTERN = r'^[a-z0-9-]+$'


class _Out(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# -- value objects ---------------------------------------------------------

class Address(BaseModel):
    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    zip: str = Field(min_length=1)
    country: str = 'USA'


class ChurchSettings(BaseModel):
    timezone: str = 'America/New_York'
    first_day_of_week: Literal[0, 1] = 0
    enabled_curriculums: Optional[List[str]] = None
    custom_fields: Dict[str, str] = Field(default_factory=dict)


class MilestoneStatus(BaseModel):
    completed: bool = False
    date: Optional[str] = None
    notes: Optional[str] = None


class NewBirthStatus(BaseModel):
    water_baptism: MilestoneStatus
    holy_ghost: MilestoneStatus


class StepProgress(BaseModel):
    started: bool = False
    started_date: Optional[str] = None
    completed: bool = False
    completed_date: Optional[str] = None
    mentor_id: Optional[str] = None
    notes: Optional[str] = None


# -- health ------------------------------------------------------------------

class HealthOut(BaseModel):
    status: str
    timestamp: str
    version: str


# -- auth / users ------------------------------------------------------------

class RegisterIn(BaseModel):
    """Self-service registration into an existing church."""
    email: EmailStr
    password: str = Field(min_length=8, max_length=100)
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    church_id: str
    role: Optional[UserRole] = None
    phone: Optional[str] = None


class LoginIn(BaseModel):
    email: EmailStr
    password: str


class ChangePasswordIn(BaseModel):
    current_password: str
    new_password: str = Field(min_length=8, max_length=100)


class UserOut(_Out):
    id: str
    church_id: str
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    role: str
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class TokenOut(BaseModel):
    """Authentication response containing an access token."""
    access_token: str
    token_type: str = 'bearer'
    expires_in: int
    user: UserOut


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=100)
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    phone: Optional[str] = None
    role: UserRole


class UserUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    phone: Optional[str] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None


class UserPage(BaseModel):
    items: List[UserOut]
    next_cursor: Optional[str] = None


# -- churches ----------------------------------------------------------------

class ChurchCreate(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    slug: str = Field(min_length=2, max_length=50, pattern=SLUG_PATTERN)
    address: Address
    settings: Optional[ChurchSettings] = None
    subscription: SubscriptionTier = SubscriptionTier.FREE
    pastor_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    website: Optional[str] = None


class ChurchUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    address: Optional[Address] = None
    settings: Optional[ChurchSettings] = None
    pastor_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    website: Optional[str] = None
    logo: Optional[str] = None


class ChurchOut(_Out):
    id: str
    name: str
    slug: str
    address: Dict[str, str]
    settings: ChurchSettings
    subscription: str
    pastor_id: Optional[str] = None
    pastor_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    logo: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ChurchStatsOut(BaseModel):
    total_students: int
    active_studies: int
    completed_journeys: int
    baptisms_this_month: int
    holy_ghost_this_month: int


# -- students ----------------------------------------------------------------

class StudentCreate(BaseModel):
    user_id: str
    assigned_teacher_id: Optional[str] = None
    start_date: Optional[datetime] = None
    notes: Optional[str] = None


class StudentUpdate(BaseModel):
    assigned_teacher_id: Optional[str] = None
    notes: Optional[str] = None


class NewBirthMilestoneIn(BaseModel):
    milestone: Literal['water_baptism', 'holy_ghost']
    completed: bool
    date: Optional[datetime] = None
    notes: Optional[str] = None


class FirstStepIn(BaseModel):
    started: Optional[bool] = None
    completed: Optional[bool] = None
    mentor_id: Optional[str] = None
    notes: Optional[str] = None


class StudentOut(_Out):
    id: str
    church_id: str
    user_id: str
    assigned_teacher_id: Optional[str] = None
    new_birth_status: NewBirthStatus
    first_steps_progress: Dict[str, StepProgress]
    start_date: datetime
    completion_date: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class StudentPage(BaseModel):
    items: List[StudentOut]
    next_cursor: Optional[str] = None


class NewBirthStatsOut(BaseModel):
    total_students: int
    awaiting_baptism: int
    awaiting_holy_ghost: int
    completed_new_birth: int
    baptisms_this_month: int
    holy_ghost_this_month: int


class StepCounts(BaseModel):
    started: int
    completed: int


class FirstStepsStatsOut(BaseModel):
    total_students: int
    step_progress: Dict[str, StepCounts]
    average_completion: int
    fully_completed: int


# -- studies and lessons -----------------------------------------------------

class StudyCreate(BaseModel):
    student_id: str
    curriculum: str = Field(min_length=1, max_length=100)
    title: Optional[str] = Field(default=None, min_length=2, max_length=200)
    teacher_id: Optional[str] = None
    scheduled_day: Optional[str] = None
    scheduled_time: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None


class StudyUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=2, max_length=200)
    status: Optional[StudyStatus] = None
    teacher_id: Optional[str] = None
    scheduled_day: Optional[str] = None
    scheduled_time: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None


class StudyStatusIn(BaseModel):
    status: StudyStatus


class LessonOut(_Out):
    id: str
    study_id: str
    lesson_number: int
    lesson_title: str
    status: LessonStatus
    completed_date: Optional[datetime] = None
    teacher_notes: Optional[str] = None
    student_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class StudyOut(_Out):
    id: str
    church_id: str
    student_id: str
    teacher_id: Optional[str] = None
    title: Optional[str] = None
    curriculum: str
    status: StudyStatus
    scheduled_day: Optional[str] = None
    scheduled_time: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class StudyDetailOut(StudyOut):
    lessons: List[LessonOut]


class StudyPage(BaseModel):
    items: List[StudyOut]
    next_cursor: Optional[str] = None


class ReconcileOut(BaseModel):
    incomplete_study_ids: List[str]


class LessonUpdate(BaseModel):
    status: Optional[LessonStatus] = None
    teacher_notes: Optional[str] = None
    student_notes: Optional[str] = None
    completed_date: Optional[datetime] = None


class LessonCompleteIn(BaseModel):
    notes: Optional[str] = None


class LessonNoteIn(BaseModel):
    type: Literal['teacher', 'student']
    content: str = Field(min_length=1)


class CurriculumLessonOut(BaseModel):
    number: int
    title: str
    description: Optional[str] = None


class CurriculumOut(BaseModel):
    id: str
    lessons: List[CurriculumLessonOut]
