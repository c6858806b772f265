"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Each class maps to a table and every tenant-owned table carries a
`church_id`. Nested value objects (address, settings, milestone and
step progress) are stored as JSON documents on their owning row.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, List, Optional
from uuid import uuid4

from sqlalchemy import JSON, Column
from sqlmodel import Field, Relationship, SQLModel

from .curriculums import get_available_curriculums


def new_id() -> str:
    return uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SubscriptionTier(str, Enum):
    FREE = 'free'
    STARTER = 'starter'
    GROWTH = 'growth'
    ENTERPRISE = 'enterprise'


class UserRole(str, Enum):
    PLATFORM_ADMIN = 'platform_admin'
    ADMIN = 'admin'
    PASTOR = 'pastor'
    TEACHER = 'teacher'
    MEMBER = 'member'
    STUDENT = 'student'


class StudyStatus(str, Enum):
    IN_PROGRESS = 'in-progress'
    PAUSED = 'paused'
    COMPLETED = 'completed'


class LessonStatus(str, Enum):
    NOT_STARTED = 'not-started'
    IN_PROGRESS = 'in-progress'
    COMPLETED = 'completed'


# Allowed targets per current status. Same-status writes are no-ops and
# always allowed.
STUDY_TRANSITIONS: Dict[StudyStatus, FrozenSet[StudyStatus]] = {
    StudyStatus.IN_PROGRESS: frozenset({StudyStatus.PAUSED, StudyStatus.COMPLETED}),
    StudyStatus.PAUSED: frozenset({StudyStatus.IN_PROGRESS, StudyStatus.COMPLETED}),
    StudyStatus.COMPLETED: frozenset({StudyStatus.IN_PROGRESS}),
}

LESSON_TRANSITIONS: Dict[LessonStatus, FrozenSet[LessonStatus]] = {
    LessonStatus.NOT_STARTED: frozenset({LessonStatus.IN_PROGRESS, LessonStatus.COMPLETED}),
    LessonStatus.IN_PROGRESS: frozenset({LessonStatus.NOT_STARTED, LessonStatus.COMPLETED}),
    LessonStatus.COMPLETED: frozenset({LessonStatus.IN_PROGRESS}),
}

NEW_BIRTH_MILESTONES = ('water_baptism', 'holy_ghost')

FIRST_STEPS = (
    ('step1_foundations', 'Foundations', 'Basic beliefs and doctrines'),
    ('step2_water_baptism', 'Water Baptism', 'Baptism in Jesus Name'),
    ('step3_holy_ghost', 'Holy Ghost', 'Receiving the Holy Spirit'),
    ('step4_prayer', 'Prayer', 'Developing a prayer life'),
    ('step5_word_of_god', 'Word of God', 'Bible study habits'),
    ('step6_church_life', 'Church Life', 'Church involvement'),
    ('step7_holiness', 'Holiness', 'Living a separated life'),
    ('step8_evangelism', 'Evangelism', 'Sharing your faith'),
)
FIRST_STEP_KEYS = tuple(key for key, _name, _desc in FIRST_STEPS)


def default_church_settings() -> dict:
    return {
        'timezone': 'America/New_York',
        'first_day_of_week': 0,
        'enabled_curriculums': get_available_curriculums(),
        'custom_fields': {},
    }


def initial_new_birth_status() -> dict:
    return {m: {'completed': False} for m in NEW_BIRTH_MILESTONES}


def initial_first_steps_progress() -> dict:
    return {key: {'started': False, 'completed': False} for key in FIRST_STEP_KEYS}


class Church(SQLModel, table=True):
    """A church: the tenant root. Every other entity belongs to one."""
    id: str = Field(default_factory=new_id, primary_key=True)
    name: str
    slug: str = Field(index=True, unique=True)
    address: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    settings: dict = Field(default_factory=default_church_settings, sa_column=Column(JSON, nullable=False))
    subscription: str = Field(default=SubscriptionTier.FREE.value)
    pastor_id: Optional[str] = None
    pastor_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    logo: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class User(SQLModel, table=True):
    """A user of any role, from platform admin to student.

    `password_hash` is never serialized; response schemas omit it.
    """
    id: str = Field(default_factory=new_id, primary_key=True)
    church_id: str = Field(foreign_key='church.id', index=True)
    email: str = Field(index=True, unique=True)
    password_hash: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    role: str = Field(default=UserRole.MEMBER.value)
    is_active: bool = True
    last_login_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Student(SQLModel, table=True):
    """A person's discipleship journey (New Birth + First Steps)."""
    id: str = Field(default_factory=new_id, primary_key=True)
    church_id: str = Field(foreign_key='church.id', index=True)
    user_id: str = Field(index=True)
    assigned_teacher_id: Optional[str] = Field(default=None, index=True)
    new_birth_status: dict = Field(default_factory=initial_new_birth_status, sa_column=Column(JSON, nullable=False))
    first_steps_progress: dict = Field(default_factory=initial_first_steps_progress, sa_column=Column(JSON, nullable=False))
    start_date: datetime = Field(default_factory=utcnow)
    completion_date: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class BibleStudy(SQLModel, table=True):
    """A curriculum-based study; owns its generated lessons."""
    id: str = Field(default_factory=new_id, primary_key=True)
    church_id: str = Field(foreign_key='church.id', index=True)
    student_id: str = Field(index=True)
    teacher_id: Optional[str] = Field(default=None, index=True)
    title: Optional[str] = None
    curriculum: str = Field(index=True)
    status: str = Field(default=StudyStatus.IN_PROGRESS.value, index=True)
    scheduled_day: Optional[str] = None
    scheduled_time: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    lessons: List['Lesson'] = Relationship(
        back_populates='study',
        sa_relationship_kwargs={'cascade': 'all, delete-orphan', 'order_by': 'Lesson.lesson_number'},
    )


class Lesson(SQLModel, table=True):
    """Progress through one lesson of a `BibleStudy`."""
    id: str = Field(default_factory=new_id, primary_key=True)
    study_id: str = Field(foreign_key='biblestudy.id', index=True)
    church_id: str = Field(index=True)
    lesson_number: int
    lesson_title: str
    status: str = Field(default=LessonStatus.NOT_STARTED.value)
    completed_date: Optional[datetime] = None
    teacher_notes: Optional[str] = None
    student_notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    study: Optional[BibleStudy] = Relationship(back_populates='lessons')
