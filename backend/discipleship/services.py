"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories,
the curriculum catalog and the status transition tables. Services are
intentionally thin: they validate, stamp timestamps, run the domain
logic and persist aggregates via repositories. Every method that reads
or writes tenant data takes the caller's `church_id`.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import jwt
from passlib.context import CryptContext
from sqlmodel import Session

from . import models, repositories
from .config import Settings
from .curriculums import get_curriculum_lessons, is_catalog_curriculum
from .errors import (
    AuthenticationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from .logging_setup import log_event
from .permissions import can_assign_role

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
SELF_SERVICE_ROLES = (models.UserRole.MEMBER.value, models.UserRole.STUDENT.value)

logger = logging.getLogger("discipleship.services")


def hash_password(password: str) -> str:
    return PWD_CTX.hash(password)


def _parse_iso(value) -> Optional[datetime]:
    """Parse a stored ISO-8601 string; naive values are taken as UTC."""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _start_of_month(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _check_transition(table, current: str, target: str, label: str) -> None:
    enum_type = type(next(iter(table)))
    try:
        current_status = enum_type(current)
    except ValueError:
        # legacy rows with an unknown status may move anywhere
        return
    target_status = enum_type(target)
    if target_status == current_status:
        return
    if target_status not in table[current_status]:
        raise InvalidTransitionError(
            f'{label} cannot move from {current_status.value} to {target_status.value}'
        )


class AuthService:
    """Authentication related operations (register + authenticate)."""
    def __init__(self, session: Session, settings: Settings):
        self.session = session
        self.settings = settings
        self.user_repo = repositories.UserRepository(session)
        self.church_repo = repositories.ChurchRepository(session)

    def register(self, email: str, password: str, first_name: str, last_name: str, church_id: str,
                 role: Optional[str] = None, phone: Optional[str] = None) -> models.User:
        """Create a new user with a hashed password in an existing church.

        Self-registration may only request the `member` or `student` role;
        elevated roles are granted through `UserService.create`.
        """
        role = models.UserRole(role or models.UserRole.STUDENT.value).value
        if role not in SELF_SERVICE_ROLES:
            raise PermissionDeniedError(f'cannot self-register with role {role}')
        if self.user_repo.get_by_email(email):
            raise ConflictError('An account with this email already exists', code='EMAIL_EXISTS')
        if not self.church_repo.find_by_id(church_id):
            raise NotFoundError('Church not found', code='CHURCH_NOT_FOUND')
        now = models.utcnow()
        user = models.User(
            church_id=church_id,
            email=email.lower(),
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            role=role,
            created_at=now,
            updated_at=now,
        )
        user = self.user_repo.create(user)
        log_event(logger, 'user_registered', {'user_id': user.id, 'church_id': church_id, 'role': role})
        return user

    def authenticate(self, email: str, password: str) -> models.User:
        """Verify credentials and stamp `last_login_at`.

        Raises `AuthenticationError` for unknown emails, wrong passwords
        and disabled accounts.
        """
        # One lookup by email then verify the supplied password hash.
        user = self.user_repo.get_by_email(email)
        if not user or not PWD_CTX.verify(password, user.password_hash):
            raise AuthenticationError('Invalid email or password')
        if not user.is_active:
            raise AuthenticationError('This account has been disabled', code='ACCOUNT_DISABLED')
        return self.user_repo.update(user.id, user.church_id, {'last_login_at': models.utcnow()})

    def issue_token(self, user: models.User) -> str:
        """Return a signed JWT carrying the user's id, church and role."""
        expire = datetime.now(timezone.utc) + timedelta(hours=self.settings.JWT_EXPIRE_HOURS)
        payload = {
            "user_id": user.id,
            "church_id": user.church_id,
            "role": user.role,
            "exp": int(expire.timestamp()),
        }
        return jwt.encode(payload, self.settings.JWT_SECRET, algorithm=self.settings.JWT_ALGORITHM)

    def change_password(self, user_id: str, church_id: str, current_password: str, new_password: str) -> None:
        user = self.user_repo.find_by_id(user_id, church_id)
        if not user:
            raise NotFoundError('User not found', code='USER_NOT_FOUND')
        if not PWD_CTX.verify(current_password, user.password_hash):
            raise AuthenticationError('Current password is incorrect')
        self.user_repo.update(user_id, church_id, {
            'password_hash': hash_password(new_password),
            'updated_at': models.utcnow(),
        })


class UserService:
    """Church-scoped user administration."""
    def __init__(self, session: Session):
        self.session = session
        self.repository = repositories.UserRepository(session)

    def get_by_id(self, user_id: str, church_id: str) -> Optional[models.User]:
        return self.repository.find_by_id(user_id, church_id)

    def list_by_church(self, church_id: str, *, role: Optional[str] = None,
                       limit: int = repositories.DEFAULT_PAGE_SIZE, cursor: Optional[str] = None) -> repositories.Page:
        return self.repository.list_by_church(church_id, role=role, limit=limit, cursor=cursor)

    def create(self, church_id: str, actor_role: str, data: Dict) -> models.User:
        """Create a user in `church_id` on behalf of an actor with `actor_role`."""
        role = models.UserRole(data["role"]).value
        if not can_assign_role(actor_role, role):
            raise PermissionDeniedError(f'{actor_role} cannot assign role {role}')
        if self.repository.get_by_email(data['email']):
            raise ConflictError('An account with this email already exists', code='EMAIL_EXISTS')
        now = models.utcnow()
        user = models.User(
            church_id=church_id,
            email=data['email'].lower(),
            password_hash=hash_password(data['password']),
            first_name=data['first_name'],
            last_name=data['last_name'],
            phone=data.get('phone'),
            role=role,
            created_at=now,
            updated_at=now,
        )
        return self.repository.create(user)

    def update(self, user_id: str, church_id: str, actor_role: str, data: Dict) -> models.User:
        data = dict(data)
        if data.get("role") is not None:
            data["role"] = models.UserRole(data["role"]).value
            if not can_assign_role(actor_role, data["role"]):
                raise PermissionDeniedError(f'{actor_role} cannot assign role {data["role"]}')
        return self.repository.update(user_id, church_id, {**data, 'updated_at': models.utcnow()})


class ChurchService:
    """Tenant lifecycle and church-wide statistics."""
    def __init__(self, session: Session):
        self.session = session
        self.repository = repositories.ChurchRepository(session)
        self.student_repo = repositories.StudentRepository(session)
        self.study_repo = repositories.StudyRepository(session)

    def get_by_id(self, church_id: str) -> Optional[models.Church]:
        return self.repository.find_by_id(church_id)

    def get_by_slug(self, slug: str) -> Optional[models.Church]:
        return self.repository.find_by_slug(slug)

    def list_all(self) -> List[models.Church]:
        return self.repository.list_all()

    def create(self, data: Dict) -> models.Church:
        """Create a church; the slug must be unique."""
        if self.repository.find_by_slug(data['slug']):
            raise ConflictError(f"slug already in use: {data['slug']}", code='SLUG_EXISTS')
        settings = models.default_church_settings()
        settings.update({k: v for k, v in (data.get('settings') or {}).items() if v is not None})
        data = dict(data)
        data["subscription"] = models.SubscriptionTier(data.get("subscription") or "free").value
        now = models.utcnow()
        church = models.Church(
            **{k: v for k, v in data.items() if k != 'settings'},
            settings=settings,
            created_at=now,
            updated_at=now,
        )
        church = self.repository.create(church)
        log_event(logger, 'church_created', {'church_id': church.id, 'slug': church.slug})
        return church

    def update(self, church_id: str, data: Dict) -> models.Church:
        """Merge partial church fields; `settings` merges key by key."""
        data = dict(data)
        if 'settings' in data:
            church = self.repository.find_by_id(church_id)
            if church is None:
                raise NotFoundError('Church not found', code='CHURCH_NOT_FOUND')
            merged = dict(church.settings or {})
            merged.update({k: v for k, v in (data['settings'] or {}).items() if v is not None})
            data['settings'] = merged
        return self.repository.update(church_id, {**data, 'updated_at': models.utcnow()})

    def get_stats(self, church_id: str, now: Optional[datetime] = None) -> Dict[str, int]:
        month_start = _start_of_month(now or models.utcnow())
        students = self.student_repo.list_all_for_church(church_id)
        stats = {
            'total_students': len(students),
            'active_studies': self.study_repo.count_by_status(church_id, models.StudyStatus.IN_PROGRESS.value),
            'completed_journeys': 0,
            'baptisms_this_month': 0,
            'holy_ghost_this_month': 0,
        }
        for student in students:
            status = student.new_birth_status or {}
            baptism = status.get('water_baptism') or {}
            holy_ghost = status.get('holy_ghost') or {}
            # New Birth is complete when both water baptism and Holy Ghost are achieved
            if baptism.get('completed') and holy_ghost.get('completed'):
                stats['completed_journeys'] += 1
            date = _parse_iso(baptism.get('date'))
            if date and date >= month_start:
                stats['baptisms_this_month'] += 1
            date = _parse_iso(holy_ghost.get('date'))
            if date and date >= month_start:
                stats['holy_ghost_this_month'] += 1
        return stats


class StudentService:
    """Discipleship journeys: New Birth milestones and First Steps."""
    def __init__(self, session: Session):
        self.session = session
        self.repository = repositories.StudentRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def get_by_id(self, student_id: str, church_id: str) -> Optional[models.Student]:
        return self.repository.find_by_id(student_id, church_id)

    def get_by_user_id(self, user_id: str, church_id: str) -> Optional[models.Student]:
        return self.repository.find_by_user_id(user_id, church_id)

    def list_by_church(self, church_id: str, *, teacher_id: Optional[str] = None, status: Optional[str] = None,
                       limit: int = repositories.DEFAULT_PAGE_SIZE, cursor: Optional[str] = None) -> repositories.Page:
        return self.repository.list_by_church(church_id, teacher_id=teacher_id, status=status, limit=limit, cursor=cursor)

    def list_by_teacher(self, teacher_id: str, church_id: str) -> List[models.Student]:
        return self.repository.list_by_teacher(teacher_id, church_id)

    def create(self, church_id: str, data: Dict) -> models.Student:
        """Create a student with every milestone and step not yet reached.

        The linked user must belong to the same church.
        """
        if not self.user_repo.find_by_id(data['user_id'], church_id):
            raise NotFoundError('User not found', code='USER_NOT_FOUND')
        now = models.utcnow()
        student = models.Student(
            church_id=church_id,
            user_id=data['user_id'],
            assigned_teacher_id=data.get('assigned_teacher_id'),
            notes=data.get('notes'),
            new_birth_status=models.initial_new_birth_status(),
            first_steps_progress=models.initial_first_steps_progress(),
            start_date=data.get('start_date') or now,
            created_at=now,
            updated_at=now,
        )
        return self.repository.create(student)

    def update(self, student_id: str, church_id: str, data: Dict) -> models.Student:
        return self.repository.update(student_id, church_id, {**data, 'updated_at': models.utcnow()})

    def delete(self, student_id: str, church_id: str) -> None:
        self.repository.delete(student_id, church_id)

    def update_new_birth_milestone(self, student_id: str, church_id: str, milestone: str, completed: bool,
                                   date: Optional[datetime] = None, notes: Optional[str] = None) -> models.Student:
        """Record a New Birth milestone (John 3:5).

        A completed milestone without an explicit date is dated now. The
        journey's `completion_date` is set once both milestones are
        complete and cleared if either is withdrawn.
        """
        if milestone not in models.NEW_BIRTH_MILESTONES:
            raise ValidationError(f'unknown milestone: {milestone}')
        student = self.repository.find_by_id(student_id, church_id)
        if not student:
            raise NotFoundError('Student not found', code='STUDENT_NOT_FOUND')
        now = models.utcnow()
        if date is None and completed:
            date = now
        status = {k: dict(v) for k, v in (student.new_birth_status or {}).items()}
        status[milestone] = {
            'completed': completed,
            'date': date.isoformat() if date else None,
            'notes': notes,
        }
        all_complete = all((status.get(m) or {}).get('completed') for m in models.NEW_BIRTH_MILESTONES)
        completion_date = (student.completion_date or now) if all_complete else None
        updated = self.repository.update(student_id, church_id, {
            'new_birth_status': status,
            'completion_date': completion_date,
            'updated_at': now,
        })
        log_event(logger, 'milestone_updated', {
            'student_id': student_id, 'church_id': church_id,
            'milestone': milestone, 'completed': completed,
        })
        return updated

    def update_first_step(self, student_id: str, church_id: str, step: str, started: Optional[bool] = None,
                          completed: Optional[bool] = None, notes: Optional[str] = None,
                          mentor_id: Optional[str] = None) -> models.Student:
        """Update one First Steps entry; steps may complete out of order."""
        if step not in models.FIRST_STEP_KEYS:
            raise ValidationError(f'Invalid step: {step}', code='INVALID_STEP')
        student = self.repository.find_by_id(student_id, church_id)
        if not student:
            raise NotFoundError('Student not found', code='STUDENT_NOT_FOUND')
        now = models.utcnow()
        progress = {k: dict(v) for k, v in (student.first_steps_progress or {}).items()}
        entry = progress.get(step, {'started': False, 'completed': False})
        if started is not None:
            entry['started'] = started
            entry['started_date'] = now.isoformat() if started else None
        if completed is not None:
            entry['completed'] = completed
            entry['completed_date'] = now.isoformat() if completed else None
        if notes is not None:
            entry['notes'] = notes
        if mentor_id is not None:
            entry['mentor_id'] = mentor_id
        progress[step] = entry
        return self.repository.update(student_id, church_id, {
            'first_steps_progress': progress,
            'updated_at': now,
        })

    def get_new_birth_stats(self, church_id: str, now: Optional[datetime] = None) -> Dict[str, int]:
        month_start = _start_of_month(now or models.utcnow())
        students = self.repository.list_all_for_church(church_id)
        stats = {
            'total_students': len(students),
            'awaiting_baptism': 0,
            'awaiting_holy_ghost': 0,
            'completed_new_birth': 0,
            'baptisms_this_month': 0,
            'holy_ghost_this_month': 0,
        }
        for student in students:
            status = student.new_birth_status or {}
            baptism = status.get('water_baptism') or {}
            holy_ghost = status.get('holy_ghost') or {}
            if not baptism.get('completed'):
                stats['awaiting_baptism'] += 1
            elif not holy_ghost.get('completed'):
                stats['awaiting_holy_ghost'] += 1
            else:
                stats['completed_new_birth'] += 1
            date = _parse_iso(baptism.get('date'))
            if date and date >= month_start:
                stats['baptisms_this_month'] += 1
            date = _parse_iso(holy_ghost.get('date'))
            if date and date >= month_start:
                stats['holy_ghost_this_month'] += 1
        return stats

    def get_first_steps_stats(self, church_id: str) -> Dict:
        students = self.repository.list_all_for_church(church_id)
        step_progress = {key: {'started': 0, 'completed': 0} for key in models.FIRST_STEP_KEYS}
        total_completion = 0.0
        fully_completed = 0
        for student in students:
            progress = student.first_steps_progress or {}
            done = 0
            for key in models.FIRST_STEP_KEYS:
                entry = progress.get(key) or {}
                if entry.get('started'):
                    step_progress[key]['started'] += 1
                if entry.get('completed'):
                    step_progress[key]['completed'] += 1
                    done += 1
            if done == len(models.FIRST_STEP_KEYS):
                fully_completed += 1
            total_completion += done / len(models.FIRST_STEP_KEYS) * 100
        return {
            'total_students': len(students),
            'step_progress': step_progress,
            'average_completion': round(total_completion / len(students)) if students else 0,
            'fully_completed': fully_completed,
        }


class StudyService:
    """Bible study lifecycle: creation with generated lessons and status changes."""
    def __init__(self, session: Session):
        self.session = session
        self.repository = repositories.StudyRepository(session)
        self.lesson_repo = repositories.LessonRepository(session)
        self.student_repo = repositories.StudentRepository(session)
        self.church_repo = repositories.ChurchRepository(session)

    def get_by_id(self, study_id: str, church_id: str) -> Optional[models.BibleStudy]:
        return self.repository.find_by_id(study_id, church_id)

    def list_by_church(self, church_id: str, *, status: Optional[str] = None, teacher_id: Optional[str] = None,
                       curriculum: Optional[str] = None, limit: int = repositories.DEFAULT_PAGE_SIZE,
                       cursor: Optional[str] = None) -> repositories.Page:
        return self.repository.list_by_church(
            church_id, status=status, teacher_id=teacher_id, curriculum=curriculum, limit=limit, cursor=cursor,
        )

    def list_by_student(self, student_id: str, church_id: str) -> List[models.BibleStudy]:
        return self.repository.list_by_student(student_id, church_id)

    def list_by_teacher(self, teacher_id: str, church_id: str) -> List[models.BibleStudy]:
        return self.repository.list_by_teacher(teacher_id, church_id)

    def create(self, church_id: str, data: Dict) -> models.BibleStudy:
        """Create a study in progress and materialize its curriculum lessons.

        One `not-started` lesson is generated per catalog entry, sharing
        the study's timestamps. The study and its lessons are written in a
        single transaction, so a failure leaves neither behind. Catalog
        curricula must be enabled in the church's settings; other
        identifiers are custom studies with no generated lessons.
        """
        church = self.church_repo.find_by_id(church_id)
        if church is None:
            raise NotFoundError('Church not found', code='CHURCH_NOT_FOUND')
        curriculum = data['curriculum']
        enabled = (church.settings or {}).get('enabled_curriculums')
        if is_catalog_curriculum(curriculum) and enabled is not None and curriculum not in enabled:
            raise ValidationError(f'curriculum not enabled for this church: {curriculum}',
                                  code='CURRICULUM_DISABLED')
        if not self.student_repo.find_by_id(data['student_id'], church_id):
            raise NotFoundError('Student not found', code='STUDENT_NOT_FOUND')

        now = models.utcnow()
        study = models.BibleStudy(
            **{k: v for k, v in data.items() if k not in ('church_id', 'status')},
            church_id=church_id,
            status=models.StudyStatus.IN_PROGRESS.value,
            created_at=now,
            updated_at=now,
        )
        lessons = [
            models.Lesson(
                study_id=study.id,
                church_id=church_id,
                lesson_number=entry.number,
                lesson_title=entry.title,
                status=models.LessonStatus.NOT_STARTED.value,
                created_at=now,
                updated_at=now,
            )
            for entry in get_curriculum_lessons(curriculum)
        ]
        study = self.repository.create(study, lessons)
        log_event(logger, 'study_created', {
            'study_id': study.id, 'church_id': church_id,
            'curriculum': curriculum, 'lessons': len(lessons),
        })
        return study

    def update(self, study_id: str, church_id: str, data: Dict) -> models.BibleStudy:
        """Merge partial fields and re-stamp `updated_at`.

        A `status` in `data` must be an allowed transition.
        """
        data = {k: v for k, v in data.items() if k != 'church_id'}
        if data.get('status') is not None:
            current = self.repository.find_by_id(study_id, church_id)
            if current is None:
                raise NotFoundError('Study not found', code='STUDY_NOT_FOUND')
            data['status'] = self._coerce_status(data['status'])
            _check_transition(models.STUDY_TRANSITIONS, current.status, data['status'], 'study')
        return self.repository.update(study_id, church_id, {**data, 'updated_at': models.utcnow()})

    def update_status(self, study_id: str, church_id: str, status) -> models.BibleStudy:
        """Change only `status` (and `updated_at`) of a study."""
        target = self._coerce_status(status)
        current = self.repository.find_by_id(study_id, church_id)
        if current is None:
            raise NotFoundError('Study not found', code='STUDY_NOT_FOUND')
        previous = current.status
        _check_transition(models.STUDY_TRANSITIONS, previous, target, 'study')
        study = self.repository.update(study_id, church_id, {'status': target, 'updated_at': models.utcnow()})
        log_event(logger, 'study_status_changed', {
            'study_id': study_id, 'church_id': church_id, 'from': previous, 'to': target,
        })
        return study

    def delete(self, study_id: str, church_id: str) -> None:
        """Delete a study together with its lessons."""
        self.repository.delete(study_id, church_id)

    def find_incomplete(self, church_id: str) -> List[str]:
        """Return ids of studies whose lesson count differs from their curriculum."""
        counts = self.lesson_repo.count_by_study(church_id)
        return [
            study.id
            for study in self.repository.list_all_for_church(church_id)
            if counts.get(study.id, 0) != len(get_curriculum_lessons(study.curriculum))
        ]

    @staticmethod
    def _coerce_status(status) -> str:
        try:
            return models.StudyStatus(status).value
        except ValueError as exc:
            raise ValidationError(f'unknown study status: {status}') from exc


class LessonService:
    """Progress and notes on individual lessons."""
    def __init__(self, session: Session):
        self.session = session
        self.repository = repositories.LessonRepository(session)
        self.study_repo = repositories.StudyRepository(session)

    def get_by_id(self, lesson_id: str, church_id: str) -> Optional[models.Lesson]:
        return self.repository.find_by_id(lesson_id, church_id)

    def list_by_study(self, study_id: str, church_id: str) -> List[models.Lesson]:
        if not self.study_repo.find_by_id(study_id, church_id):
            raise NotFoundError('Study not found', code='STUDY_NOT_FOUND')
        return self.repository.list_by_study(study_id, church_id)

    def update(self, lesson_id: str, church_id: str, data: Dict) -> models.Lesson:
        data = {k: v for k, v in data.items() if k not in ('study_id', 'church_id')}
        now = models.utcnow()
        if data.get('status') is not None:
            current = self.repository.find_by_id(lesson_id, church_id)
            if current is None:
                raise NotFoundError('Lesson not found', code='LESSON_NOT_FOUND')
            try:
                target = models.LessonStatus(data["status"]).value
            except ValueError as exc:
                raise ValidationError(f"unknown lesson status: {data['status']}") from exc
            _check_transition(models.LESSON_TRANSITIONS, current.status, target, 'lesson')
            data['status'] = target
            if target == models.LessonStatus.COMPLETED.value and not data.get('completed_date'):
                data['completed_date'] = current.completed_date or now
            elif target != models.LessonStatus.COMPLETED.value:
                data['completed_date'] = None
        return self.repository.update(lesson_id, church_id, {**data, 'updated_at': now})

    def mark_complete(self, lesson_id: str, church_id: str, notes: Optional[str] = None) -> models.Lesson:
        """Complete a lesson; an already completed lesson keeps its date."""
        lesson = self.repository.find_by_id(lesson_id, church_id)
        if not lesson:
            raise NotFoundError('Lesson not found', code='LESSON_NOT_FOUND')
        target = models.LessonStatus.COMPLETED.value
        _check_transition(models.LESSON_TRANSITIONS, lesson.status, target, 'lesson')
        now = models.utcnow()
        already_done = lesson.status == target and lesson.completed_date
        data = {
            'status': target,
            'completed_date': lesson.completed_date if already_done else now,
            'updated_at': now,
        }
        if notes is not None:
            data['teacher_notes'] = notes
        return self.repository.update(lesson_id, church_id, data)

    def add_note(self, lesson_id: str, church_id: str, kind: str, content: str) -> models.Lesson:
        """Append `content` on a new line to the teacher or student notes."""
        lesson = self.repository.find_by_id(lesson_id, church_id)
        if not lesson:
            raise NotFoundError('Lesson not found', code='LESSON_NOT_FOUND')
        if kind not in ('teacher', 'student'):
            raise ValidationError(f'unknown note type: {kind}')
        field = f'{kind}_notes'
        combined = f"{getattr(lesson, field) or ''}\n{content}".strip()
        return self.repository.update(lesson_id, church_id, {field: combined, 'updated_at': models.utcnow()})
