"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (churches,
users, students, studies, lessons). Every read and write on a
tenant-owned aggregate is filtered by `church_id`: a lookup with a
matching id but a foreign church behaves exactly like a missing row.
Repositories return SQLModel objects and commit where appropriate.
"""

import base64
import json
import logging
from typing import Dict, List, NamedTuple, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from . import models
from .errors import ConflictError, NotFoundError, StoreError, ValidationError

logger = logging.getLogger("discipleship.repositories")

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200
_PROTECTED_FIELDS = frozenset({'id', 'church_id'})


class Page(NamedTuple):
    items: list
    next_cursor: Optional[str] = None


def encode_cursor(last_id: str) -> str:
    """Encode the last evaluated key as an opaque URL-safe token."""
    raw = json.dumps({'id': last_id}, separators=(',', ':')).encode('utf-8')
    return base64.urlsafe_b64encode(raw).decode('ascii')


def decode_cursor(cursor: str) -> str:
    """Return the last evaluated id stored in `cursor`.

    Raises `ValidationError` for anything that did not come from
    `encode_cursor`.
    """
    try:
        padded = cursor + '=' * (-len(cursor) % 4)
        data = json.loads(base64.urlsafe_b64decode(padded.encode('ascii')))
    except ValueError as exc:
        raise ValidationError('invalid cursor', code='INVALID_CURSOR') from exc
    if not isinstance(data, dict) or not isinstance(data.get('id'), str):
        raise ValidationError('invalid cursor', code='INVALID_CURSOR')
    return data['id']


class _Repository:
    """Shared commit and merge helpers."""
    model = None
    label = 'entity'

    def __init__(self, session: Session):
        self.session = session

    def _commit(self) -> None:
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError(f'{self.label} conflicts with an existing record') from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception('commit failed for %s', self.label)
            raise StoreError(f'failed to persist {self.label}') from exc

    def _not_found(self) -> NotFoundError:
        return NotFoundError(f'{self.label.capitalize()} not found', code=f'{self.label.upper()}_NOT_FOUND')

    def _merge(self, entity, data: Dict) -> None:
        """Copy `data` onto `entity`, skipping identity and tenant keys.

        `None` is only accepted for nullable columns.
        """
        columns = self.model.__table__.columns
        changes = {k: v for k, v in data.items() if k not in _PROTECTED_FIELDS}
        for key, value in changes.items():
            if key not in self.model.model_fields:
                raise ValidationError(f'unknown field for {self.label}: {key}')
            if value is None and key in columns and not columns[key].nullable:
                raise ValidationError(f'{key} cannot be null for {self.label}', code='NULL_NOT_ALLOWED')
        for key, value in changes.items():
            setattr(entity, key, value)

    def _save(self, entity):
        self.session.add(entity)
        self._commit()
        self.session.refresh(entity)
        return entity

    def _paginate(self, stmt, limit: int, cursor: Optional[str]) -> Page:
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(f'limit must be between 1 and {MAX_PAGE_SIZE}')
        if cursor:
            stmt = stmt.where(self.model.id > decode_cursor(cursor))
        stmt = stmt.order_by(self.model.id).limit(limit + 1)
        rows = list(self.session.exec(stmt).all())
        if len(rows) > limit:
            rows = rows[:limit]
            return Page(rows, encode_cursor(rows[-1].id))
        return Page(rows, None)


class _TenantRepository(_Repository):
    """Lookups and writes scoped by `church_id`."""

    def find_by_id(self, entity_id: str, church_id: str):
        """Return the entity only if it belongs to `church_id`."""
        stmt = select(self.model).where(self.model.id == entity_id, self.model.church_id == church_id)
        return self.session.exec(stmt).first()

    def create(self, entity):
        """Persist a new entity and return the managed instance."""
        return self._save(entity)

    def update(self, entity_id: str, church_id: str, data: Dict):
        """Merge `data` into the tenant's entity and persist it.

        Raises `NotFoundError` without writing when the id is unknown or
        belongs to another church.
        """
        entity = self.find_by_id(entity_id, church_id)
        if entity is None:
            raise self._not_found()
        self._merge(entity, data)
        return self._save(entity)

    def delete(self, entity_id: str, church_id: str) -> None:
        entity = self.find_by_id(entity_id, church_id)
        if entity is None:
            raise self._not_found()
        self.session.delete(entity)
        self._commit()

    def list_all_for_church(self, church_id: str) -> list:
        """Unpaginated partition scan used by statistics."""
        stmt = select(self.model).where(self.model.church_id == church_id).order_by(self.model.id)
        return list(self.session.exec(stmt).all())


class ChurchRepository(_Repository):
    """CRUD operations for `Church` (the tenant root, keyed by id only)."""
    model = models.Church
    label = 'church'

    def find_by_id(self, church_id: str) -> Optional[models.Church]:
        return self.session.get(models.Church, church_id)

    def find_by_slug(self, slug: str) -> Optional[models.Church]:
        stmt = select(models.Church).where(models.Church.slug == slug)
        return self.session.exec(stmt).first()

    def list_all(self) -> List[models.Church]:
        """Return every church; platform administration only."""
        return list(self.session.exec(select(models.Church).order_by(models.Church.name)).all())

    def create(self, church: models.Church) -> models.Church:
        return self._save(church)

    def update(self, church_id: str, data: Dict) -> models.Church:
        church = self.find_by_id(church_id)
        if church is None:
            raise self._not_found()
        self._merge(church, data)
        return self._save(church)


class UserRepository(_TenantRepository):
    """CRUD operations for `User` objects."""
    model = models.User
    label = 'user'

    def get(self, user_id: str) -> Optional[models.User]:
        """Get a `User` by primary key across churches (token resolution only)."""
        return self.session.get(models.User, user_id)

    def get_by_email(self, email: str) -> Optional[models.User]:
        stmt = select(models.User).where(func.lower(models.User.email) == email.lower())
        return self.session.exec(stmt).first()

    def list_by_church(self, church_id: str, *, limit: int = DEFAULT_PAGE_SIZE, cursor: Optional[str] = None,
                       role: Optional[str] = None) -> Page:
        stmt = select(models.User).where(models.User.church_id == church_id)
        if role:
            stmt = stmt.where(models.User.role == role)
        return self._paginate(stmt, limit, cursor)


class StudentRepository(_TenantRepository):
    """Data access for `Student` discipleship records."""
    model = models.Student
    label = 'student'

    def find_by_user_id(self, user_id: str, church_id: str) -> Optional[models.Student]:
        stmt = select(models.Student).where(models.Student.user_id == user_id, models.Student.church_id == church_id)
        return self.session.exec(stmt).first()

    def list_by_church(self, church_id: str, *, limit: int = DEFAULT_PAGE_SIZE, cursor: Optional[str] = None,
                       teacher_id: Optional[str] = None, status: Optional[str] = None) -> Page:
        """List a page of students with optional teacher/status filters.

        `status` is `active` (journey not complete), `completed`, or
        `all`/None for no filter.
        """
        stmt = select(models.Student).where(models.Student.church_id == church_id)
        if teacher_id:
            stmt = stmt.where(models.Student.assigned_teacher_id == teacher_id)
        if status == 'active':
            stmt = stmt.where(models.Student.completion_date.is_(None))
        elif status == 'completed':
            stmt = stmt.where(models.Student.completion_date.is_not(None))
        return self._paginate(stmt, limit, cursor)

    def list_by_teacher(self, teacher_id: str, church_id: str) -> List[models.Student]:
        stmt = select(models.Student).where(
            models.Student.church_id == church_id,
            models.Student.assigned_teacher_id == teacher_id,
        ).order_by(models.Student.id)
        return list(self.session.exec(stmt).all())


class StudyRepository(_TenantRepository):
    """Data access for `BibleStudy` records and their lessons."""
    model = models.BibleStudy
    label = 'study'

    def create(self, study: models.BibleStudy, lessons: Optional[List[models.Lesson]] = None) -> models.BibleStudy:
        """Persist a study together with its lessons in one transaction.

        Either the study and every lesson are stored, or nothing is.
        """
        self.session.add(study)
        for lesson in lessons or ():
            lesson.study_id = study.id
            lesson.church_id = study.church_id
            self.session.add(lesson)
        self._commit()
        self.session.refresh(study)
        return study

    def list_by_church(self, church_id: str, *, limit: int = DEFAULT_PAGE_SIZE, cursor: Optional[str] = None,
                       status: Optional[str] = None, teacher_id: Optional[str] = None,
                       curriculum: Optional[str] = None) -> Page:
        stmt = select(models.BibleStudy).where(models.BibleStudy.church_id == church_id)
        if status and status != 'all':
            stmt = stmt.where(models.BibleStudy.status == status)
        if teacher_id:
            stmt = stmt.where(models.BibleStudy.teacher_id == teacher_id)
        if curriculum:
            stmt = stmt.where(models.BibleStudy.curriculum == curriculum)
        return self._paginate(stmt, limit, cursor)

    def list_by_student(self, student_id: str, church_id: str) -> List[models.BibleStudy]:
        stmt = select(models.BibleStudy).where(
            models.BibleStudy.church_id == church_id,
            models.BibleStudy.student_id == student_id,
        ).order_by(models.BibleStudy.id)
        return list(self.session.exec(stmt).all())

    def list_by_teacher(self, teacher_id: str, church_id: str) -> List[models.BibleStudy]:
        stmt = select(models.BibleStudy).where(
            models.BibleStudy.church_id == church_id,
            models.BibleStudy.teacher_id == teacher_id,
        ).order_by(models.BibleStudy.id)
        return list(self.session.exec(stmt).all())

    def count_by_status(self, church_id: str, status: str) -> int:
        stmt = select(func.count()).select_from(models.BibleStudy).where(
            models.BibleStudy.church_id == church_id,
            models.BibleStudy.status == status,
        )
        return self.session.exec(stmt).one()


class LessonRepository(_TenantRepository):
    """Data access for `Lesson` progress rows."""
    model = models.Lesson
    label = 'lesson'

    def list_by_study(self, study_id: str, church_id: str) -> List[models.Lesson]:
        """Return a study's lessons ordered by lesson number."""
        stmt = select(models.Lesson).where(
            models.Lesson.study_id == study_id,
            models.Lesson.church_id == church_id,
        ).order_by(models.Lesson.lesson_number)
        return list(self.session.exec(stmt).all())

    def count_by_study(self, church_id: str) -> Dict[str, int]:
        stmt = select(models.Lesson.study_id, func.count()).where(
            models.Lesson.church_id == church_id,
        ).group_by(models.Lesson.study_id)
        return {study_id: count for study_id, count in self.session.exec(stmt).all()}
