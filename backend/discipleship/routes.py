"""HTTP controllers for the `/api/v1` API.

Controllers are intentionally thin: they accept validated requests,
apply role-based access rules, delegate to services, and return
declared response shapes. The tenant (`church_id`) always comes from
the authenticated user, never from the request body.

Endpoints implemented:
- GET  /health
- POST /auth/register, POST /auth/login, GET /auth/me, POST /auth/change-password
- GET|POST /churches, GET|PATCH /churches/me, GET /churches/me/stats
- GET|POST /users, GET|PATCH /users/{id}
- GET|POST /students, GET|PATCH|DELETE /students/{id}, POST /students/{id}/new-birth,
  POST /students/{id}/first-steps/{step}, GET /students/stats/new-birth,
  GET /students/stats/first-steps, GET /students/teacher/{teacher_id}
- GET|POST /studies, GET|PATCH|DELETE /studies/{id}, POST /studies/{id}/status,
  GET /studies/student/{student_id}, GET /studies/teacher/{teacher_id}, GET /studies/reconcile
- GET /lessons/study/{study_id}, GET|PATCH /lessons/{id}, POST /lessons/{id}/complete,
  POST /lessons/{id}/notes
- GET /curriculums
"""

from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlmodel import Session

from . import models, schemas, services
from .auth import get_current_user, require_leader, require_permission
from .curriculums import get_available_curriculums, get_curriculum_lessons
from .database import get_session
from .errors import NotFoundError, PermissionDeniedError
from .permissions import has_permission, is_leader
from .repositories import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

router = APIRouter(prefix='/api/v1')

PageLimit = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)


def health_payload(version: str) -> dict:
    return {
        'status': 'healthy',
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'version': version,
    }


@router.get('/health', response_model=schemas.HealthOut, tags=['Health'])
def health(request: Request):
    """Liveness probe; performs no dependency checks."""
    return health_payload(request.app.state.settings.API_VERSION)


# -- auth ------------------------------------------------------------------

def _token_response(request: Request, db: Session, user: models.User) -> schemas.TokenOut:
    settings = request.app.state.settings
    token = services.AuthService(db, settings).issue_token(user)
    return schemas.TokenOut(
        access_token=token,
        expires_in=settings.JWT_EXPIRE_HOURS * 3600,
        user=schemas.UserOut.model_validate(user),
    )


@router.post('/auth/register', response_model=schemas.TokenOut, status_code=201, tags=['Auth'])
def register(payload: schemas.RegisterIn, request: Request, db: Session = Depends(get_session)):
    """Register a new account in an existing church and return a token."""
    auth = services.AuthService(db, request.app.state.settings)
    user = auth.register(
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
        church_id=payload.church_id,
        role=payload.role,
        phone=payload.phone,
    )
    return _token_response(request, db, user)


@router.post('/auth/login', response_model=schemas.TokenOut, tags=['Auth'])
def login(payload: schemas.LoginIn, request: Request, db: Session = Depends(get_session)):
    """Authenticate a user and return a signed JWT.

    The token carries `user_id`, `church_id` and `role`.
    """
    user = services.AuthService(db, request.app.state.settings).authenticate(payload.email, payload.password)
    return _token_response(request, db, user)


@router.get('/auth/me', response_model=schemas.UserOut, tags=['Auth'])
def me(user: models.User = Depends(get_current_user)):
    return schemas.UserOut.model_validate(user)


@router.post('/auth/change-password', tags=['Auth'])
def change_password(payload: schemas.ChangePasswordIn, request: Request, db: Session = Depends(get_session),
                    user: models.User = Depends(get_current_user)):
    services.AuthService(db, request.app.state.settings).change_password(
        user.id, user.church_id, payload.current_password, payload.new_password,
    )
    return {'status': 'ok'}


# -- churches ----------------------------------------------------------------

@router.get('/churches', response_model=List[schemas.ChurchOut], tags=['Churches'])
def list_churches(db: Session = Depends(get_session),
                  user: models.User = Depends(require_permission('system:manage-churches'))):
    """List every church (platform administrators only)."""
    return [schemas.ChurchOut.model_validate(c) for c in services.ChurchService(db).list_all()]


@router.post('/churches', response_model=schemas.ChurchOut, status_code=201, tags=['Churches'])
def create_church(payload: schemas.ChurchCreate, db: Session = Depends(get_session),
                  user: models.User = Depends(require_permission('system:manage-churches'))):
    church = services.ChurchService(db).create(payload.model_dump(mode='json'))
    return schemas.ChurchOut.model_validate(church)


@router.get('/churches/me', response_model=schemas.ChurchOut, tags=['Churches'])
def get_my_church(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    church = services.ChurchService(db).get_by_id(user.church_id)
    if not church:
        raise NotFoundError(f'Church not found for ID: {user.church_id}', code='CHURCH_NOT_FOUND')
    return schemas.ChurchOut.model_validate(church)


@router.patch('/churches/me', response_model=schemas.ChurchOut, tags=['Churches'])
def update_my_church(payload: schemas.ChurchUpdate, db: Session = Depends(get_session),
                     user: models.User = Depends(require_permission('church:manage-settings'))):
    data = payload.model_dump(mode='json', exclude_unset=True)
    church = services.ChurchService(db).update(user.church_id, data)
    return schemas.ChurchOut.model_validate(church)


@router.get('/churches/me/stats', response_model=schemas.ChurchStatsOut, tags=['Churches'])
def get_my_church_stats(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Discipleship statistics for the caller's church."""
    return services.ChurchService(db).get_stats(user.church_id)


# -- users -------------------------------------------------------------------

@router.get('/users', response_model=schemas.UserPage, tags=['Users'])
def list_users(role: Optional[models.UserRole] = None, limit: int = PageLimit, cursor: Optional[str] = None,
               db: Session = Depends(get_session), user: models.User = Depends(require_permission('user:list'))):
    page = services.UserService(db).list_by_church(
        user.church_id, role=role.value if role else None, limit=limit, cursor=cursor,
    )
    return schemas.UserPage(items=[schemas.UserOut.model_validate(u) for u in page.items],
                            next_cursor=page.next_cursor)


@router.post('/users', response_model=schemas.UserOut, status_code=201, tags=['Users'])
def create_user(payload: schemas.UserCreate, db: Session = Depends(get_session),
                user: models.User = Depends(require_permission('user:create'))):
    """Create a user in the caller's church; the caller must be allowed to assign the role."""
    created = services.UserService(db).create(user.church_id, user.role, payload.model_dump(mode='json'))
    return schemas.UserOut.model_validate(created)


@router.get('/users/{user_id}', response_model=schemas.UserOut, tags=['Users'])
def get_user(user_id: str, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    if user_id != user.id and not has_permission(user.role, 'user:read'):
        raise PermissionDeniedError('You can only view your own profile')
    found = services.UserService(db).get_by_id(user_id, user.church_id)
    if not found:
        raise NotFoundError('User not found', code='USER_NOT_FOUND')
    return schemas.UserOut.model_validate(found)


@router.patch('/users/{user_id}', response_model=schemas.UserOut, tags=['Users'])
def update_user(user_id: str, payload: schemas.UserUpdate, db: Session = Depends(get_session),
                user: models.User = Depends(require_permission('user:update'))):
    updated = services.UserService(db).update(
        user_id, user.church_id, user.role, payload.model_dump(mode='json', exclude_unset=True),
    )
    return schemas.UserOut.model_validate(updated)


# -- students ----------------------------------------------------------------

def _own_student_record(db: Session, user: models.User) -> Optional[models.Student]:
    return services.StudentService(db).get_by_user_id(user.id, user.church_id)


def _ensure_student_access(db: Session, user: models.User, student: models.Student) -> None:
    """Students see only themselves; teachers only the students assigned to them."""
    if user.role == models.UserRole.STUDENT.value and student.user_id != user.id:
        raise PermissionDeniedError('You can only view your own student record')
    if (user.role == models.UserRole.TEACHER.value
            and not has_permission(user.role, 'student:list')
            and student.assigned_teacher_id != user.id):
        raise PermissionDeniedError('You can only view students assigned to you')


def _load_student(db: Session, user: models.User, student_id: str) -> models.Student:
    student = services.StudentService(db).get_by_id(student_id, user.church_id)
    if not student:
        raise NotFoundError('Student not found', code='STUDENT_NOT_FOUND')
    _ensure_student_access(db, user, student)
    return student


@router.get('/students', response_model=schemas.StudentPage, tags=['Students'])
def list_students(status: Optional[str] = Query(None, pattern='^(active|completed|all)$'),
                  teacher_id: Optional[str] = None, limit: int = PageLimit, cursor: Optional[str] = None,
                  db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """List students in the caller's church.

    Students only ever see their own record; teachers without the
    church-wide `student:list` permission only see their assigned students.
    """
    if user.role == models.UserRole.STUDENT.value:
        own = _own_student_record(db, user)
        return schemas.StudentPage(items=[schemas.StudentOut.model_validate(own)] if own else [])
    if not has_permission(user.role, 'student:list'):
        if not has_permission(user.role, 'student:list-own'):
            raise PermissionDeniedError('missing permission: student:list', code='FORBIDDEN')
        teacher_id = user.id
    page = services.StudentService(db).list_by_church(
        user.church_id, teacher_id=teacher_id, status=status, limit=limit, cursor=cursor,
    )
    return schemas.StudentPage(items=[schemas.StudentOut.model_validate(s) for s in page.items],
                               next_cursor=page.next_cursor)


@router.post('/students', response_model=schemas.StudentOut, status_code=201, tags=['Students'])
def create_student(payload: schemas.StudentCreate, db: Session = Depends(get_session),
                   user: models.User = Depends(require_permission('student:create'))):
    """Create a student record.

    Teachers may only assign students to themselves (and are assigned by
    default); other roles need `student:assign-teacher` to set a teacher.
    """
    data = payload.model_dump()
    if user.role == models.UserRole.TEACHER.value:
        if data.get('assigned_teacher_id') and data['assigned_teacher_id'] != user.id:
            raise PermissionDeniedError('Teachers can only assign students to themselves', code='FORBIDDEN')
        data['assigned_teacher_id'] = user.id
    elif data.get('assigned_teacher_id') and not has_permission(user.role, 'student:assign-teacher'):
        raise PermissionDeniedError('You do not have permission to assign teachers to students', code='FORBIDDEN')
    student = services.StudentService(db).create(user.church_id, data)
    return schemas.StudentOut.model_validate(student)


def _ensure_teacher_view(user: models.User, teacher_id: str, church_wide: str) -> None:
    """Leaders may list their own caseload; church-wide listing needs `church_wide`."""
    if teacher_id == user.id and is_leader(user.role):
        return
    if not has_permission(user.role, church_wide):
        raise PermissionDeniedError(f'missing permission: {church_wide}', code='FORBIDDEN')


@router.get('/students/teacher/{teacher_id}', response_model=List[schemas.StudentOut], tags=['Students'])
def list_teacher_students(teacher_id: str, db: Session = Depends(get_session),
                          user: models.User = Depends(get_current_user)):
    """Students assigned to one teacher."""
    _ensure_teacher_view(user, teacher_id, 'student:list')
    students = services.StudentService(db).list_by_teacher(teacher_id, user.church_id)
    return [schemas.StudentOut.model_validate(s) for s in students]


@router.get('/students/stats/new-birth', response_model=schemas.NewBirthStatsOut, tags=['Students'])
def new_birth_stats(db: Session = Depends(get_session),
                    user: models.User = Depends(require_permission('reports:view-church'))):
    return services.StudentService(db).get_new_birth_stats(user.church_id)


@router.get('/students/stats/first-steps', response_model=schemas.FirstStepsStatsOut, tags=['Students'])
def first_steps_stats(db: Session = Depends(get_session),
                      user: models.User = Depends(require_permission('reports:view-church'))):
    return services.StudentService(db).get_first_steps_stats(user.church_id)


@router.get('/students/{student_id}', response_model=schemas.StudentOut, tags=['Students'])
def get_student(student_id: str, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return schemas.StudentOut.model_validate(_load_student(db, user, student_id))


@router.patch('/students/{student_id}', response_model=schemas.StudentOut, tags=['Students'])
def update_student(student_id: str, payload: schemas.StudentUpdate, db: Session = Depends(get_session),
                   user: models.User = Depends(require_permission('student:update'))):
    _load_student(db, user, student_id)
    data = payload.model_dump(exclude_unset=True)
    if 'assigned_teacher_id' in data and not has_permission(user.role, 'student:assign-teacher'):
        raise PermissionDeniedError('You do not have permission to assign teachers to students', code='FORBIDDEN')
    student = services.StudentService(db).update(student_id, user.church_id, data)
    return schemas.StudentOut.model_validate(student)


@router.delete('/students/{student_id}', status_code=204, tags=['Students'])
def delete_student(student_id: str, db: Session = Depends(get_session),
                   user: models.User = Depends(require_permission('student:delete'))):
    services.StudentService(db).delete(student_id, user.church_id)
    return Response(status_code=204)


@router.post('/students/{student_id}/new-birth', response_model=schemas.StudentOut, tags=['Students'])
def update_new_birth(student_id: str, payload: schemas.NewBirthMilestoneIn, db: Session = Depends(get_session),
                     user: models.User = Depends(require_permission('student:update-milestones'))):
    """Record a New Birth milestone (water baptism or Holy Ghost)."""
    _load_student(db, user, student_id)
    student = services.StudentService(db).update_new_birth_milestone(
        student_id, user.church_id, payload.milestone, payload.completed, payload.date, payload.notes,
    )
    return schemas.StudentOut.model_validate(student)


@router.post('/students/{student_id}/first-steps/{step}', response_model=schemas.StudentOut, tags=['Students'])
def update_first_step(student_id: str, step: str, payload: schemas.FirstStepIn, db: Session = Depends(get_session),
                      user: models.User = Depends(require_permission('firststeps:update'))):
    _load_student(db, user, student_id)
    student = services.StudentService(db).update_first_step(
        student_id, user.church_id, step,
        started=payload.started, completed=payload.completed, notes=payload.notes, mentor_id=payload.mentor_id,
    )
    return schemas.StudentOut.model_validate(student)


# -- studies -----------------------------------------------------------------

def _ensure_study_access(db: Session, user: models.User, study: models.BibleStudy, write: bool = False) -> None:
    """Students read only their own studies; teachers only studies they lead."""
    if user.role == models.UserRole.STUDENT.value:
        own = _own_student_record(db, user)
        if write or not own or study.student_id != own.id:
            raise PermissionDeniedError('You can only view studies you are enrolled in')
        return
    church_wide = 'study:update' if write else 'study:list'
    if (user.role == models.UserRole.TEACHER.value
            and not has_permission(user.role, church_wide)
            and study.teacher_id != user.id):
        raise PermissionDeniedError('You can only access studies you are leading')


def _load_study(db: Session, user: models.User, study_id: str, write: bool = False) -> models.BibleStudy:
    study = services.StudyService(db).get_by_id(study_id, user.church_id)
    if not study:
        raise NotFoundError('Study not found', code='STUDY_NOT_FOUND')
    _ensure_study_access(db, user, study, write=write)
    return study


@router.get('/studies', response_model=schemas.StudyPage, tags=['Studies'])
def list_studies(status: Optional[str] = Query(None, pattern='^(in-progress|completed|paused|all)$'),
                 teacher_id: Optional[str] = None, curriculum: Optional[str] = None,
                 limit: int = PageLimit, cursor: Optional[str] = None,
                 db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """List Bible studies in the caller's church."""
    svc = services.StudyService(db)
    if user.role == models.UserRole.STUDENT.value:
        own = _own_student_record(db, user)
        studies = svc.list_by_student(own.id, user.church_id) if own else []
        return schemas.StudyPage(items=[schemas.StudyOut.model_validate(s) for s in studies])
    if not has_permission(user.role, 'study:list'):
        if not has_permission(user.role, 'study:list-own'):
            raise PermissionDeniedError('missing permission: study:list', code='FORBIDDEN')
        teacher_id = user.id
    page = svc.list_by_church(user.church_id, status=status, teacher_id=teacher_id, curriculum=curriculum,
                              limit=limit, cursor=cursor)
    return schemas.StudyPage(items=[schemas.StudyOut.model_validate(s) for s in page.items],
                             next_cursor=page.next_cursor)


@router.post('/studies', response_model=schemas.StudyDetailOut, status_code=201, tags=['Studies'])
def create_study(payload: schemas.StudyCreate, db: Session = Depends(get_session),
                 user: models.User = Depends(require_permission('study:create'))):
    """Create a study and generate its curriculum lessons.

    The caller leads the study unless a manager names another teacher.
    """
    data = payload.model_dump()
    if data.get('teacher_id') and data['teacher_id'] != user.id and not has_permission(user.role, 'study:update'):
        raise PermissionDeniedError('You can only create studies you lead', code='FORBIDDEN')
    data['teacher_id'] = data.get('teacher_id') or user.id
    study = services.StudyService(db).create(user.church_id, data)
    return schemas.StudyDetailOut.model_validate(study)


@router.get('/studies/reconcile', response_model=schemas.ReconcileOut, tags=['Studies'])
def reconcile_studies(db: Session = Depends(get_session),
                      user: models.User = Depends(require_permission('reports:view-church'))):
    """Report studies whose lessons do not match their curriculum."""
    return {'incomplete_study_ids': services.StudyService(db).find_incomplete(user.church_id)}


@router.get('/studies/teacher/{teacher_id}', response_model=List[schemas.StudyOut], tags=['Studies'])
def list_teacher_studies(teacher_id: str, db: Session = Depends(get_session),
                         user: models.User = Depends(get_current_user)):
    _ensure_teacher_view(user, teacher_id, 'study:list')
    studies = services.StudyService(db).list_by_teacher(teacher_id, user.church_id)
    return [schemas.StudyOut.model_validate(s) for s in studies]


@router.get('/studies/student/{student_id}', response_model=List[schemas.StudyOut], tags=['Studies'])
def list_student_studies(student_id: str, db: Session = Depends(get_session),
                         user: models.User = Depends(get_current_user)):
    _load_student(db, user, student_id)
    studies = services.StudyService(db).list_by_student(student_id, user.church_id)
    return [schemas.StudyOut.model_validate(s) for s in studies]


@router.get('/studies/{study_id}', response_model=schemas.StudyDetailOut, tags=['Studies'])
def get_study(study_id: str, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return schemas.StudyDetailOut.model_validate(_load_study(db, user, study_id))


@router.patch('/studies/{study_id}', response_model=schemas.StudyDetailOut, tags=['Studies'])
def update_study(study_id: str, payload: schemas.StudyUpdate, db: Session = Depends(get_session),
                 user: models.User = Depends(require_permission('study:update', 'study:update-own'))):
    _load_study(db, user, study_id, write=True)
    data = payload.model_dump(exclude_unset=True)
    if 'status' in data and data['status'] is None:
        raise HTTPException(status_code=422, detail='status cannot be null')
    study = services.StudyService(db).update(study_id, user.church_id, data)
    return schemas.StudyDetailOut.model_validate(study)


@router.post('/studies/{study_id}/status', response_model=schemas.StudyDetailOut, tags=['Studies'])
def update_study_status(study_id: str, payload: schemas.StudyStatusIn, db: Session = Depends(get_session),
                        user: models.User = Depends(require_permission('study:update', 'study:update-own'))):
    _load_study(db, user, study_id, write=True)
    study = services.StudyService(db).update_status(study_id, user.church_id, payload.status)
    return schemas.StudyDetailOut.model_validate(study)


@router.delete('/studies/{study_id}', status_code=204, tags=['Studies'])
def delete_study(study_id: str, db: Session = Depends(get_session),
                 user: models.User = Depends(require_permission('study:delete'))):
    """Delete a study together with its lessons."""
    services.StudyService(db).delete(study_id, user.church_id)
    return Response(status_code=204)


# -- lessons -----------------------------------------------------------------

def _load_lesson(db: Session, user: models.User, lesson_id: str, write: bool = False) -> models.Lesson:
    lesson = services.LessonService(db).get_by_id(lesson_id, user.church_id)
    if not lesson:
        raise NotFoundError('Lesson not found', code='LESSON_NOT_FOUND')
    _load_study(db, user, lesson.study_id, write=write)
    return lesson


@router.get('/lessons/study/{study_id}', response_model=List[schemas.LessonOut], tags=['Lessons'])
def list_study_lessons(study_id: str, db: Session = Depends(get_session),
                       user: models.User = Depends(get_current_user)):
    _load_study(db, user, study_id)
    return [schemas.LessonOut.model_validate(lesson)
            for lesson in services.LessonService(db).list_by_study(study_id, user.church_id)]


@router.get('/lessons/{lesson_id}', response_model=schemas.LessonOut, tags=['Lessons'])
def get_lesson(lesson_id: str, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return schemas.LessonOut.model_validate(_load_lesson(db, user, lesson_id))


@router.patch('/lessons/{lesson_id}', response_model=schemas.LessonOut, tags=['Lessons'])
def update_lesson(lesson_id: str, payload: schemas.LessonUpdate, db: Session = Depends(get_session),
                  user: models.User = Depends(require_leader)):
    _load_lesson(db, user, lesson_id, write=True)
    data = payload.model_dump(exclude_unset=True)
    if 'status' in data and data['status'] is None:
        raise HTTPException(status_code=422, detail='status cannot be null')
    lesson = services.LessonService(db).update(lesson_id, user.church_id, data)
    return schemas.LessonOut.model_validate(lesson)


@router.post('/lessons/{lesson_id}/complete', response_model=schemas.LessonOut, tags=['Lessons'])
def complete_lesson(lesson_id: str, payload: Optional[schemas.LessonCompleteIn] = None,
                    db: Session = Depends(get_session), user: models.User = Depends(require_leader)):
    _load_lesson(db, user, lesson_id, write=True)
    notes = payload.notes if payload else None
    lesson = services.LessonService(db).mark_complete(lesson_id, user.church_id, notes)
    return schemas.LessonOut.model_validate(lesson)


@router.post('/lessons/{lesson_id}/notes', response_model=schemas.LessonOut, tags=['Lessons'])
def add_lesson_note(lesson_id: str, payload: schemas.LessonNoteIn, db: Session = Depends(get_session),
                    user: models.User = Depends(get_current_user)):
    """Append a teacher or student note; students may only add student notes."""
    if user.role == models.UserRole.STUDENT.value:
        if payload.type != 'student':
            raise PermissionDeniedError('Students can only add student notes')
        _load_lesson(db, user, lesson_id)
    elif user.role == models.UserRole.MEMBER.value:
        raise PermissionDeniedError('teacher role or above required', code='FORBIDDEN')
    else:
        _load_lesson(db, user, lesson_id, write=True)
    lesson = services.LessonService(db).add_note(lesson_id, user.church_id, payload.type, payload.content)
    return schemas.LessonOut.model_validate(lesson)


# -- curriculums -------------------------------------------------------------

@router.get('/curriculums', response_model=List[schemas.CurriculumOut], tags=['Curriculums'])
def list_curriculums():
    """Return the lesson catalog for every curriculum."""
    return [
        {'id': cid, 'lessons': [lesson._asdict() for lesson in get_curriculum_lessons(cid)]}
        for cid in get_available_curriculums()
    ]
