"""CLI script to seed a demo church with staff, students and a study.
Usage: python scripts/seed_demo.py [--slug SLUG] [--password PASSWORD] [--database-url URL]
"""
import sys
import argparse
import pathlib
from typing import Optional
# Ensure `backend/` is on sys.path so `discipleship` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from discipleship import services
from discipleship.config import Settings
from discipleship.database import Database
from discipleship.errors import DiscipleshipError
from discipleship.logging_setup import configure_logging

DEMO_STAFF = (
    ('admin', 'Ada', 'Admin'),
    ('pastor', 'Paul', 'Pastor'),
    ('teacher', 'Tim', 'Teacher'),
)
DEMO_STUDENTS = (('Sam', 'Student'), ('Sue', 'Seeker'))


def main(slug: str = 'demo-church', password: str = 'password123', database_url: Optional[str] = None):
    """Create the demo tenant unless a church with `slug` already exists.

    Every demo account shares `password`; emails are `<role>@<slug>.test`.
    """
    settings = Settings(**({'DATABASE_URL': database_url} if database_url else {}))
    configure_logging(settings.LOG_LEVEL)
    db = Database.from_settings(settings)
    db.create_all()
    try:
        with db.session() as session:
            churches = services.ChurchService(session)
            if churches.get_by_slug(slug):
                print(f'Church {slug} already exists; nothing to do')
                return
            church = churches.create({
                'name': 'Demo Church',
                'slug': slug,
                'address': {'street': '1 Main St', 'city': 'Springfield', 'state': 'IL', 'zip': '62701',
                            'country': 'USA'},
                'pastor_name': 'Paul Pastor',
            })
            print(f'Created church {church.name} ({church.id})')

            users = services.UserService(session)
            teacher_id = None
            for role, first, last in DEMO_STAFF:
                user = users.create(church.id, 'platform_admin', {
                    'email': f'{role}@{slug}.test', 'password': password,
                    'first_name': first, 'last_name': last, 'role': role,
                })
                if role == 'teacher':
                    teacher_id = user.id
                print(f'Created {role} {user.email}')

            students = services.StudentService(session)
            studies = services.StudyService(session)
            for idx, (first, last) in enumerate(DEMO_STUDENTS, start=1):
                user = users.create(church.id, 'platform_admin', {
                    'email': f'student{idx}@{slug}.test', 'password': password,
                    'first_name': first, 'last_name': last, 'role': 'student',
                })
                student = students.create(church.id, {'user_id': user.id, 'assigned_teacher_id': teacher_id})
                study = studies.create(church.id, {
                    'student_id': student.id, 'teacher_id': teacher_id,
                    'curriculum': 'search-for-truth', 'title': f'{first} - Search for Truth',
                })
                print(f'Created student {user.email} with study {study.id} ({len(study.lessons)} lessons)')
    except DiscipleshipError as e:
        print(f'Seeding failed: {e.code} {e.message}')
        raise SystemExit(1)
    finally:
        db.dispose()


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--slug', default='demo-church', help='Slug of the demo church')
    parser.add_argument('--password', default='password123', help='Password for every demo account')
    parser.add_argument('--database-url', help='Override DATABASE_URL')
    args = parser.parse_args()
    main(slug=args.slug, password=args.password, database_url=args.database_url)
