from pathlib import Path
import sys


# Ensure imports work when running this file directly: `python scripts/init_db.py`.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from schoolcomms.db import Base, SessionLocal, engine
from schoolcomms.models import Profile, Role, Student


Base.metadata.create_all(bind=engine)

db = SessionLocal()
try:
    if not db.query(Profile).first():
        db.add_all(
            [
                Profile(full_name='Principal Rao', email='principal@example.com', role=Role.ADMIN.value),
                Profile(full_name='Office Admin', email='office@example.com', role=Role.ADMIN.value),
                Profile(full_name='Ms. Iyer', email='iyer@example.com', role=Role.TEACHER.value),
            ]
        )
        db.commit()

    if not db.query(Student).first():
        db.add_all(
            [
                Student(full_name='Aarav Sharma', student_code='STU-001'),
                Student(full_name='Diya Kapoor', student_code='STU-002'),
                Student(full_name='Ishaan Gupta', student_code='STU-003'),
            ]
        )
        db.commit()

    for profile in db.query(Profile).order_by(Profile.role, Profile.full_name).all():
        print(f'{profile.role:<8} {profile.user_id} {profile.full_name}')
    for student in db.query(Student).order_by(Student.student_code).all():
        print(f'student  {student.id} {student.full_name}')
finally:
    db.close()

print('DB initialized with sample data.')
