from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from campus_connect.db.models import StudentProfile, User, UserRole
from campus_connect.utils.auth import AuthUtils
from campus_connect.utils.logging import get_logger

logger = get_logger()

DEMO_PASSWORD = "password123"

students_data = [
    ("John", "Doe", "john.doe@university.edu", "STU001", "Computer Science"),
    ("Jane", "Smith", "jane.smith@university.edu", "STU002", "Computer Science"),
    ("Mike", "Johnson", "mike.johnson@university.edu", "STU003", "Mathematics"),
    ("Sarah", "Williams", "sarah.williams@university.edu", "STU004", "Physics"),
    ("David", "Brown", "david.brown@university.edu", "STU005", "Computer Science"),
    ("Emily", "Davis", "emily.davis@university.edu", "STU006", "Biology"),
]

admins_data = [
    ("Campus", "Admin", "admin@university.edu"),
]


def seed_users(db_session: Session):
    """
    Upsert the demo accounts by email.

    Existing demo rows get their names, role, password and department reset;
    every other user and everything they own is left alone.
    """
    emails = [row[2] for row in students_data] + [row[2] for row in admins_data]
    existing = {
        user.email: user
        for user in db_session.execute(
            select(User)
            .options(selectinload(User.student_profile))
            .where(User.email.in_(emails))
        ).scalars()
    }

    # One hash for every demo account keeps seeding fast
    password_hash = AuthUtils.hash_password(DEMO_PASSWORD)

    def upsert(first_name, last_name, email, role) -> User:
        user = existing.get(email)
        if user is None:
            user = User(email=email)
            db_session.add(user)
        user.first_name = first_name
        user.last_name = last_name
        user.password_hash = password_hash
        user.role = role
        return user

    for first_name, last_name, email, student_id, department in students_data:
        user = upsert(first_name, last_name, email, UserRole.STUDENT)
        user.student_id = student_id
        if user.student_profile is None:
            user.student_profile = StudentProfile(department=department)
        else:
            user.student_profile.department = department

    for first_name, last_name, email in admins_data:
        upsert(first_name, last_name, email, UserRole.ADMIN)

    db_session.commit()
    logger.info(
        f"Seeded {len(students_data)} students and {len(admins_data)} admin users "
        f"({len(existing)} already present)"
    )
