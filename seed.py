from sqlmodel import Session

from scoresheet.config import settings
from scoresheet.db import build_engine, init_db
from scoresheet.models import Subject, User
from scoresheet.services.gradebook import seed_default_criteria
from scoresheet.store import DocumentStore


def seed_demo_data(engine) -> None:
    """
    Creates a demo user and a demo subject with the default grading criteria
    if they don't already exist.
    """
    init_db(engine)
    with Session(engine) as session:
        users = DocumentStore(session, User)
        if users.find_one(username="demo"):
            print("Demo user already exists.")
        else:
            print("Creating demo user...")
            user = User(username="demo")
            user.set_password("demo123")
            users.insert(user)

        subjects = DocumentStore(session, Subject)
        if subjects.find_one(name="Demo Subject"):
            print("Demo subject already exists.")
            return
        subject = subjects.insert(Subject(name="Demo Subject", description="Sample scoresheet"), commit=False)
        seed_default_criteria(session, subject)
        session.commit()
        print("Demo data created successfully.")


if __name__ == "__main__":
    seed_demo_data(build_engine(settings.DATABASE_URL))
