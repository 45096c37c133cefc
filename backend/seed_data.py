#!/usr/bin/env python3
"""
Seed script for the Campus Events database.
Creates sample organizers, students, events and registrations for local development.

Usage:
    cd backend
    python seed_data.py
"""

import random
from datetime import datetime, timedelta, timezone

from fastapi import HTTPException

from campus_events.auth import get_password_hash
from campus_events.config import settings
from campus_events.database import Base, build_engine, build_session_factory
from campus_events.models import Event, Registration, User, UserRole
from campus_events.registrations import register_student

CATEGORIES = ["tech", "cultural", "sports", "music", "career", "workshop"]

SAMPLE_EVENTS = [
    {"title": "Intro to Python Workshop", "category": "tech", "venue": "Lab 2, CS Block", "capacity": 30},
    {"title": "AI in 2026: Tech Talk", "category": "tech", "venue": "Main Auditorium", "capacity": 120},
    {"title": "24h Hackathon: Build for Good", "category": "tech", "venue": "Innovation Hub", "capacity": 150},
    {"title": "Annual Cultural Night", "category": "cultural", "venue": "Open Air Theatre", "capacity": 400},
    {"title": "Classical Dance Showcase", "category": "cultural", "venue": "Seminar Hall A", "capacity": 80},
    {"title": "Inter-college Football Cup", "category": "sports", "venue": "North Ground", "capacity": 22},
    {"title": "Campus Marathon", "category": "sports", "venue": "Main Gate", "capacity": 300},
    {"title": "Jazz Evening", "category": "music", "venue": "Student Centre", "capacity": 60},
    {"title": "Rock Night", "category": "music", "venue": "Open Air Theatre", "capacity": 250},
    {"title": "Career Fair: IT & Business", "category": "career", "venue": "Convention Hall", "capacity": 500},
    {"title": "Resume Clinic", "category": "career", "venue": "Placement Cell", "capacity": 25},
    {"title": "Design Thinking Workshop", "category": "workshop", "venue": "Seminar Hall B", "capacity": 3},
]

STUDENTS = [
    {"email": "student@college.edu", "name": "Aarav Sharma", "roll_no": "CS21001", "branch": "CSE", "enroll_year": 2021},
    {"email": "diya@college.edu", "name": "Diya Patel", "roll_no": "EC22014", "branch": "ECE", "enroll_year": 2022},
    {"email": "kabir@college.edu", "name": "Kabir Singh", "roll_no": "ME23007", "branch": "ME", "enroll_year": 2023},
    {"email": "meera@college.edu", "name": "Meera Iyer", "roll_no": "CS22031", "branch": "CSE", "enroll_year": 2022},
    {"email": "rohan@college.edu", "name": "Rohan Das", "roll_no": "CE24002", "branch": "CE", "enroll_year": 2024},
]

ORGANIZERS = [
    {"email": "organizer@college.edu", "name": "Tech Club"},
    {"email": "culture@college.edu", "name": "Cultural Committee"},
    {"email": "sports@college.edu", "name": "Sports Council"},
]

ADMINS = [
    {"email": "admin@college.edu", "name": "Campus Events Admin"},
]

DEFAULT_PASSWORD = "test123"


def seed_database():
    """Seed the database with sample data."""
    print("Starting database seeding...")

    engine = build_engine(settings.database_url)
    Base.metadata.create_all(bind=engine)
    session = build_session_factory(engine)()
    try:
        if session.query(User).count() > 0:
            print("Database already has data. Clearing existing data...")
            for model in (Registration, Event, User):
                session.query(model).delete()
            session.commit()

        password_hash = get_password_hash(DEFAULT_PASSWORD)

        print("Creating users...")
        for admin_data in ADMINS:
            session.add(User(password_hash=password_hash, role=UserRole.admin, interests=[], **admin_data))
        organizers = []
        for organizer_data in ORGANIZERS:
            organizer = User(password_hash=password_hash, role=UserRole.organizer, interests=[], **organizer_data)
            session.add(organizer)
            organizers.append(organizer)
        students = []
        for student_data in STUDENTS:
            student = User(
                password_hash=password_hash,
                role=UserRole.student,
                college_name="State Engineering College",
                course="B.Tech",
                interests=random.sample(CATEGORIES, k=random.randint(1, 3)),
                **student_data,
            )
            session.add(student)
            students.append(student)
        session.commit()
        print(f"   Created {len(ADMINS)} admins, {len(organizers)} organizers, {len(students)} students")

        print("Creating events...")
        now = datetime.now(timezone.utc)
        events = []
        for index, event_data in enumerate(SAMPLE_EVENTS):
            event = Event(
                description=f"{event_data['title']} hosted on campus. Open to all registered students.",
                date=now + timedelta(days=3 + index * 2, hours=random.randint(9, 18)),
                organizer_id=organizers[index % len(organizers)].id,
                registered_count=0,
                **event_data,
            )
            session.add(event)
            events.append(event)
        session.commit()
        print(f"   Created {len(events)} events")

        print("Creating registrations...")
        accepted = 0
        for student in students:
            for event in random.sample(events, k=4):
                try:
                    register_student(session, student_id=student.id, event_id=event.id)
                    accepted += 1
                except HTTPException as exc:
                    print(f"   Skipped {student.email} -> {event.title}: {exc.detail}")
        print(f"   Created {accepted} registrations")

        print("Seeding complete.")
        print(f"Log in with any seeded email and password '{DEFAULT_PASSWORD}'.")
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
        engine.dispose()


if __name__ == "__main__":
    seed_database()
