import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    TIMESTAMP,
    ForeignKey,
    Enum,
    UniqueConstraint,
    CheckConstraint,
    func,
    JSON,
)
from sqlalchemy.orm import relationship
from .database import Base


class UserRole(str, enum.Enum):
    student = "student"
    organizer = "organizer"
    admin = "admin"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.student)
    roll_no = Column(String(100), unique=True, nullable=True)
    college_name = Column(String(255))
    branch = Column(String(255))
    course = Column(String(255))
    enroll_year = Column(Integer)
    # Free-form category tags; order and duplicates are kept as submitted.
    interests = Column(JSON, nullable=False, default=list)
    address = Column(Text)
    profile_pic = Column(String(500), nullable=False, default="")
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    events = relationship("Event", back_populates="organizer")
    registrations = relationship("Registration", back_populates="student")

    @property
    def completion_year(self):
        if self.enroll_year is None:
            return None
        return self.enroll_year + 4


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (CheckConstraint("capacity >= 0", name="ck_events_capacity_non_negative"),)

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(100), nullable=False, index=True)
    date = Column(TIMESTAMP(timezone=True), nullable=False)
    venue = Column(String(255), nullable=False)
    capacity = Column(Integer, nullable=False)
    registered_count = Column(Integer, nullable=False, default=0, server_default="0")
    organizer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    organizer = relationship("User", back_populates="events")
    registrations = relationship("Registration", back_populates="event")


class Registration(Base):
    __tablename__ = "registrations"
    __table_args__ = (UniqueConstraint("student_id", "event_id", name="uq_registration"),)

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)

    student = relationship("User", back_populates="registrations")
    event = relationship("Event", back_populates="registrations")
