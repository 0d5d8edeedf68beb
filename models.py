from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Models
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(255), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password = Column(String(255), nullable=False, default="")
    external_id = Column(String(255), unique=True, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)  # NULL = global
    content = Column(Text, nullable=False)
    is_user_message = Column(Boolean, nullable=False)
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class CollegeCutoff(Base):
    __tablename__ = "college_cutoffs"

    id = Column(Integer, primary_key=True, index=True)
    university = Column(String(255), nullable=False)
    program = Column(String(255), nullable=False)
    country = Column(String(100), nullable=False)
    gpa = Column(String(100), nullable=False)
    test_scores = Column(String(255), nullable=False)
    acceptance_rate = Column(String(50), nullable=False)
    academic_year = Column(String(20), nullable=False)


class Scholarship(Base):
    __tablename__ = "scholarships"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    amount = Column(String(100), nullable=False)
    field_of_study = Column(String(255), nullable=False)
    deadline = Column(String(100), nullable=False)
    eligibility = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
