"""
Pydantic schemas for stored records, API requests and responses.
"""

from datetime import datetime, timezone
from typing import Annotated, Dict, List, Literal, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, Field, field_validator

NonEmptyStr = Annotated[str, Field(min_length=1)]


def as_utc(value: datetime) -> datetime:
    """Treat a naive datetime as UTC. SQLite hands them back without an offset."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ============================================
# Users
# ============================================

class UserCreate(BaseModel):
    username: str = Field(min_length=1, max_length=255)
    email: str = Field(max_length=255)
    # Placeholder only; the real credential lives with the identity provider
    password: str = ""
    external_id: Optional[str] = None

    @field_validator("email")
    @classmethod
    def email_is_valid(cls, value: str) -> str:
        # Lookups match exactly, so keep the address as given
        try:
            validate_email(value, check_deliverability=False)
        except EmailNotValidError as e:
            raise ValueError(f"value is not a valid email address: {e}") from e
        return value


class User(BaseModel):
    id: int
    username: str
    email: str
    password: str = ""
    external_id: Optional[str] = None
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def created_at_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    class Config:
        from_attributes = True
        frozen = True


class UserPublic(BaseModel):
    """User as returned over HTTP, without the password placeholder."""
    id: int
    username: str
    email: str
    external_id: Optional[str] = None
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def created_at_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    class Config:
        from_attributes = True


# ============================================
# Chat messages
# ============================================

class ChatMessageCreate(BaseModel):
    user_id: Optional[int] = None  # None marks a global message shown to everyone
    content: str
    is_user_message: bool

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("content must not be empty")
        return value


class ChatMessage(BaseModel):
    id: int
    user_id: Optional[int] = None
    content: str
    is_user_message: bool
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def timestamp_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    class Config:
        from_attributes = True
        frozen = True


# ============================================
# College cutoffs
# ============================================

class CollegeCutoffCreate(BaseModel):
    university: NonEmptyStr
    program: NonEmptyStr
    country: NonEmptyStr
    gpa: NonEmptyStr
    test_scores: NonEmptyStr
    acceptance_rate: NonEmptyStr
    academic_year: NonEmptyStr


class CollegeCutoff(CollegeCutoffCreate):
    id: int

    class Config:
        from_attributes = True
        frozen = True


class CollegeCutoffFilters(BaseModel):
    country: Optional[str] = None
    university: Optional[str] = None
    program: Optional[str] = None
    academic_year: Optional[str] = None

    def criteria(self) -> Dict[str, str]:
        """Only the filters that were actually supplied. Blank values count as absent."""
        return {k: v for k, v in self.model_dump().items() if v}


# ============================================
# Scholarships
# ============================================

class ScholarshipCreate(BaseModel):
    name: NonEmptyStr
    amount: NonEmptyStr
    field_of_study: NonEmptyStr
    deadline: NonEmptyStr
    eligibility: NonEmptyStr
    description: NonEmptyStr


class Scholarship(ScholarshipCreate):
    id: int

    class Config:
        from_attributes = True
        frozen = True


class ScholarshipFilters(BaseModel):
    field_of_study: Optional[str] = None
    amount: Optional[str] = None
    deadline: Optional[str] = None
    eligibility: Optional[str] = None

    def criteria(self) -> Dict[str, str]:
        return {k: v for k, v in self.model_dump().items() if v}


# ============================================
# LLM chat completion (pass-through)
# ============================================

class CompletionMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class CompletionRequest(BaseModel):
    messages: List[CompletionMessage] = Field(min_length=1)


class CompletionChoice(BaseModel):
    index: int = 0
    message: CompletionMessage
    finish_reason: str = "stop"


class CompletionResponse(BaseModel):
    id: str
    model: str
    choices: List[CompletionChoice]


# ============================================
# Misc
# ============================================

class HealthResponse(BaseModel):
    status: str = "ok"
    service: str
    storage: str


class ErrorResponse(BaseModel):
    error: str
    message: str
