"""
Canonical data shapes used everywhere inside the client.

The backend has changed its field names over time (`ai_score`,
`AIScore`, `AiScore`...). Every alias we have seen is declared here,
once, with `AliasChoices`; the API client validates raw payloads
against these models and nothing else in the package ever looks at a
raw response.
"""

import mimetypes
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def _aliases(*names: str) -> AliasChoices:
    return AliasChoices(*names)


class Role(str, Enum):
    RECRUITER = "recruiter"
    CANDIDATE = "candidate"


class AuthMode(str, Enum):
    LOGIN = "login"
    SIGNUP = "signup"


class ApplicationStatus(str, Enum):
    NEW = "New"
    INTERVIEW = "Interview"
    OFFER = "Offer"
    REJECTED = "Rejected"


class WireModel(BaseModel):
    """Base for everything parsed from the backend."""
    model_config = ConfigDict(
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )


class Identity(BaseModel):
    """The signed-in user. Replaced, never mutated."""
    id: str
    email: str
    role: Role

    model_config = ConfigDict(frozen=True)


class Credentials(BaseModel):
    email: str
    password: str
    company_name: Optional[str] = None
    contact_handle: Optional[str] = None


class LoginResponse(WireModel):
    """Login/signup answer. Which id field is present depends on the role."""
    recruiter_id: Optional[str] = Field(None, validation_alias=_aliases("recruiter_id", "RecruiterID", "RecruiterId", "recruiterId"))
    candidate_id: Optional[str] = Field(None, validation_alias=_aliases("candidate_id", "CandidateID", "CandidateId", "candidateId"))
    id: Optional[str] = Field(None, validation_alias=_aliases("id", "ID", "Id", "user_id", "UserID"))
    role: Optional[str] = Field(None, validation_alias=_aliases("role", "Role"))


class Vacancy(WireModel):
    id: str = Field(..., validation_alias=_aliases("id", "ID", "Id", "vacancy_id", "VacancyID"))
    title: str = Field("", validation_alias=_aliases("title", "Title"))
    ai_filters: str = Field("", validation_alias=_aliases("ai_filters", "AIFilters", "AiFilters", "aiFilters"))
    short_link: Optional[str] = Field(None, validation_alias=_aliases("short_link", "ShortLink", "shortLink"))
    is_archived: bool = Field(False, validation_alias=_aliases("is_archived", "IsArchived", "isArchived"))
    owner_id: Optional[str] = Field(None, validation_alias=_aliases("recruiter_id", "RecruiterID", "owner_id", "OwnerID", "ownerId"))

    @field_validator("title", "ai_filters", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("is_archived", mode="before")
    @classmethod
    def none_is_active(cls, v: Any) -> Any:
        return False if v is None else v


class Application(WireModel):
    id: str = Field(..., validation_alias=_aliases("id", "ID", "Id", "application_id", "ApplicationID"))
    vacancy_id: Optional[str] = Field(None, validation_alias=_aliases("vacancy_id", "VacancyID", "VacancyId", "vacancyId"))
    candidate_id: Optional[str] = Field(None, validation_alias=_aliases("candidate_id", "CandidateID", "CandidateId", "candidateId"))
    candidate_name: Optional[str] = Field(None, validation_alias=_aliases("candidate_name", "CandidateName", "candidateName"))
    status: ApplicationStatus = Field(ApplicationStatus.NEW, validation_alias=_aliases("status", "Status"))
    ai_score: Optional[float] = Field(None, ge=0, le=100, validation_alias=_aliases("ai_score", "AIScore", "AiScore", "aiScore"))
    applied_at: Optional[datetime] = Field(None, validation_alias=_aliases("applied_at", "AppliedAt", "appliedAt", "created_at", "CreatedAt"))

    @field_validator("status", mode="before")
    @classmethod
    def default_status(cls, v: Any) -> Any:
        if v is None or v == "":
            return ApplicationStatus.NEW
        if isinstance(v, str):
            # "interview" and "INTERVIEW" have both been seen
            return v.strip().capitalize()
        return v


class AIVerdict(WireModel):
    """
    AI assessment of one application.

    Fields may legitimately be empty: the backend finished scoring but
    found nothing to say. That is different from "not scored yet",
    which the workflow represents by the absence of an AIVerdict.
    """
    verdict: Optional[str] = Field(None, validation_alias=_aliases("ai_verdict", "AIVerdict", "AiVerdict", "verdict", "Verdict"))
    skills: list[str] = Field(default_factory=list, validation_alias=_aliases("skills_detected", "SkillsDetected", "skills", "Skills"))
    parsed_resume_text: Optional[str] = Field(None, validation_alias=_aliases("parsed_text", "ParsedText", "parsed_resume_text", "parsedText"))
    contact_handle: Optional[str] = Field(None, validation_alias=_aliases("telegram_username", "TelegramUsername", "contact_handle", "ContactHandle"))

    @field_validator("skills", mode="before")
    @classmethod
    def split_skills(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split(",")
        return [str(s).strip() for s in v if str(s).strip()]


# Any one of these keys in an ai-data payload means scoring has finished
VERDICT_FIELDS = (
    "ai_verdict", "AIVerdict", "AiVerdict", "verdict", "Verdict",
    "skills_detected", "SkillsDetected", "skills", "Skills",
    "parsed_text", "ParsedText", "parsed_resume_text", "parsedText",
)


class Template(WireModel):
    id: str = Field(..., validation_alias=_aliases("id", "ID", "Id", "template_id", "TemplateID"))
    owner_id: Optional[str] = Field(None, validation_alias=_aliases("recruiter_id", "RecruiterID", "owner_id", "OwnerID", "ownerId"))
    title: str = Field("", validation_alias=_aliases("title", "Title"))
    body_text: str = Field("", validation_alias=_aliases("body_text", "BodyText", "bodyText", "body", "Body"))


class GeneratedMessage(WireModel):
    text: Optional[str] = Field(None, validation_alias=_aliases("text", "Text", "message", "Message", "generated_text", "GeneratedText"))
    deep_link: Optional[str] = Field(None, validation_alias=_aliases("telegram_link", "TelegramLink", "deep_link", "DeepLink", "link", "Link"))


class SubmissionReceipt(WireModel):
    application_id: Optional[str] = Field(None, validation_alias=_aliases("id", "ID", "application_id", "ApplicationID", "applicationId"))


class MessageContext(BaseModel):
    candidate_name: Optional[str] = None
    contact_handle: Optional[str] = None
    vacancy_title: str = ""


class ResumeFile(BaseModel):
    filename: str
    content: bytes
    content_type: str

    @classmethod
    def from_path(cls, path: Path) -> "ResumeFile":
        path = Path(path)
        content_type, _ = mimetypes.guess_type(path.name)
        return cls(
            filename=path.name,
            content=path.read_bytes(),
            content_type=content_type or "application/octet-stream",
        )
