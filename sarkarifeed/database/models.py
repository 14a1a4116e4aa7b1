"""
SarkariFeed Data Models
======================

Pydantic models for the canonical record store. One record variant per
content kind, sharing a common envelope keyed by the item's external link.

Status is never taken from the source: it is derived from the record's
dates and the ingestion instant every time a record is written.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Type

from pydantic import BaseModel, Field, field_validator


class ContentKind(str, Enum):
    """Classification label assigned to an ingested item."""
    JOB = "job"
    RESULT = "result"
    ADMISSION = "admission"
    UNKNOWN = "unknown"

    @property
    def needs_dates(self) -> bool:
        """Kinds that carry an application window extracted from text."""
        return self in (ContentKind.JOB, ContentKind.ADMISSION)


class OpeningStatus(str, Enum):
    """Lifecycle of a job or admission application window."""
    UPCOMING = "upcoming"
    ACTIVE = "active"
    CLOSED = "closed"


class ResultStatus(str, Enum):
    """Lifecycle of a published examination result."""
    PENDING = "pending"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class ResultType(str, Enum):
    """Kind of examination notice."""
    RESULT = "result"
    ADMIT_CARD = "admitCard"
    ANSWER_KEY = "answerKey"

    @classmethod
    def from_title(cls, title: str) -> "ResultType":
        lowered = title.lower()
        if "admit card" in lowered:
            return cls.ADMIT_CARD
        if "answer key" in lowered:
            return cls.ANSWER_KEY
        return cls.RESULT


def derive_opening_status(
    start_date: datetime, end_date: datetime, now: datetime
) -> OpeningStatus:
    """Status of an application window at ``now``."""
    if start_date > now:
        return OpeningStatus.UPCOMING
    if end_date < now:
        return OpeningStatus.CLOSED
    return OpeningStatus.ACTIVE


def derive_result_status(
    result_date: datetime, now: datetime, archive_after_days: int = 30
) -> ResultStatus:
    """Status of a result at ``now``."""
    if result_date > now:
        return ResultStatus.PENDING
    if result_date < now - timedelta(days=archive_after_days):
        return ResultStatus.ARCHIVED
    return ResultStatus.PUBLISHED


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class BilingualText(BaseModel):
    """Primary-language text with a secondary slot awaiting translation."""
    en: str = Field(..., description="Primary language text")
    hi: str = Field(default="", description="Secondary language text, empty until translated")


class NormalizedRecord(BaseModel, ABC):
    """Common envelope shared by every record kind."""

    kind: ClassVar[ContentKind] = ContentKind.UNKNOWN
    table_name: ClassVar[str] = ""

    external_key: str = Field(..., min_length=1, frozen=True, description="Source link, sole merge identity")
    title: BilingualText
    description: BilingualText
    category: str = Field(default="General")

    @abstractmethod
    def refresh_status(self, now: datetime, result_archive_days: int = 30) -> None:
        """Recompute ``status`` from the record's dates."""

    def to_row(self) -> Dict[str, Any]:
        """Flatten into store columns (timestamps excluded)."""
        return {
            "external_key": self.external_key,
            "title_en": self.title.en,
            "title_hi": self.title.hi,
            "description_en": self.description.en,
            "description_hi": self.description.hi,
            "category": self.category,
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "NormalizedRecord":
        """Rebuild a record from a store row."""
        data = dict(row)
        data["title"] = BilingualText(en=data.pop("title_en"), hi=data.pop("title_hi") or "")
        data["description"] = BilingualText(
            en=data.pop("description_en"), hi=data.pop("description_hi") or ""
        )
        data.pop("id", None)
        data.pop("created_at", None)
        data.pop("updated_at", None)
        return cls(**data)

    def __str__(self) -> str:
        return f"{type(self).__name__}({self.external_key})"


class _WindowRecord(NormalizedRecord):
    """Records with an application window (jobs and admissions)."""

    start_date: datetime
    end_date: datetime
    status: OpeningStatus = Field(default=OpeningStatus.ACTIVE)

    @field_validator("start_date", "end_date")
    @classmethod
    def ensure_utc(cls, v):
        return _as_utc(v)

    def refresh_status(self, now: datetime, result_archive_days: int = 30) -> None:
        self.status = derive_opening_status(self.start_date, self.end_date, now)

    def to_row(self) -> Dict[str, Any]:
        row = super().to_row()
        row.update(
            start_date=_isoformat(self.start_date),
            end_date=_isoformat(self.end_date),
            status=self.status.value,
        )
        return row


class JobRecord(_WindowRecord):
    """Government job opening."""

    kind: ClassVar[ContentKind] = ContentKind.JOB
    table_name: ClassVar[str] = "jobs"

    department: str = Field(default="General")
    category: str = Field(default="Government")

    def to_row(self) -> Dict[str, Any]:
        row = super().to_row()
        row["department"] = self.department
        return row


class AdmissionRecord(_WindowRecord):
    """Admission notice for a course or institute."""

    kind: ClassVar[ContentKind] = ContentKind.ADMISSION
    table_name: ClassVar[str] = "admissions"

    institute: str = Field(default="General")
    course: str = Field(default="General")
    category: str = Field(default="Education")

    def to_row(self) -> Dict[str, Any]:
        row = super().to_row()
        row.update(institute=self.institute, course=self.course)
        return row


class ResultRecord(NormalizedRecord):
    """Examination result, admit card or answer key notice."""

    kind: ClassVar[ContentKind] = ContentKind.RESULT
    table_name: ClassVar[str] = "results"

    organization: str = Field(default="General")
    category: str = Field(default="Examination")
    result_type: ResultType = Field(default=ResultType.RESULT)
    exam_date: Optional[datetime] = Field(default=None, description="Unknown unless stated by the source")
    result_date: datetime
    status: ResultStatus = Field(default=ResultStatus.PUBLISHED)

    @field_validator("exam_date", "result_date")
    @classmethod
    def ensure_utc(cls, v):
        return _as_utc(v)

    def refresh_status(self, now: datetime, result_archive_days: int = 30) -> None:
        self.status = derive_result_status(self.result_date, now, result_archive_days)

    def to_row(self) -> Dict[str, Any]:
        row = super().to_row()
        row.update(
            organization=self.organization,
            result_type=self.result_type.value,
            exam_date=_isoformat(self.exam_date),
            result_date=_isoformat(self.result_date),
            status=self.status.value,
        )
        return row


RECORD_TYPES: Dict[ContentKind, Type[NormalizedRecord]] = {
    ContentKind.JOB: JobRecord,
    ContentKind.RESULT: ResultRecord,
    ContentKind.ADMISSION: AdmissionRecord,
}


def record_type_for(kind: ContentKind) -> Type[NormalizedRecord]:
    """Record class stored for ``kind``.

    Raises:
        KeyError: For ``ContentKind.UNKNOWN``, which is never stored
    """
    return RECORD_TYPES[kind]
