"""
Data models for the eCFR word counting pipeline.
"""

import uuid
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class Title(BaseModel):
    """eCFR title as listed by the titles endpoint."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    number: int = Field(gt=0)
    name: str
    latest_amended_on: Optional[str] = None
    latest_issue_date: Optional[str] = None
    up_to_date_as_of: Optional[str] = None
    reserved: bool = False


class TitlesResponse(BaseModel):
    """Payload of /titles.json."""
    model_config = ConfigDict(extra="ignore")

    titles: List[Title]


class VersionRecord(BaseModel):
    """One dated revision of a provision within a title."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    date: str
    identifier: str
    substantive: bool
    removed: bool

    amendment_date: Optional[str] = None
    issue_date: Optional[str] = None
    name: Optional[str] = None
    part: Optional[str] = None
    subpart: Optional[str] = None
    title: Optional[str] = None
    type: Optional[str] = None

    @property
    def contributes(self) -> bool:
        """Whether this revision counts towards the title's dates."""
        return self.substantive and not self.removed


class VersionsResponse(BaseModel):
    """Payload of /versions/title-{number}.json."""
    model_config = ConfigDict(extra="ignore")

    content_versions: List[VersionRecord] = Field(default_factory=list)


class DocumentCount(BaseModel):
    """Word count of one full-text document."""
    title_number: int
    date: str
    url: str
    word_count: int = Field(ge=0)
    size_bytes: int = Field(default=0, ge=0)


class TitleResult(BaseModel):
    """Aggregated word count and errors for one title."""
    title: Title
    word_count: int = Field(default=0, ge=0)
    dates: int = 0
    errors: List[str] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def add_count(self, count: int) -> None:
        self.word_count += count

    def add_error(self, error: BaseException) -> None:
        self.errors.append(str(error))


class WordCountReport(BaseModel):
    """Result of one pipeline run, rows in catalog order."""
    run_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    rows: List[TitleResult] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None
    cancelled: bool = False

    @property
    def total_words(self) -> int:
        return sum(row.word_count for row in self.rows)
