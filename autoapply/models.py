"""Data models for users, postings and application records."""
from __future__ import annotations

from dataclasses import dataclass, field

ACTIVE = "Active"

DEFAULT_EMPLOYER_LOGO = (
    "https://media.licdn.com/dms/image/C4D0BAQGYJfURzon1xg/company-logo_200_200/0/"
    "1631327285447?e=2147483647&v=beta&t=mTBfWh3AsArQHLJLo8fp6OLk5LLlzqQrsL6ob3uUFsA"
)


@dataclass
class Criterion:
    text: str
    status: str = ACTIVE

    @property
    def is_active(self) -> bool:
        return bool(self.text and self.text.strip()) and self.status == ACTIVE


@dataclass
class Credentials:
    access_token: str = ""
    refresh_token: str = ""


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int = 0


@dataclass
class User:
    id: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    criteria: list[Criterion] = field(default_factory=list)
    only_with_salary: bool = False
    has_linked_account: bool = False
    credentials: Credentials = field(default_factory=Credentials)

    def active_criteria(self) -> list[Criterion]:
        return [c for c in self.criteria if c.is_active]


@dataclass
class Salary:
    low: int | None = None
    high: int | None = None
    currency: str = ""

    def describe(self) -> str:
        return f"{self.low} to {self.high} {self.currency}".strip()


@dataclass
class Posting:
    id: str
    title: str
    employer: str
    salary: Salary | None = None
    employer_logo: str = ""
    responsibility: str = ""
    requirement: str = ""
    address: str = ""
    url: str = ""
    area: str = ""
    employment: str = ""
    schedule: str = ""
    key_skills: list[str] = field(default_factory=list)


@dataclass
class SearchPage:
    items: list[Posting]
    found: int = 0
    page: int = 0
    pages: int = 0


@dataclass
class SupportingDocument:
    id: str
    text: str


@dataclass
class ApplicationRecord:
    posting_id: str
    user_id: str
    title: str
    employer: str
    cover_letter: str
    salary: int = 0
    employer_logo: str = DEFAULT_EMPLOYER_LOGO
    responsibility: str = ""
    requirement: str = ""
    address: str = ""
    url: str = ""
    from_headhunter: bool = True
    from_other_site: bool = False
    created_at: str = ""

    def is_duplicate_of(self, posting: Posting) -> bool:
        """Same posting id, same title at the same employer, or same title."""
        if self.posting_id == posting.id:
            return True
        if self.title == posting.title and self.employer == posting.employer:
            return True
        return self.title == posting.title


@dataclass
class CommitResult:
    inserted: int = 0
    duplicates: int = 0
    failed: int = 0

    @property
    def attempted(self) -> int:
        return self.inserted + self.duplicates + self.failed
