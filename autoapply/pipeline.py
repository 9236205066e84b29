"""Per-criterion search → filter → cover letter → apply → record loop.

One run handles one (user, criterion) pair: it pages through recent postings,
evaluates every posting on a page in parallel and stops once the user's quota
for this criterion is met or the page cap is reached.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass

from autoapply.concurrency import settle_all
from autoapply.config import Settings
from autoapply.cover_letter import CoverLetterWriter
from autoapply.log import get_logger
from autoapply.models import ApplicationRecord, Criterion, Posting, User
from autoapply.quota import applications_per_criterion
from autoapply.relevance import RelevanceClassifier
from autoapply.resume_selector import ResumeSelector
from autoapply.sources.base import PostingSource
from autoapply.sources.headhunter import HeadHunterClient
from autoapply.submission import submit_application
from autoapply.tracker import ApplicationTracker, commit_records

log = get_logger(__name__)


@dataclass
class Services:
    """Clients shared by every pipeline run; built once per batch."""

    settings: Settings
    source: PostingSource
    hh: HeadHunterClient
    classifier: RelevanceClassifier
    writer: CoverLetterWriter
    selector: ResumeSelector
    tracker: ApplicationTracker


class RunAccumulator:
    """Records produced by one criterion run, shared by concurrent evaluators.

    A suitable posting reserves a quota slot and its title before a resume is
    selected, a letter written or an application submitted. The reservation is
    either committed as a record or released, so every submitted application
    ends up recorded and the record count never exceeds the quota.
    """

    def __init__(self, quota: int) -> None:
        self.quota = quota
        self.records: list[ApplicationRecord] = []
        self._claimed: set[str] = set()
        self._reserved: dict[str, Posting] = {}
        self._lock = threading.Lock()

    @property
    def full(self) -> bool:
        return len(self.records) >= self.quota

    def _taken(self) -> int:
        return len(self.records) + len(self._reserved)

    def _seen(self, posting: Posting) -> bool:
        if any(r.is_duplicate_of(posting) for r in self.records):
            return True
        return any(p.id == posting.id or p.title == posting.title for p in self._reserved.values())

    def claim(self, posting: Posting) -> bool:
        """Mark *posting* for evaluation; False if it was seen or every slot is taken."""
        with self._lock:
            if self._taken() >= self.quota or posting.id in self._claimed or self._seen(posting):
                return False
            self._claimed.add(posting.id)
            return True

    def reserve(self, posting: Posting) -> bool:
        """Hold a quota slot and the title of *posting* until commit or release."""
        with self._lock:
            if self._taken() >= self.quota or self._seen(posting):
                return False
            self._reserved[posting.id] = posting
            return True

    def release(self, posting: Posting) -> None:
        with self._lock:
            self._reserved.pop(posting.id, None)

    def commit(self, record: ApplicationRecord, posting: Posting) -> None:
        with self._lock:
            self._reserved.pop(posting.id, None)
            self.records.append(record)


def build_record(user: User, posting: Posting, cover_letter: str) -> ApplicationRecord:
    return ApplicationRecord(
        posting_id=posting.id,
        user_id=user.id,
        title=posting.title,
        employer=posting.employer,
        cover_letter=cover_letter,
        salary=(posting.salary.low or 0) if posting.salary else 0,
        employer_logo=posting.employer_logo,
        responsibility=posting.responsibility,
        requirement=posting.requirement,
        address=posting.address,
        url=posting.url,
        from_headhunter=True,
        from_other_site=False,
    )


class CriterionPipeline:
    def __init__(self, services: Services) -> None:
        self.services = services

    def run(self, user: User, criterion: Criterion) -> list[ApplicationRecord]:
        """Process one criterion end to end. Never raises."""
        try:
            return self._run(user, criterion)
        except Exception:
            log.exception("Criterion %r for user %s aborted", criterion.text, user.id)
            return []

    def _run(self, user: User, criterion: Criterion) -> list[ApplicationRecord]:
        svc = self.services
        quota = applications_per_criterion(len(user.active_criteria()))

        try:
            term = svc.classifier.search_term(criterion.text)
        except Exception as exc:
            log.error("Could not derive search term from %r for user %s: %s", criterion.text, user.id, exc)
            return []

        acc = RunAccumulator(quota)
        for page in range(1, svc.settings.max_pages + 1):
            try:
                result = svc.source.search(term, page, only_with_salary=user.only_with_salary)
            except Exception as exc:
                log.error("Error fetching page %d for %r: %s", page, term, exc)
                continue
            if not result.items:
                log.debug("Page %d for %r is empty", page, term)
                continue

            settle_all(
                lambda posting: self._evaluate(user, criterion, posting, acc),
                result.items,
                name=f"u{user.id}-p{page}",
            )
            log.info(
                "User %s %r page %d: %d/%d application(s)",
                user.id, term, page, len(acc.records), quota,
            )
            if acc.full:
                break

        if acc.records:
            commit_records(svc.tracker, acc.records)
        else:
            log.info("No new applications for user %s, criterion %r", user.id, criterion.text)
        return acc.records

    def _evaluate(
        self, user: User, criterion: Criterion, posting: Posting, acc: RunAccumulator
    ) -> ApplicationRecord | None:
        svc = self.services
        if not acc.claim(posting):
            return None
        if svc.tracker.has_title(user.id, posting.title):
            log.debug("Already applied to %r for user %s", posting.title, user.id)
            return None
        if not svc.classifier.is_suitable(criterion.text, posting):
            return None
        if not acc.reserve(posting):
            log.info("Quota or title taken, skipping %s @ %s for user %s", posting.title, posting.employer, user.id)
            return None

        try:
            if user.has_linked_account:
                letter = self._apply_with_account(user, posting)
            else:
                letter = svc.writer.generate(user, posting)
        except Exception:
            acc.release(posting)
            raise
        if not letter:
            acc.release(posting)
            return None

        record = build_record(user, posting, letter)
        acc.commit(record, posting)
        return record

    def _apply_with_account(self, user: User, posting: Posting) -> str | None:
        svc = self.services
        token = user.credentials.access_token
        selected = svc.selector.select(posting.id, token)
        if selected is None:
            return None
        letter = svc.writer.generate(user, posting, selected.text)
        if not letter:
            return None
        if svc.settings.auto_submit:
            outcome = submit_application(svc.hh, posting.id, selected.id, letter, token)
            if not outcome.ok:
                log.warning("Keeping record for %s despite failed submission", posting.id)
        return letter
