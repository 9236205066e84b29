"""
Batch application agent.

Runs: load users → refresh tokens → per criterion: search → relevance → cover letter
→ (optional) apply → store. Users are processed on a bounded pool; each user's
criteria run in parallel.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from autoapply.concurrency import settle_all
from autoapply.config import Settings, ensure_dirs, load_settings
from autoapply.cover_letter import CoverLetterWriter
from autoapply.llm import JsonFieldExtractor, LLMClient
from autoapply.log import get_logger
from autoapply.models import Credentials, User
from autoapply.pipeline import CriterionPipeline, Services
from autoapply.relevance import RelevanceClassifier
from autoapply.resume_selector import ResumeSelector
from autoapply.sources.headhunter import HeadHunterClient, describe_error
from autoapply.tracker import ApplicationTracker
from autoapply.users import UserStore

log = get_logger(__name__)


@dataclass
class BatchSummary:
    users: int = 0
    criteria: int = 0
    applications: int = 0
    failed_users: list[str] = field(default_factory=list)


def build_services(settings: Settings) -> Services:
    llm = LLMClient(
        settings.llm_api_key,
        base_url=settings.llm_base_url,
        model=settings.llm_model,
        temperature=settings.llm_temperature,
    )
    extractor = JsonFieldExtractor()
    hh = HeadHunterClient(
        user_agent=settings.hh_user_agent,
        api_url=settings.hh_api_url,
        token_url=settings.hh_token_url,
        client_id=settings.hh_client_id,
        client_secret=settings.hh_client_secret,
        area=settings.search_area,
        recency_days=settings.recency_days,
        vacancy_url=settings.vacancy_url,
        timeout=settings.http_timeout,
    )
    return Services(
        settings=settings,
        source=hh,
        hh=hh,
        classifier=RelevanceClassifier(llm, extractor),
        writer=CoverLetterWriter(llm),
        selector=ResumeSelector(
            hh, llm, extractor,
            model=settings.ranking_model,
            candidates=settings.resume_candidates,
        ),
        tracker=ApplicationTracker(settings.applications_path),
    )


def refresh_credentials(user: User, hh: HeadHunterClient, store: UserStore) -> bool:
    """Swap in fresh tokens for *user*; on failure keep the old ones."""
    if not user.credentials.refresh_token:
        return False
    try:
        tokens = hh.refresh_tokens(user.credentials.refresh_token)
    except Exception as exc:
        log.warning("Token refresh failed for user %s: %s", user.id, describe_error(exc))
        return False
    user.credentials = Credentials(tokens.access_token, tokens.refresh_token)
    try:
        store.update_credentials(user.id, tokens)
    except Exception as exc:
        log.error("Could not persist refreshed tokens for user %s: %s", user.id, exc)
    log.info("Refreshed tokens for user %s", user.id)
    return True


def process_user(
    user: User, services: Services, store: UserStore, pipeline: CriterionPipeline
) -> tuple[int, int]:
    """Returns (active criteria, applications created) for one user."""
    refresh_credentials(user, services.hh, store)
    criteria = user.active_criteria()
    if not criteria:
        log.info("User %s has no active criteria", user.id)
        return 0, 0
    outcomes = settle_all(lambda c: pipeline.run(user, c), criteria, name=f"user-{user.id}")
    created = sum(len(o.value) for o in outcomes if o.ok and o.value)
    log.info("User %s: %d criteria, %d new application(s)", user.id, len(criteria), created)
    return len(criteria), created


def dispatch(users: list[User], services: Services, store: UserStore) -> BatchSummary:
    """Run every user's criteria; returns once all of them have settled."""
    pipeline = CriterionPipeline(services)
    outcomes = settle_all(
        lambda u: process_user(u, services, store, pipeline),
        users,
        max_workers=services.settings.user_pool_size,
        name="user-pool",
    )
    summary = BatchSummary(users=len(users))
    for o in outcomes:
        if o.ok:
            criteria, created = o.value
            summary.criteria += criteria
            summary.applications += created
        else:
            summary.failed_users.append(o.item.id)
    return summary


def run(settings: Settings | None = None) -> dict[str, Any]:
    """Batch entry point used by the scheduler. Logs and never raises."""
    log.info("Task started")
    try:
        settings = settings or load_settings()
        ensure_dirs(settings)
        services = build_services(settings)
        store = UserStore(settings.users_path)
        users = store.load_users()
    except Exception as exc:
        log.error("Error during auto apply setup: %s", exc)
        return {"users": 0, "criteria": 0, "applications": 0, "failed_users": [], "error": str(exc)}

    log.info("Loaded %d user(s)", len(users))
    summary = dispatch(users, services, store)
    log.info(
        "Task ended: users=%d, criteria=%d, applications=%d, failed users=%d",
        summary.users, summary.criteria, summary.applications, len(summary.failed_users),
    )
    return {
        "users": summary.users,
        "criteria": summary.criteria,
        "applications": summary.applications,
        "failed_users": summary.failed_users,
    }


if __name__ == "__main__":
    run()
