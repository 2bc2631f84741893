import logging
import re
from enum import Enum
from typing import Any, Sequence

import requests
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.database import reflect_table
from backend.exceptions import SourceUnavailableError
from backend.schemas.series import Outcome
from backend.services.series_assembler import names_regex, row_matches

logger = logging.getLogger(__name__)

GENERIC_WORDS_RE = re.compile(
    r"cholesterol|colesterol|total|triglycerides|triglicerides|mg/dl|ng/ml|pg/ml|mmol/l|\s+"
)


class CardQueryClient:
    """Session-authenticated client for the BI card-query service."""

    def __init__(
        self,
        base_url: str | None,
        session_token: str | None,
        timeout: float = 30.0,
        http: requests.Session | None = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.session_token = session_token
        self.timeout = timeout
        self.http = http or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.session_token)

    def close(self) -> None:
        self.http.close()

    def query_card(self, card_id: int) -> list[dict[str, Any]]:
        response = self.http.get(
            f"{self.base_url}/api/card/{card_id}/query/json",
            headers={"X-Metabase-Session": self.session_token or ""},
            timeout=self.timeout,
        )
        if not response.ok:
            raise RuntimeError(f"card {card_id} returned {response.status_code}: {response.text[:200]}")
        payload = response.json()
        if not isinstance(payload, list):
            raise RuntimeError(f"card {card_id} returned a non-list payload")
        return [row for row in payload if isinstance(row, dict)]


class SqlRowStore:
    """Unprojected, capped reads from upstream tables and views."""

    def __init__(self, db: Session):
        self.db = db

    def fetch_rows(self, table_name: str, limit: int) -> list[dict[str, Any]]:
        try:
            table = reflect_table(table_name, self.db.get_bind())
            result = self.db.execute(select(table).limit(limit))
            return [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError:
            # a failed statement leaves the shared transaction unusable for the next table
            self.db.rollback()
            raise


class AttemptStatus(str, Enum):
    SUCCESS = "success"
    EMPTY = "empty"
    ERROR = "error"


class AttemptResult(BaseModel):
    source: str
    status: AttemptStatus
    rows: list[dict[str, Any]] = Field(default_factory=list)
    message: str | None = None


class Resolution(BaseModel):
    outcome: Outcome
    source: str | None = None
    rows: list[dict[str, Any]] = Field(default_factory=list)
    attempts: list[AttemptResult] = Field(default_factory=list)


def relaxed_tokens(names: Sequence[str]) -> list[str]:
    """Requested names with generic words, unit words and whitespace stripped."""
    tokens = [GENERIC_WORDS_RE.sub("", str(name or "").lower()).strip() for name in names]
    return [token for token in tokens if token]


def filter_requested(rows: Sequence[dict[str, Any]], names: Sequence[str]) -> tuple[list[dict[str, Any]], str]:
    """Rows with a string field naming a requested analyte, and which pass matched them."""
    pattern = names_regex(names)
    if pattern is not None:
        matched = [row for row in rows if row_matches(row, pattern)]
        if matched:
            return matched, "exact"

    token_pattern = names_regex(relaxed_tokens(names))
    if token_pattern is not None:
        matched = [row for row in rows if row_matches(row, token_pattern)]
        if matched:
            return matched, "token"
    return [], "none"


class PrimaryCardAttempt:
    def __init__(self, client: CardQueryClient, card_id: int, row_cap: int):
        self.client = client
        self.card_id = card_id
        self.row_cap = row_cap
        self.name = f"card:{card_id}"

    def run(self, requested: Sequence[str]) -> AttemptResult:
        try:
            rows = self.client.query_card(self.card_id)
        except (requests.RequestException, RuntimeError, ValueError) as exc:
            logger.warning("Card query %s failed: %s", self.card_id, exc)
            return AttemptResult(source=self.name, status=AttemptStatus.ERROR, message=str(exc))
        if not rows:
            return AttemptResult(source=self.name, status=AttemptStatus.EMPTY)
        return AttemptResult(source=self.name, status=AttemptStatus.SUCCESS, rows=rows[: self.row_cap])


class FallbackTableAttempt:
    def __init__(self, store: SqlRowStore, table_name: str, row_cap: int):
        self.store = store
        self.table_name = table_name
        self.row_cap = row_cap
        self.name = f"table:{table_name}"

    def run(self, requested: Sequence[str]) -> AttemptResult:
        try:
            rows = self.store.fetch_rows(self.table_name, self.row_cap)
        except Exception as exc:
            logger.warning("Fallback table %s failed: %s", self.table_name, exc)
            return AttemptResult(source=self.name, status=AttemptStatus.ERROR, message=str(exc))
        if not rows:
            logger.warning("Fallback table %s has no rows", self.table_name)
            return AttemptResult(source=self.name, status=AttemptStatus.EMPTY)

        matched, how = filter_requested(rows, requested)
        if not matched:
            logger.warning("Fallback table %s has no rows matching %s", self.table_name, list(requested))
            return AttemptResult(source=self.name, status=AttemptStatus.EMPTY)
        if how == "token":
            logger.info("Fallback table %s matched by relaxed tokens %s", self.table_name, relaxed_tokens(requested))
        return AttemptResult(source=self.name, status=AttemptStatus.SUCCESS, rows=matched)


class SourceResolver:
    """Runs the primary attempt, then fallback tables in declared order.

    The first fallback with matching rows wins even when a later table would
    match better. Raises ``SourceUnavailableError`` when no fallback table is
    configured or every one of them errored.
    """

    def __init__(self, primary: PrimaryCardAttempt | None, fallbacks: Sequence[FallbackTableAttempt]):
        self.primary = primary
        self.fallbacks = list(fallbacks)

    def resolve(self, requested: Sequence[str]) -> Resolution:
        attempts: list[AttemptResult] = []

        if self.primary is not None:
            result = self.primary.run(requested)
            attempts.append(result)
            if result.status == AttemptStatus.SUCCESS:
                logger.info("Using %s, rows=%d", result.source, len(result.rows))
                return Resolution(outcome=Outcome.SERIES, source=result.source, rows=result.rows, attempts=attempts)

        if not self.fallbacks:
            raise SourceUnavailableError("No fallback tables configured")

        for attempt in self.fallbacks:
            result = attempt.run(requested)
            attempts.append(result)
            if result.status == AttemptStatus.SUCCESS:
                logger.info("Using %s, candidate rows=%d", result.source, len(result.rows))
                return Resolution(outcome=Outcome.SERIES, source=result.source, rows=result.rows, attempts=attempts)

        fallback_results = attempts[-len(self.fallbacks):]
        errors = [f"{r.source}: {r.message}" for r in fallback_results if r.status == AttemptStatus.ERROR]
        if len(errors) == len(fallback_results):
            raise SourceUnavailableError("Every fallback table errored", errors=errors)
        logger.info("No rows matching %s in any source", list(requested))
        return Resolution(outcome=Outcome.NO_DATA_FOUND, attempts=attempts)
