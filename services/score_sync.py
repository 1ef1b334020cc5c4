# services/score_sync.py - fetch the prior score on quiz start, persist the final score on completion
# Uses the remote score API when SCORE_API_URL is set, otherwise the app's own
# database (the same records /api/score serves).
import logging
from typing import Optional, Protocol

from flask import current_app

from models import ScoreRecord, db
from services.api_client import ApiError, JsonApiClient

logger = logging.getLogger(__name__)


class ScoreSyncError(Exception):
    """Fetching or saving a score failed; the message is safe to show to the user."""


class ScoreSyncClient(Protocol):
    def fetch_score(self, email: str) -> Optional[int]: ...

    def save_score(self, email: str, score: int) -> None: ...


class HttpScoreSyncClient:
    def __init__(self, url: str, timeout: Optional[float] = None, token: str = ""):
        self._api = JsonApiClient(url, timeout=timeout, token=token)

    def fetch_score(self, email: str) -> Optional[int]:
        try:
            data = self._api.get_json(params={"email": email})
        except ApiError as e:
            logger.warning("score_fetch_failed email=%s error=%s", email, e)
            raise ScoreSyncError("Unable to fetch your score") from e

        if not data.get("success"):
            raise ScoreSyncError(data.get("message") or "Unable to fetch your score")

        score = (data.get("userData") or {}).get("score")
        if score is None:
            return None
        try:
            return int(score)
        except (TypeError, ValueError) as e:
            raise ScoreSyncError("Unable to fetch your score") from e

    def save_score(self, email: str, score: int) -> None:
        try:
            data = self._api.post_json({"email": email, "score": int(score)})
        except ApiError as e:
            logger.warning("score_save_failed email=%s error=%s", email, e)
            raise ScoreSyncError("Unable to save your score") from e
        if data and data.get("success") is False:
            raise ScoreSyncError(data.get("message") or "Unable to save your score")
        logger.info("score_saved email=%s score=%s", email, score)


class LocalScoreSyncClient:
    """Reads and writes ScoreRecord rows directly; needs an app context."""

    def fetch_score(self, email: str) -> Optional[int]:
        try:
            record = ScoreRecord.query.filter_by(email=email).first()
        except Exception as e:
            logger.exception("score_fetch_failed email=%s", email)
            raise ScoreSyncError("Unable to fetch your score") from e
        return record.score if record else None

    def save_score(self, email: str, score: int) -> None:
        try:
            record = ScoreRecord.query.filter_by(email=email).first()
            if record is None:
                record = ScoreRecord(email=email)
                db.session.add(record)
            record.score = int(score)
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.exception("score_save_failed email=%s", email)
            raise ScoreSyncError("Unable to save your score") from e
        logger.info("score_saved email=%s score=%s", email, score)


def get_score_client() -> ScoreSyncClient:
    url = current_app.config.get("SCORE_API_URL")
    if url:
        return HttpScoreSyncClient(
            url,
            timeout=current_app.config.get("API_TIMEOUT_SECONDS"),
            token=current_app.config.get("API_TOKEN", ""),
        )
    return LocalScoreSyncClient()
