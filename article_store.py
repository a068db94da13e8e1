"""Article store adapters: the REST article API and a local JSON file."""

from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Protocol

import requests

from errors import ArticleStoreError
from models import Article, EnhancementRecord

REQUEST_TIMEOUT_SECONDS = 30
MAX_RETRIES = 3
MAX_PAGES = 20

LOGGER = logging.getLogger(__name__)


class ArticleStore(Protocol):
    def list_pending(self, limit: int) -> list[Article]: ...

    def get(self, article_id: str) -> Article | None: ...

    def update(self, article_id: str, record: EnhancementRecord) -> None: ...


class HttpArticleStore:
    """Client for the article API (`GET /articles`, `PUT /articles/{id}`)."""

    def __init__(self, base_url: str, session: requests.Session | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()

    def list_pending(self, limit: int) -> list[Article]:
        """Articles without an enhanced version, oldest pages first."""
        pending: list[Article] = []
        url: str | None = f"{self.base_url}/articles"
        pages = 0
        while url and len(pending) < limit and pages < MAX_PAGES:
            body = self._request_with_backoff(method="GET", url=url).json()
            pages += 1
            items, url = _page_items(body)
            for item in items:
                article = Article.from_dict(item)
                if article.enhanced_version is None:
                    pending.append(article)
                    if len(pending) >= limit:
                        break
        return pending

    def get(self, article_id: str) -> Article | None:
        try:
            body = self._request_with_backoff(method="GET", url=f"{self.base_url}/articles/{article_id}").json()
        except ArticleStoreError:
            LOGGER.warning("Article %s could not be fetched", article_id)
            return None
        data = body.get("data", body) if isinstance(body, dict) else None
        return Article.from_dict(data) if isinstance(data, dict) else None

    def update(self, article_id: str, record: EnhancementRecord) -> None:
        self._request_with_backoff(
            method="PUT",
            url=f"{self.base_url}/articles/{article_id}",
            json_payload={"enhanced_version": record.to_dict()},
        )

    def _request_with_backoff(
        self,
        *,
        method: str,
        url: str,
        json_payload: dict[str, Any] | None = None,
    ) -> requests.Response:
        """Send a request with simple exponential backoff for rate limits and transport errors."""
        delay_seconds = 1.0
        last_error: Exception | None = None

        for attempt in range(1, MAX_RETRIES + 1):
            try:
                response = self.session.request(
                    method=method,
                    url=url,
                    headers={"Accept": "application/json"},
                    json=json_payload,
                    timeout=REQUEST_TIMEOUT_SECONDS,
                )
                if response.status_code == 429 and attempt < MAX_RETRIES:
                    time.sleep(delay_seconds)
                    delay_seconds *= 2
                    continue
                response.raise_for_status()
                return response
            except requests.RequestException as exc:
                last_error = exc
                status = exc.response.status_code if exc.response is not None else None
                # Client errors will not succeed on retry.
                if attempt >= MAX_RETRIES or (status is not None and status < 500):
                    break
                time.sleep(delay_seconds)
                delay_seconds *= 2

        response_text = ""
        if isinstance(last_error, requests.HTTPError) and last_error.response is not None:
            response_text = last_error.response.text[:500]
        raise ArticleStoreError(f"Article API {method} {url} failed: {last_error} {response_text}".strip())


def _page_items(body: Any) -> tuple[list[dict[str, Any]], str | None]:
    """Items and next-page URL from a paginated or plain-list response."""
    if isinstance(body, list):
        return [item for item in body if isinstance(item, dict)], None
    if not isinstance(body, dict):
        return [], None
    items = body.get("data")
    if not isinstance(items, list):
        return [], None
    next_url = body.get("next_page_url")
    if not next_url and isinstance(body.get("links"), dict):
        next_url = body["links"].get("next")
    return [item for item in items if isinstance(item, dict)], next_url or None


class JsonArticleStore:
    """Articles kept as a JSON list in a local file."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)

    def list_pending(self, limit: int) -> list[Article]:
        articles = [Article.from_dict(item) for item in self._load()]
        return [a for a in articles if a.enhanced_version is None][:limit]

    def get(self, article_id: str) -> Article | None:
        for item in self._load():
            if str(item.get("id")) == str(article_id):
                return Article.from_dict(item)
        return None

    def update(self, article_id: str, record: EnhancementRecord) -> None:
        items = self._load()
        for item in items:
            if str(item.get("id")) == str(article_id):
                item["enhanced_version"] = record.to_dict()
                break
        else:
            raise ArticleStoreError(f"Article {article_id} not found in {self.path}")

        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(items, indent=2, ensure_ascii=False), encoding="utf-8")
        tmp_path.replace(self.path)
        LOGGER.info("Wrote enhanced version for article %s to %s", article_id, self.path)

    def _load(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            raise ArticleStoreError(f"Articles file not found: {self.path}")
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise ArticleStoreError(f"Could not read articles file {self.path}: {exc}") from exc
        if isinstance(data, dict):
            data = data.get("data", [])
        if not isinstance(data, list):
            raise ArticleStoreError(f"Articles file {self.path} must hold a JSON list")
        return [item for item in data if isinstance(item, dict)]
