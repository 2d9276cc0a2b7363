"""
Search index notification.

Index updates are best effort: callers wrap every notification so a
failing search cluster never fails a refresh or an edit.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx
import structlog

from ..config import Settings
from ..db.models import EntryModel

logger = structlog.get_logger()


class IndexNotifier(ABC):
    """Sink for entry changes that should be reflected in search."""

    @abstractmethod
    def update(self, entry: EntryModel) -> None:
        """Index or re-index an entry."""

    @abstractmethod
    def delete(self, entry: EntryModel) -> None:
        """Remove an entry from the index."""

    def close(self) -> None:
        """Release any connections held by the notifier."""


class NullIndexNotifier(IndexNotifier):
    """Used when no search cluster is configured."""

    def update(self, entry: EntryModel) -> None:
        pass

    def delete(self, entry: EntryModel) -> None:
        pass


class ElasticsearchIndexNotifier(IndexNotifier):
    """
    Keeps an Elasticsearch index of published entries.

    Only published, non-checker entries are searchable; an update for
    any other entry removes it from the index instead.
    """

    def __init__(
        self,
        base_url: str,
        index: str = "entry",
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.index = index
        self.client = client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def _document_url(self, entry: EntryModel) -> str:
        return f"{self.base_url}/{self.index}/_doc/{entry.id}"

    @staticmethod
    def document(entry: EntryModel) -> Dict[str, Any]:
        """Search document for an entry; file contents are not indexed."""
        doc = entry.to_dict()
        for version in doc.get("versions", []):
            for source_file in version.get("source_files", []):
                source_file.pop("content", None)
        return doc

    def update(self, entry: EntryModel) -> None:
        if not entry.is_published or entry.is_checker:
            self.delete(entry)
            return
        try:
            response = self.client.put(self._document_url(entry), json=self.document(entry))
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("index_update_failed", entry_id=entry.id, error=str(e))
            raise

    def delete(self, entry: EntryModel) -> None:
        try:
            response = self.client.delete(self._document_url(entry))
            # Deleting a document that was never indexed is fine
            if response.status_code != 404:
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("index_delete_failed", entry_id=entry.id, error=str(e))
            raise


def create_index_notifier(settings: Settings) -> IndexNotifier:
    """Build the notifier configured by ``ELASTICSEARCH_URL``."""
    if not settings.elasticsearch_url:
        return NullIndexNotifier()
    return ElasticsearchIndexNotifier(
        settings.elasticsearch_url,
        index=settings.elasticsearch_index,
        timeout=settings.elasticsearch_timeout_seconds,
    )


def notify_update(notifier: IndexNotifier, entry: EntryModel) -> None:
    """Best-effort index update; failures are logged, never raised."""
    try:
        notifier.update(entry)
    except Exception:
        logger.exception("index_notification_failed", action="update", entry_id=entry.id)


def notify_delete(notifier: IndexNotifier, entry: EntryModel) -> None:
    """Best-effort index removal; failures are logged, never raised."""
    try:
        notifier.delete(entry)
    except Exception:
        logger.exception("index_notification_failed", action="delete", entry_id=entry.id)
