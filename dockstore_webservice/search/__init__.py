"""Search index notification sinks."""

from .notifier import (
    ElasticsearchIndexNotifier,
    IndexNotifier,
    NullIndexNotifier,
    create_index_notifier,
    notify_delete,
    notify_update,
)

__all__ = [
    "ElasticsearchIndexNotifier",
    "IndexNotifier",
    "NullIndexNotifier",
    "create_index_notifier",
    "notify_delete",
    "notify_update",
]
