"""Recently viewed tokens, persisted under the tokenHistory key."""
import logging
import time
from dataclasses import replace
from typing import Optional

from .models import TokenHistoryItem
from ..constants import TOKEN_HISTORY_KEY
from ..storage.db import KeyValueStore


logger = logging.getLogger(__name__)


def _same(a: str, b: str) -> bool:
    return a.upper() == b.upper()


class TokenHistoryStore:
    """
    Newest-first list of tokens the user has looked at.

    Args:
        kv_store: Backing key/value store
    """

    def __init__(self, kv_store: KeyValueStore) -> None:
        self._kv = kv_store
        raw = kv_store.get_json(TOKEN_HISTORY_KEY, default=[])
        self._items: tuple[TokenHistoryItem, ...] = tuple(
            TokenHistoryItem.from_dict(item) for item in raw if isinstance(item, dict) and "token" in item
        ) if isinstance(raw, list) else ()
        self._selected: Optional[str] = None

    def _commit(self, items: tuple[TokenHistoryItem, ...]) -> None:
        self._items = items
        self._kv.set_json(TOKEN_HISTORY_KEY, [item.to_dict() for item in items])

    @property
    def history(self) -> tuple[TokenHistoryItem, ...]:
        return self._items

    @property
    def selected_token(self) -> Optional[str]:
        return self._selected

    def get(self, token: str) -> Optional[TokenHistoryItem]:
        for item in self._items:
            if _same(item.token, token):
                return item
        return None

    def add_token(self, token: str, details: Optional[dict] = None) -> TokenHistoryItem:
        """
        Put a token at the top of the history.

        An existing entry is moved rather than duplicated; its details and
        notification flag are kept when no new details are given.

        Args:
            token: Token symbol
            details: Latest market details, if known

        Returns:
            The entry now at the top
        """
        existing = self.get(token)
        if existing is not None:
            item = replace(
                existing,
                details=details if details is not None else existing.details,
                added_at=time.time(),
            )
        else:
            item = TokenHistoryItem(token=token, details=details)
        rest = tuple(i for i in self._items if not _same(i.token, token))
        self._commit((item,) + rest)
        logger.debug(f"Token history: {token} moved to top")
        return item

    def remove_token(self, token: str) -> bool:
        remaining = tuple(i for i in self._items if not _same(i.token, token))
        if len(remaining) == len(self._items):
            return False
        if self._selected and _same(self._selected, token):
            self._selected = None
        self._commit(remaining)
        return True

    def select_token(self, token: Optional[str]) -> None:
        self._selected = token

    def set_notifications(self, token: str, enabled: bool) -> bool:
        """Toggle alerts for a token. Returns False if it is not in the history."""
        item = self.get(token)
        if item is None:
            return False
        self._commit(tuple(
            replace(i, has_notifications=enabled) if i is item else i for i in self._items
        ))
        return True

    def clear(self) -> None:
        self._selected = None
        self._commit(())
