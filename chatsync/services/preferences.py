# chatsync/services/preferences.py
"""User preferences persisted beside the chat state (userName, darkMode)."""

from __future__ import annotations

import logging

from chatsync.services.store import DARK_MODE_KEY, USER_NAME_KEY, PersistentStore

logger = logging.getLogger(__name__)

DEFAULT_USER_NAME = "Anonymous"


class Preferences:
    def __init__(self, store: PersistentStore):
        self._store = store

    @property
    def user_name(self) -> str:
        value = self._store.get(USER_NAME_KEY)
        return value if isinstance(value, str) and value else DEFAULT_USER_NAME

    def set_user_name(self, name: str) -> bool:
        """Store a trimmed display name. Blank names are ignored."""
        name = name.strip()
        if not name:
            return False
        self._store.set(USER_NAME_KEY, name)
        logger.info(f"Display name set to '{name}'")
        return True

    @property
    def dark_mode(self) -> bool:
        return bool(self._store.get(DARK_MODE_KEY) or False)

    def set_dark_mode(self, enabled: bool) -> None:
        self._store.set(DARK_MODE_KEY, bool(enabled))

    def toggle_dark_mode(self) -> bool:
        enabled = not self.dark_mode
        self.set_dark_mode(enabled)
        return enabled
