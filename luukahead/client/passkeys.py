# luukahead/client/passkeys.py
"""
Client-only cache of project passkeys (projectId -> passphrase).

Passkeys are never sent to the server. The cache is mirrored into an
ephemeral, session-scoped storage so moving between pages does not lose
them; they are removed per project with ``clear`` or all at once with
``clear_all`` (on logout).
"""
import json
import logging
from typing import Callable, Dict, List, MutableMapping, Optional

logger = logging.getLogger(__name__)

STORAGE_KEY = "luukahead:projectPasskeys"

Subscriber = Callable[[Dict[str, str]], None]


class PasskeyCache:
    """
    Single-threaded reactive store.

    ``storage`` stands in for the browser's sessionStorage: any mutable
    string mapping. Every mutation is written through immediately; the
    last write wins.
    """

    def __init__(self, storage: Optional[MutableMapping[str, str]] = None):
        self._storage: MutableMapping[str, str] = storage if storage is not None else {}
        self._passkeys: Dict[str, str] = self._load()
        self._subscribers: List[Subscriber] = []

    def _load(self) -> Dict[str, str]:
        try:
            raw = self._storage.get(STORAGE_KEY)
            if not raw:
                return {}
            pairs = json.loads(raw)
            if not isinstance(pairs, list) or not all(
                isinstance(pair, list) and len(pair) == 2 for pair in pairs
            ):
                raise ValueError("unexpected passkey storage format")
            return {str(project_id): str(passkey) for project_id, passkey in pairs}
        except (TypeError, ValueError, OSError) as e:
            logger.warning("Failed to load passkeys from session storage: %s", e)
            return {}

    def _save(self) -> None:
        try:
            self._storage[STORAGE_KEY] = json.dumps(list(self._passkeys.items()))
        except (TypeError, ValueError, OSError) as e:
            logger.warning("Failed to save passkeys to session storage: %s", e)

    def _notify(self) -> None:
        snapshot = dict(self._passkeys)
        for callback in list(self._subscribers):
            callback(snapshot)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Call ``callback`` now and after every change; returns an unsubscriber."""
        self._subscribers.append(callback)
        callback(dict(self._passkeys))

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def set(self, project_id: str, passphrase: str) -> None:
        self._passkeys = {**self._passkeys, project_id: passphrase}
        self._save()
        self._notify()

    def clear(self, project_id: str) -> None:
        passkeys = dict(self._passkeys)
        passkeys.pop(project_id, None)
        self._passkeys = passkeys
        self._save()
        self._notify()

    def clear_all(self) -> None:
        self._passkeys = {}
        try:
            self._storage.pop(STORAGE_KEY, None)
        except OSError as e:
            logger.warning("Failed to remove passkeys from session storage: %s", e)
        self._notify()

    def get(self, project_id: str) -> str:
        """The passkey for ``project_id``, or "" if none is cached."""
        return self._passkeys.get(project_id, "")

    def __contains__(self, project_id: object) -> bool:
        return project_id in self._passkeys

    def __len__(self) -> int:
        return len(self._passkeys)
