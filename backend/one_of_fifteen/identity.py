import uuid
from typing import MutableMapping, Optional


class SessionIdentityStore:
    """Opaque per-tab identity for one game.

    ``storage`` plays the part of the browser tab's session storage: it lives
    as long as the tab, survives reconnects and reloads, and is never shared
    between tabs.
    """

    def __init__(self, game_id: str, storage: Optional[MutableMapping[str, str]] = None):
        self.game_id = game_id
        self.key = f"game_session_{game_id}"
        self.storage = storage if storage is not None else {}

    def get_or_create(self) -> str:
        token = self.storage.get(self.key)
        if not token:
            token = str(uuid.uuid4())
            self.storage[self.key] = token
        return token

    def clear(self) -> None:
        self.storage.pop(self.key, None)
