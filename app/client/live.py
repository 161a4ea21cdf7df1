from enum import Enum
from typing import Any, Optional


class LiveQueryState(str, Enum):
    PENDING = "pending"
    LIVE = "live"
    UNSUBSCRIBED = "unsubscribed"


class LiveQuery:
    """Client-side view of one live query subscription.

    ``value`` stays None while pending; a loaded empty result is ``[]`` with
    state LIVE, which is what lets a screen tell a spinner from an empty state.
    """

    def __init__(self, sub_id: str, query: str, args: Optional[dict] = None):
        self.id = sub_id
        self.query = query
        self.args = args or {}
        self.state = LiveQueryState.PENDING
        self.value: Any = None
        self.seq = 0
        self.error: Optional[dict] = None

    @property
    def loading(self) -> bool:
        return self.state == LiveQueryState.PENDING

    def subscribe_message(self) -> dict:
        return {"type": "subscribe", "id": self.id, "query": self.query, "args": self.args}

    def unsubscribe_message(self) -> dict:
        self.state = LiveQueryState.UNSUBSCRIBED
        return {"type": "unsubscribe", "id": self.id}

    def apply(self, message: dict) -> bool:
        """Fold a server frame into local state; True when ``value`` changed."""
        if message.get("id") != self.id or self.state == LiveQueryState.UNSUBSCRIBED:
            return False
        kind = message.get("type")
        if kind == "error":
            self.error = message
            return False
        if kind != "result" or message["seq"] <= self.seq:
            return False
        self.seq = message["seq"]
        self.value = message["value"]
        self.error = None
        self.state = LiveQueryState.LIVE
        return True
