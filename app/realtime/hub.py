"""Live queries: subscribers get a query's result, then a fresh one after every relevant commit.

Mutations publish the rows they committed (see ``app.db.session``); the hub
matches each commit against the interest every live subscription declared
and queues exactly one re-run per matching commit.  Results travel to the
client through the subscription's channel, an ``asyncio.Queue`` owned by the
connection.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from fastapi.encoders import jsonable_encoder
from pydantic import ValidationError as PydanticValidationError
from starlette.concurrency import run_in_threadpool

from app.core.errors import FeedError, ValidationError

logger = logging.getLogger(__name__)


class SubscriptionState(str, Enum):
    PENDING = "pending"
    LIVE = "live"
    UPDATED = "updated"
    UNSUBSCRIBED = "unsubscribed"


@dataclass(frozen=True)
class Interest:
    """A table plus equality predicates, i.e. one index range a query reads."""

    table: str
    where: Dict[str, Any] = field(default_factory=dict)

    def matches(self, change: dict) -> bool:
        if change["table"] != self.table:
            return False
        values = change["values"]
        # a change that doesn't carry a column can't rule the range out
        return all(values.get(column, expected) == expected for column, expected in self.where.items())


@dataclass
class LiveQueryDef:
    name: str
    args_model: Any
    run: Callable
    interest: Callable[[Any], List[Interest]]


class Subscription:
    def __init__(self, sub_id: str, query: LiveQueryDef, args, channel: asyncio.Queue, session_factory):
        self.id = sub_id
        self.query = query
        self.args = args
        self.channel = channel
        self.interests = query.interest(args)
        self.state = SubscriptionState.PENDING
        self.seq = 0
        self._session_factory = session_factory
        # commits not yet re-run; a count rather than a queue so a busy query costs no memory
        self.pending_runs = 0
        self._wakeup = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    def matches(self, changes: List[dict]) -> bool:
        return any(interest.matches(change) for change in changes for interest in self.interests)

    def trigger(self) -> None:
        if self.state != SubscriptionState.UNSUBSCRIBED:
            self.pending_runs += 1
            self._wakeup.set()

    def start(self) -> None:
        self._task = asyncio.create_task(self._worker())
        self.trigger()

    async def stop(self) -> None:
        self.state = SubscriptionState.UNSUBSCRIBED
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    def _execute(self):
        db = self._session_factory()
        try:
            return jsonable_encoder(self.query.run(db, self.args))
        finally:
            db.close()

    async def _worker(self) -> None:
        while True:
            await self._wakeup.wait()
            self.pending_runs -= 1
            if not self.pending_runs:
                self._wakeup.clear()
            try:
                value = await run_in_threadpool(self._execute)
            except FeedError as e:
                await self.channel.put({"type": "error", "id": self.id, "code": e.code, "detail": e.detail})
                continue
            except Exception as e:
                logger.error(f"Live query {self.query.name} failed: {e}", exc_info=True)
                await self.channel.put({"type": "error", "id": self.id, "code": "internal", "detail": "Query failed"})
                continue

            if self.state == SubscriptionState.UNSUBSCRIBED:
                return
            self.seq += 1
            self.state = SubscriptionState.LIVE if self.seq == 1 else SubscriptionState.UPDATED
            await self.channel.put({"type": "result", "id": self.id, "seq": self.seq, "value": value})
            self.state = SubscriptionState.LIVE


class LiveQueryHub:
    def __init__(self, session_factory):
        self._session_factory = session_factory
        self._queries: Dict[str, LiveQueryDef] = {}
        self._subscriptions: List[Subscription] = []
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def register(self, query: LiveQueryDef) -> None:
        self._queries[query.name] = query

    @property
    def subscriptions(self) -> List[Subscription]:
        return list(self._subscriptions)

    async def subscribe(self, sub_id: str, query_name: str, raw_args: dict, channel: asyncio.Queue) -> Subscription:
        query = self._queries.get(query_name)
        if query is None:
            raise ValidationError(f"Unknown query {query_name!r}")
        try:
            args = query.args_model.model_validate(raw_args or {})
        except PydanticValidationError as e:
            raise ValidationError(str(e))

        self._loop = asyncio.get_running_loop()
        subscription = Subscription(sub_id, query, args, channel, self._session_factory)
        self._subscriptions.append(subscription)
        await channel.put({"type": "pending", "id": sub_id})
        subscription.start()
        logger.debug(f"Subscribed {sub_id} to {query_name}")
        return subscription

    async def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
        await subscription.stop()
        logger.debug(f"Unsubscribed {subscription.id} from {subscription.query.name}")

    def publish(self, changes: List[dict]) -> None:
        """Commit listener; safe to call from any thread."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._dispatch, list(changes))

    def _dispatch(self, changes: List[dict]) -> None:
        for subscription in list(self._subscriptions):
            if subscription.matches(changes):
                subscription.trigger()
