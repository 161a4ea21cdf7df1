"""Optimistic counter deltas, reconciled against post versions.

A delta is kept per mutation rather than as an absolute override, so counter
changes pushed by other users' actions still show while ours is in flight.
A delta is dropped once a server value at or past the version our mutation
committed has been observed, or reverted exactly if the mutation failed.
"""
import itertools
from dataclasses import dataclass
from typing import Dict, Optional


@dataclass
class PendingDelta:
    post_id: int
    amount: int
    # post version our mutation committed at; None while the call is in flight
    version: Optional[int] = None


class OptimisticCounters:
    def __init__(self):
        self._pending: Dict[int, PendingDelta] = {}
        self._seen_versions: Dict[int, int] = {}
        self._tokens = itertools.count(1)

    def advance(self, post_id: int, amount: int = 1) -> int:
        token = next(self._tokens)
        self._pending[token] = PendingDelta(post_id, amount)
        return token

    def confirm(self, token: int, version: int) -> None:
        pending = self._pending.get(token)
        if pending is None:
            return
        pending.version = version
        if self._seen_versions.get(pending.post_id, 0) >= version:
            del self._pending[token]

    def revert(self, token: int) -> None:
        self._pending.pop(token, None)

    def observe(self, post_id: int, version: int) -> None:
        """Record a server-delivered post version and retire deltas it already reflects."""
        if version <= self._seen_versions.get(post_id, 0):
            return
        self._seen_versions[post_id] = version
        for token, pending in list(self._pending.items()):
            if pending.post_id == post_id and pending.version is not None and pending.version <= version:
                del self._pending[token]

    def delta(self, post_id: int) -> int:
        return sum(p.amount for p in self._pending.values() if p.post_id == post_id)

    def pending_count(self, post_id: int) -> int:
        return sum(1 for p in self._pending.values() if p.post_id == post_id)

    def display(self, post_id: int, server_count: int) -> int:
        return max(0, (server_count or 0) + self.delta(post_id))
