from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional, Set, Tuple

from membroker.subscription import Callback, WeakSubscription


class _Bucket:
    __slots__ = ("lock", "subs")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.subs: Set[WeakSubscription] = set()


class SubscriptionStore:
    """Subscriptions grouped by declared message type.

    Lock order is always store lock, then bucket lock. Buckets are created and
    dropped only under the store lock so an ``add`` cannot land in a bucket that
    ``cleanup`` has already unlinked.
    """

    def __init__(self) -> None:
        self._buckets: Dict[type, _Bucket] = {}
        self._lock = threading.Lock()
        self._log = logging.getLogger("broker.store")

    def add(self, sub: WeakSubscription) -> None:
        with self._lock:
            bucket = self._buckets.get(sub.message_type)
            if bucket is None:
                bucket = self._buckets[sub.message_type] = _Bucket()
            with bucket.lock:
                bucket.subs.add(sub)

    def get(self, message_type: type) -> Tuple[WeakSubscription, ...]:
        bucket = self._buckets.get(message_type)
        if bucket is None:
            return ()
        with bucket.lock:
            return tuple(bucket.subs)

    def remove_recipient(self, recipient: Any) -> int:
        # Collected subscriptions also report a None target.
        if recipient is None:
            return 0
        removed = 0
        for bucket in self._snapshot():
            with bucket.lock:
                doomed = [s for s in bucket.subs if s.target is recipient]
                bucket.subs.difference_update(doomed)
            removed += len(doomed)
        return removed

    def mark_dead(self, recipient: Any, callback: Callback, message_type: Optional[type] = None) -> int:
        if message_type is None:
            buckets = self._snapshot()
        else:
            bucket = self._buckets.get(message_type)
            buckets = [bucket] if bucket is not None else []

        marked = 0
        for bucket in buckets:
            with bucket.lock:
                matching = [s for s in bucket.subs if s.matches(recipient, callback)]
            for sub in matching:
                sub.mark_dead()
            marked += len(matching)
        return marked

    def cleanup(self) -> int:
        removed = 0
        with self._lock:
            for message_type, bucket in list(self._buckets.items()):
                with bucket.lock:
                    dead = [s for s in bucket.subs if not s.is_alive]
                    bucket.subs.difference_update(dead)
                    if not bucket.subs:
                        del self._buckets[message_type]
                removed += len(dead)
        self._log.debug("swept", extra={"removed": removed, "buckets": len(self._buckets)})
        return removed

    def clear(self) -> None:
        with self._lock:
            self._buckets.clear()

    def message_types(self) -> Tuple[type, ...]:
        with self._lock:
            return tuple(self._buckets)

    def _snapshot(self) -> List[_Bucket]:
        with self._lock:
            return list(self._buckets.values())

    def __len__(self) -> int:
        total = 0
        for bucket in self._snapshot():
            with bucket.lock:
                total += len(bucket.subs)
        return total
