from __future__ import annotations

import gc
from dataclasses import dataclass

from membroker.store import SubscriptionStore
from membroker.subscription import WeakSubscription


@dataclass(frozen=True)
class A:
    x: int = 0


@dataclass(frozen=True)
class B:
    y: int = 0


class Holder:
    def on_a(self, msg: A) -> None:
        pass

    def on_b(self, msg: B) -> None:
        pass


def _sub(holder: Holder, message_type: type = A) -> WeakSubscription:
    cb = holder.on_a if message_type is A else holder.on_b
    return WeakSubscription(holder, cb, message_type)


def test_get_missing_type_is_empty() -> None:
    assert SubscriptionStore().get(A) == ()


def test_add_and_get_by_declared_type() -> None:
    store = SubscriptionStore()
    h = Holder()
    sa, sb = _sub(h, A), _sub(h, B)
    store.add(sa)
    store.add(sb)

    assert store.get(A) == (sa,)
    assert store.get(B) == (sb,)
    assert len(store) == 2
    assert set(store.message_types()) == {A, B}


def test_get_returns_snapshot() -> None:
    store = SubscriptionStore()
    h1, h2 = Holder(), Holder()
    store.add(_sub(h1))
    snap = store.get(A)
    store.add(_sub(h2))

    assert len(snap) == 1
    assert len(store.get(A)) == 2


def test_remove_recipient_only_touches_that_recipient() -> None:
    store = SubscriptionStore()
    h1, h2 = Holder(), Holder()
    store.add(_sub(h1, A))
    store.add(_sub(h1, B))
    keep = _sub(h2, A)
    store.add(keep)

    assert store.remove_recipient(h1) == 2
    assert store.get(A) == (keep,)
    assert store.get(B) == ()
    assert store.remove_recipient(h1) == 0


def test_remove_none_recipient_leaves_collected_entries_alone() -> None:
    store = SubscriptionStore()
    h = Holder()
    store.add(_sub(h))
    del h
    gc.collect()

    assert store.remove_recipient(None) == 0
    assert len(store) == 1


def test_mark_dead_keeps_entry_until_cleanup() -> None:
    store = SubscriptionStore()
    h = Holder()
    sub = _sub(h)
    store.add(sub)

    assert store.mark_dead(h, h.on_a) == 1
    assert not sub.is_alive
    assert store.get(A) == (sub,)

    assert store.cleanup() == 1
    assert store.get(A) == ()


def test_mark_dead_restricted_to_message_type() -> None:
    store = SubscriptionStore()
    h = Holder()
    in_a = WeakSubscription(h, h.on_a, A)
    in_b = WeakSubscription(h, h.on_a, B)
    store.add(in_a)
    store.add(in_b)

    assert store.mark_dead(h, h.on_a, B) == 1
    assert in_a.is_alive
    assert not in_b.is_alive


def test_cleanup_drops_collected_and_empty_buckets() -> None:
    store = SubscriptionStore()
    gone, kept = Holder(), Holder()
    store.add(_sub(gone, A))
    store.add(_sub(gone, B))
    store.add(_sub(kept, B))
    del gone
    gc.collect()

    assert store.cleanup() == 2
    assert store.message_types() == (B,)
    assert len(store) == 1


def test_clear_removes_everything() -> None:
    store = SubscriptionStore()
    h = Holder()
    store.add(_sub(h, A))
    store.add(_sub(h, B))
    store.clear()

    assert len(store) == 0
    assert store.message_types() == ()
