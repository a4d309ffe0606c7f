from __future__ import annotations

import weakref
from types import MethodType
from typing import Any, Callable, Optional

from membroker.errors import InvalidRegistration

Callback = Callable[[Any], None]
Filter = Callable[[Any], bool]


def _hold(fn: Callable[..., Any], recipient: Any) -> Callable[[], Optional[Callable[..., Any]]]:
    # The recipient itself, or a bound method of it, would pin the recipient; keep it weak.
    if fn is recipient:
        return weakref.ref(fn)
    if isinstance(fn, MethodType) and fn.__self__ is recipient:
        return weakref.WeakMethod(fn)
    return lambda: fn


class WeakSubscription:
    """A single registration: weak recipient, callback, optional filter, declared type.

    The subscription is alive while the recipient can still be reached from the rest
    of the program and ``mark_dead()`` has not been called.
    """

    def __init__(
        self,
        recipient: Any,
        callback: Callback,
        message_type: type,
        filter: Optional[Filter] = None,
    ) -> None:
        if recipient is None:
            raise InvalidRegistration("recipient must not be None")
        try:
            self._ref = weakref.ref(recipient)
        except TypeError as exc:
            raise InvalidRegistration(
                f"recipient of type {type(recipient).__name__} does not support weak references"
            ) from exc

        self.message_type = message_type
        self._callback = _hold(callback, recipient)
        self._filter = _hold(filter, recipient) if filter is not None else None
        self._dead = False

    @property
    def target(self) -> Any:
        return self._ref()

    @property
    def callback(self) -> Optional[Callback]:
        return self._callback()

    @property
    def is_alive(self) -> bool:
        return not self._dead and self._ref() is not None

    def mark_dead(self) -> None:
        self._dead = True

    def matches(self, recipient: Any, callback: Callback) -> bool:
        return self._ref() is recipient and self.callback == callback

    def accepts(self, message: Any) -> bool:
        if self._filter is None:
            return True
        fn = self._filter()
        return fn is not None and bool(fn(message))

    def execute(self, message: Any) -> None:
        callback = self.callback
        if callback is not None and self.is_alive:
            callback(message)

    def __repr__(self) -> str:
        state = "alive" if self.is_alive else "dead"
        return f"<WeakSubscription {self.message_type.__name__} target={self._ref()!r} {state}>"
