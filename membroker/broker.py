from __future__ import annotations

import inspect
import logging
import threading
import time
import typing
from datetime import timedelta
from typing import Any, Callable, Iterable, List, Literal, Optional, Tuple, Union

from membroker.base import Broker
from membroker.errors import DeliveryError, InvalidRegistration
from membroker.hierarchy import type_chain
from membroker.store import SubscriptionStore
from membroker.subscription import Callback, Filter, WeakSubscription

ErrorPolicy = Literal["raise", "log", "collect"]
_ERROR_POLICIES = ("raise", "log", "collect")

_POSITIONAL = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)


def declared_message_type(callback: Callback) -> type:
    """Read the message type from the annotation of the callback's first positional parameter."""
    name = getattr(callback, "__qualname__", repr(callback))
    try:
        sig = inspect.signature(callback, eval_str=True)
    except NameError as exc:
        raise InvalidRegistration(f"cannot resolve annotation of {name}; pass message_type=") from exc
    except (TypeError, ValueError) as exc:
        raise InvalidRegistration(f"cannot inspect {name}; pass message_type=") from exc

    params = [p for p in sig.parameters.values() if p.kind in _POSITIONAL]
    if not params:
        raise InvalidRegistration(f"{name} must take the message as its first argument")

    annotation = params[0].annotation
    if annotation is inspect.Parameter.empty:
        raise InvalidRegistration(f"{name} has no type annotation on {params[0].name!r}; pass message_type=")
    if annotation is Any:
        return object
    if typing.get_origin(annotation) is not None or not isinstance(annotation, type):
        raise InvalidRegistration(f"annotation {annotation!r} on {name} is not a class; pass message_type=")
    return annotation


class MessageBroker(Broker):
    """In-process pub/sub keyed on message type.

    Messages go to every live registration whose declared type is the message's
    class or one of its ancestors. Recipients are held weakly: once a recipient is
    collected its registrations go quiet, and ``cleanup()`` (explicit, or every
    ``cleanup_interval`` seconds during ``send``) reclaims them.

    Callbacks run synchronously on the sending thread. With ``error_policy="raise"``
    the first failing callback or filter aborts the rest of that send; ``"log"``
    logs and carries on; ``"collect"`` carries on and raises ``DeliveryError`` at
    the end.
    """

    def __init__(
        self,
        cleanup_interval: Union[float, timedelta, None] = None,
        error_policy: ErrorPolicy = "raise",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if isinstance(cleanup_interval, timedelta):
            cleanup_interval = cleanup_interval.total_seconds()
        if cleanup_interval is not None and cleanup_interval < 0:
            raise ValueError(f"cleanup_interval must be >= 0, got {cleanup_interval}")
        if error_policy not in _ERROR_POLICIES:
            raise ValueError(f"Unsupported error policy: {error_policy}")

        self._store = SubscriptionStore()
        self._cleanup_interval = cleanup_interval or None
        self._error_policy = error_policy
        self._clock = clock
        self._last_cleanup = clock()
        self._cleanup_lock = threading.Lock()
        self._log = logging.getLogger("broker")

    @property
    def subscription_count(self) -> int:
        return len(self._store)

    def register(
        self,
        recipient: Any,
        callback: Callback,
        filter: Optional[Filter] = None,
        *,
        message_type: Optional[type] = None,
    ) -> WeakSubscription:
        if recipient is None:
            raise InvalidRegistration("recipient must not be None")
        if not callable(callback):
            raise InvalidRegistration(f"callback must be callable, got {callback!r}")
        if filter is not None and not callable(filter):
            raise InvalidRegistration(f"filter must be callable, got {filter!r}")
        if message_type is None:
            message_type = declared_message_type(callback)
        elif not isinstance(message_type, type):
            raise InvalidRegistration(f"message_type must be a class, got {message_type!r}")

        sub = WeakSubscription(recipient, callback, message_type, filter)
        self._store.add(sub)
        self._log.debug(
            "registered",
            extra={"message_type": message_type.__name__, "recipient": type(recipient).__name__},
        )
        return sub

    def send(self, message: Any) -> None:
        try:
            self._dispatch(message)
        finally:
            if self._cleanup_interval is not None:
                self._maybe_cleanup()

    def send_many(self, messages: Iterable[Any]) -> None:
        for message in messages:
            self.send(message)

    def unregister(
        self,
        recipient: Any,
        callback: Optional[Callback] = None,
        *,
        message_type: Optional[type] = None,
    ) -> None:
        if callback is None:
            count = self._store.remove_recipient(recipient)
        else:
            if message_type is None:
                # Unannotated callbacks were registered with an explicit type; search every bucket.
                try:
                    message_type = declared_message_type(callback)
                except InvalidRegistration:
                    message_type = None
            count = self._store.mark_dead(recipient, callback, message_type)
        self._log.debug(
            "unregistered",
            extra={"recipient": type(recipient).__name__, "targeted": callback is not None, "count": count},
        )

    def cleanup(self) -> int:
        removed = self._store.cleanup()
        if removed:
            self._log.info("cleanup_complete", extra={"removed": removed})
        return removed

    def clear(self) -> None:
        self._store.clear()
        self._log.info("cleared")

    def _dispatch(self, message: Any) -> None:
        message_type = type(message)
        failures: List[Tuple[WeakSubscription, BaseException]] = []

        for tp in type_chain(message_type):
            for sub in self._store.get(tp):
                if not sub.is_alive:
                    continue
                try:
                    if sub.accepts(message):
                        sub.execute(message)
                except Exception as exc:
                    if self._error_policy == "raise":
                        raise
                    if self._error_policy == "log":
                        self._log.exception(
                            "handler_failed",
                            extra={"message_type": message_type.__name__, "declared_type": tp.__name__},
                        )
                    else:
                        failures.append((sub, exc))

        if failures:
            raise DeliveryError(message_type, failures)

    def _maybe_cleanup(self) -> None:
        interval = self._cleanup_interval
        if self._clock() - self._last_cleanup < interval:
            return
        if not self._cleanup_lock.acquire(blocking=False):
            return
        try:
            # Another sender may have swept since the unlocked check.
            now = self._clock()
            if now - self._last_cleanup < interval:
                return
            self._last_cleanup = now
            self.cleanup()
        except Exception:
            self._log.exception("auto_cleanup_failed")
        finally:
            self._cleanup_lock.release()

    def __repr__(self) -> str:
        return (
            f"MessageBroker(subscriptions={self.subscription_count}, "
            f"cleanup_interval={self._cleanup_interval}, error_policy={self._error_policy!r})"
        )
