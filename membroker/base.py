from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, Optional

from membroker.subscription import WeakSubscription


class Broker(ABC):
    @abstractmethod
    def register(
        self,
        recipient: Any,
        callback: Callable[[Any], None],
        filter: Optional[Callable[[Any], bool]] = None,
        *,
        message_type: Optional[type] = None,
    ) -> WeakSubscription:
        """Deliver messages of the declared type (or any subtype) to callback while recipient lives."""
        raise NotImplementedError

    @abstractmethod
    def send(self, message: Any) -> None: ...

    @abstractmethod
    def send_many(self, messages: Iterable[Any]) -> None: ...

    @abstractmethod
    def unregister(
        self,
        recipient: Any,
        callback: Optional[Callable[[Any], None]] = None,
        *,
        message_type: Optional[type] = None,
    ) -> None:
        """Drop every registration of recipient, or only the one made with callback."""
        raise NotImplementedError

    @abstractmethod
    def cleanup(self) -> int:
        """Remove registrations whose recipients were collected or that were unregistered."""
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> None: ...
