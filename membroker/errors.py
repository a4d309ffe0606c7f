from __future__ import annotations

from typing import TYPE_CHECKING, List, Tuple

if TYPE_CHECKING:
    from membroker.subscription import WeakSubscription


class BrokerError(Exception):
    pass


class InvalidRegistration(BrokerError, ValueError):
    """Raised when register() is called with arguments that can never be delivered to."""


class DeliveryError(BrokerError):
    """One or more callbacks failed during a send under the ``collect`` error policy."""

    def __init__(self, message_type: type, failures: List[Tuple["WeakSubscription", BaseException]]) -> None:
        self.message_type = message_type
        self.failures = failures
        super().__init__(f"{len(failures)} delivery failure(s) for {message_type.__name__}")
