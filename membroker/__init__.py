from membroker.base import Broker
from membroker.broker import MessageBroker
from membroker.config import AppConfig, BrokerConfig, LogConfig, load_config, make_broker
from membroker.errors import BrokerError, DeliveryError, InvalidRegistration
from membroker.hierarchy import type_chain
from membroker.store import SubscriptionStore
from membroker.subscription import WeakSubscription

__all__ = [
    "AppConfig",
    "Broker",
    "BrokerConfig",
    "BrokerError",
    "DeliveryError",
    "InvalidRegistration",
    "LogConfig",
    "MessageBroker",
    "SubscriptionStore",
    "WeakSubscription",
    "load_config",
    "make_broker",
    "type_chain",
]
