from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field

from membroker.broker import MessageBroker


class LogConfig(BaseModel):
    level: str = "INFO"
    json_logs: bool = Field(default=True, alias="json")
    file: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class BrokerConfig(BaseModel):
    cleanup_interval_seconds: Optional[float] = Field(default=None, ge=0)
    error_policy: Literal["raise", "log", "collect"] = "raise"


class AppConfig(BaseModel):
    log: LogConfig = Field(default_factory=LogConfig)
    broker: BrokerConfig = Field(default_factory=BrokerConfig)


def load_config(path: str | Path) -> AppConfig:
    p = Path(path)
    data = yaml.safe_load(p.read_text(encoding="utf-8"))
    return AppConfig.model_validate(data or {})


def make_broker(cfg: Union[BrokerConfig, AppConfig, None] = None) -> MessageBroker:
    if cfg is None:
        cfg = BrokerConfig()
    elif isinstance(cfg, AppConfig):
        cfg = cfg.broker
    return MessageBroker(cleanup_interval=cfg.cleanup_interval_seconds, error_policy=cfg.error_policy)
