from __future__ import annotations

import gc
import importlib
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

import typer

from membroker.broker import MessageBroker
from membroker.config import AppConfig, load_config, make_broker
from membroker.hierarchy import type_chain
from membroker.logging_setup import setup_logging


app = typer.Typer(add_completion=False)


@dataclass(frozen=True)
class Tick:
    seq: int


class _Counter:
    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.delivered = 0


class _Recipient:
    def __init__(self, counter: _Counter) -> None:
        self._counter = counter

    def on_tick(self, msg: Tick) -> None:
        with self._counter.lock:
            self._counter.delivered += 1


def _import_class(target: str) -> type:
    module_name, _, attr = target.rpartition(".")
    try:
        module = importlib.import_module(module_name or "builtins")
        obj = getattr(module, attr)
    except (ImportError, AttributeError) as exc:
        raise typer.BadParameter(f"cannot import {target}: {exc}") from exc
    if not isinstance(obj, type):
        raise typer.BadParameter(f"{target} is not a class")
    return obj


def _send_parallel(broker: MessageBroker, start: int, count: int, threads: int) -> None:
    def worker(offset: int) -> None:
        for seq in range(start + offset, start + count, threads):
            broker.send(Tick(seq))

    with ThreadPoolExecutor(max_workers=threads) as pool:
        for fut in [pool.submit(worker, i) for i in range(threads)]:
            fut.result()


@app.command()
def chain(target: str = typer.Argument(..., help="Dotted class path, e.g. collections.OrderedDict")) -> None:
    """Print the types a message of TARGET is dispatched under, in order."""
    try:
        cls = _import_class(target)
    except typer.BadParameter as exc:
        typer.echo(str(exc))
        raise typer.Exit(code=1)
    for tp in type_chain(cls):
        typer.echo(f"{tp.__module__}.{tp.__qualname__}")


@app.command()
def bench(
    config: Optional[str] = typer.Option(None, "--config", "-c"),
    messages: int = typer.Option(10_000, "--messages", "-n"),
    subscribers: int = typer.Option(10, "--subscribers", "-s"),
    threads: int = typer.Option(4, "--threads", "-t"),
) -> None:
    """Send messages from several threads while half the subscribers go away midway."""
    cfg: AppConfig = load_config(config) if config else AppConfig()
    setup_logging(cfg.log)
    log = logging.getLogger("bench")

    if messages < 0 or subscribers < 0 or threads < 1:
        typer.echo("messages and subscribers must be >= 0, threads >= 1")
        raise typer.Exit(code=1)

    broker = make_broker(cfg)
    counter = _Counter()
    recipients = [_Recipient(counter) for _ in range(subscribers)]
    for r in recipients:
        broker.register(r, r.on_tick)

    half = messages // 2
    t0 = time.perf_counter()
    _send_parallel(broker, 0, half, threads)
    del recipients[: subscribers // 2]
    gc.collect()
    _send_parallel(broker, half, messages - half, threads)
    elapsed_ms = (time.perf_counter() - t0) * 1000.0

    removed = broker.cleanup()
    log.info(
        "bench_complete",
        extra={"messages": messages, "delivered": counter.delivered, "elapsed_ms": round(elapsed_ms, 3)},
    )
    typer.echo(
        f"sent={messages} delivered={counter.delivered} elapsed_ms={elapsed_ms:.1f} "
        f"removed={removed} subscriptions={broker.subscription_count}"
    )


if __name__ == "__main__":
    app()
