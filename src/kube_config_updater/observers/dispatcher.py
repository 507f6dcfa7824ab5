# src/kube_config_updater/observers/dispatcher.py
from __future__ import annotations
import logging
import threading
from typing import List, Optional, Protocol
from .events import BaseEvent

log = logging.getLogger("kube_config_updater")


class Observer(Protocol):
    """Called from host worker threads, one event at a time."""
    def notify(self, event: BaseEvent) -> None: ...


class EventBus:
    def __init__(self, observers: Optional[List[Observer]] = None):
        self._observers = observers or []
        self._lock = threading.Lock()

    def emit(self, event: BaseEvent) -> None:
        with self._lock:
            for ob in self._observers:
                try:
                    ob.notify(event)
                except Exception as exc:
                    log.warning("Observer %s failed on %s: %s", type(ob).__name__, type(event).__name__, exc)
