"""Process-wide online/offline flag with transition listeners."""

from __future__ import annotations

from typing import Callable

from SciNecromancer.utils.log import log

Listener = Callable[[bool], None]


class ConnectivityState:
    """Online/offline flag toggled by probes and explicit signals.

    Listeners are called only on transitions, in subscription order.
    """

    def __init__(self, online: bool = True) -> None:
        self._online = online
        self._listeners: list[Listener] = []

    @property
    def is_online(self) -> bool:
        return self._online

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a transition listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_online(self, online: bool) -> None:
        if online == self._online:
            return
        self._online = online
        log.info("Connectivity changed: %s", "online" if online else "offline")
        for listener in list(self._listeners):
            try:
                listener(online)
            except Exception as e:  # noqa: BLE001 - one listener must not block the others
                log.error("Connectivity listener failed: %s", e)

    def probe(self, check: Callable[[], bool]) -> bool:
        """Run a reachability check and record its result."""
        try:
            reachable = bool(check())
        except Exception as e:  # noqa: BLE001 - a failing probe means offline
            log.debug("Connectivity probe failed: %s", e)
            reachable = False
        self.set_online(reachable)
        return reachable
