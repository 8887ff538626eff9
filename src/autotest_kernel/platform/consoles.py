from __future__ import annotations

from typing import Protocol

from autotest_kernel.platform.backend import BackendClient


class ConsoleOwner(Protocol):
    activated_consoles: list[str]


class ConsoleService:
    # Console hooks the scheduler and unit bodies call; switching itself happens in the backend.
    # Consoles first activated after the last milestone checkpoint are recorded on that milestone:
    # they are the ones a restore leaves stale.
    def __init__(self, backend: BackendClient) -> None:
        self._backend = backend
        self._activated: set[str] = set()
        self.milestone: ConsoleOwner | None = None
        self.selected_console: str | None = None

    @property
    def activated(self) -> frozenset[str]:
        return frozenset(self._activated)

    def select_console(self, console: str) -> object:
        ret = self._backend.select_console(console)
        self.selected_console = console
        if console not in self._activated:
            self._activated.add(console)
            milestone = self.milestone
            if milestone is not None:
                milestone.activated_consoles.append(console)
        return ret

    def reset_console(self, console: str) -> object:
        self._activated.discard(console)
        return self._backend.reset_console(console)

    def rollback_activated_consoles(self, milestone: ConsoleOwner, console: str | None) -> None:
        # The backend only resets console state; activation happens on next select.
        for activated in list(milestone.activated_consoles):
            self.reset_console(activated)
        milestone.activated_consoles.clear()
        if console is not None:
            self.select_console(console)
