from __future__ import annotations

from autotest_kernel.observability.diagnostics import Diagnostics
from autotest_kernel.platform.backend import BackendClient
from autotest_kernel.platform.consoles import ConsoleService

LAST_GOOD = "lastgood"
VMWARE_FIXUP = "vmware_fixup"
SNAPSHOTS = "snapshots"


class CheckpointManager:
    # Named checkpoints stored by the backend. save/restore log and do nothing until probe()
    # has seen the backend confirm support.
    def __init__(self, backend: BackendClient, consoles: ConsoleService, diagnostics: Diagnostics) -> None:
        self._backend = backend
        self._consoles = consoles
        self._diag = diagnostics
        self._supported: bool | None = None

    @property
    def supported(self) -> bool:
        return self._supported is True

    def probe(self) -> bool:
        if self._supported is None:
            self._supported = self._backend.can_handle(SNAPSHOTS)
            self._diag.diag("Snapshots are " + ("" if self._supported else "not ") + "supported")
        return self._supported

    def save(self, name: str) -> None:
        if not self.supported:
            self._diag.diag(f"Snapshots are not supported, not creating {name}")
            return
        self._diag.diag(f"Creating a VM snapshot {name}")
        self._backend.save_snapshot(name)

    def restore(self, name: str) -> str | None:
        if not self.supported:
            self._diag.diag(f"Snapshots are not supported, not loading {name}")
            return None
        self._diag.diag(f"Loading a VM snapshot {name}")
        hint = self._backend.load_snapshot(name)
        if hint == VMWARE_FIXUP:
            # The screen and serial capture go stale across a revert on this backend.
            self._consoles.select_console("sut")
            self._backend.stop_serial_grab()
            self._backend.start_serial_grab()
        elif hint is not None:
            self._diag.diag(f"Ignoring unknown snapshot hint {hint}", snapshot=name)
        return hint
