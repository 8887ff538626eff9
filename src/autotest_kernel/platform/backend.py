from __future__ import annotations

from autotest_kernel.transport.json_channel import ChannelProtocolError, JsonChannel


class BackendClient:
    # Synchronous {"cmd": ...} -> {"ret": ...} client; one request in flight, no request ids.
    def __init__(self, channel: JsonChannel) -> None:
        self._channel = channel

    @property
    def channel(self) -> JsonChannel:
        return self._channel

    def query(self, cmd: str, args: dict[str, object] | None = None) -> object:
        message = dict(args or {})
        message["cmd"] = cmd
        response = self._channel.request(message)
        if "ret" not in response and response:
            raise ChannelProtocolError(f"backend response to '{cmd}' has no 'ret' field")
        return response.get("ret")

    def can_handle(self, function: str) -> bool:
        return bool(self.query("backend_can_handle", {"function": function}))

    def save_snapshot(self, name: str) -> object:
        return self.query("backend_save_snapshot", {"name": name})

    def load_snapshot(self, name: str) -> str | None:
        hint = self.query("backend_load_snapshot", {"name": name})
        return hint if isinstance(hint, str) and hint else None

    def stop_serial_grab(self) -> object:
        return self.query("backend_stop_serial_grab")

    def start_serial_grab(self) -> object:
        return self.query("backend_start_serial_grab")

    def save_memory_dump(self, filename: str) -> object:
        return self.query("backend_save_memory_dump", {"filename": filename})

    def select_console(self, console: str) -> object:
        return self.query("backend_select_console", {"testapi_console": console})

    def reset_console(self, console: str) -> object:
        return self.query("backend_reset_console", {"testapi_console": console})

    def stop_vm(self) -> object:
        return self.query("backend_stop_vm")

    def set_current_test(self, name: str | None = None, full_name: str | None = None) -> object:
        if name is None:
            return self.query("set_current_test")
        return self.query("set_current_test", {"name": name, "full_name": full_name})

    def tests_done(self, *, died: bool, completed: bool) -> None:
        # Fire-and-forget: the backend does not answer the final status.
        self._channel.send_json({"cmd": "tests_done", "died": died, "completed": completed})

    def close(self) -> None:
        self._channel.close()
