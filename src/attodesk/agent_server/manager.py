"""Agent server lifecycle, at most one server process per workspace.

Status lives in a :class:`ServerRegistry`; the on-disk ``server.json`` lets a
later process find a server started by an earlier one.  Check-then-start is
serialised per workspace so concurrent callers share a single process.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import signal
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from attodesk.agent_server.ports import PortAllocator, is_pid_alive
from attodesk.agent_server.readiness import wait_for_ready
from attodesk.config.schema import AgentServerConfig
from attodesk.errors import BinaryNotFoundError, SchemaError, ServerLaunchError
from attodesk.events.log import EventLog
from attodesk.protocol.io import load_json, remove_file, write_json_atomic
from attodesk.protocol.models import (
    DEFAULT_STATE_DIR,
    SYSTEM_ACTOR,
    AgentServerInfo,
    state_layout,
)

logger = logging.getLogger(__name__)

SERVER_LOG_NAME = "agent-server.log"


@dataclass(slots=True, frozen=True)
class ServerStatus:
    state: str  # "unknown" | "starting" | "running" | "stopped" | "error"
    info: AgentServerInfo | None = None
    message: str | None = None

    @classmethod
    def unknown(cls) -> ServerStatus:
        return cls("unknown")

    @classmethod
    def starting(cls) -> ServerStatus:
        return cls("starting")

    @classmethod
    def running(cls, info: AgentServerInfo) -> ServerStatus:
        return cls("running", info=info)

    @classmethod
    def stopped(cls) -> ServerStatus:
        return cls("stopped")

    @classmethod
    def error(cls, message: str) -> ServerStatus:
        return cls("error", message=message)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"state": self.state}
        if self.info is not None:
            payload["info"] = self.info.to_dict()
        if self.message is not None:
            payload["message"] = self.message
        return payload


class ServerRegistry:
    """Status map, live process handles and per-workspace locks."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._status: dict[str, ServerStatus] = {}
        self._processes: dict[str, subprocess.Popen[bytes]] = {}

    def lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def status(self, key: str) -> ServerStatus:
        with self._guard:
            return self._status.get(key, ServerStatus.unknown())

    def set_status(self, key: str, status: ServerStatus) -> None:
        with self._guard:
            self._status[key] = status

    def process(self, key: str) -> subprocess.Popen[bytes] | None:
        with self._guard:
            return self._processes.get(key)

    def hold(self, key: str, process: subprocess.Popen[bytes]) -> None:
        with self._guard:
            self._processes[key] = process

    def release(self, key: str) -> subprocess.Popen[bytes] | None:
        with self._guard:
            return self._processes.pop(key, None)

    def held_keys(self) -> list[str]:
        with self._guard:
            return list(self._processes)


class AgentServerManager:
    def __init__(
        self,
        config: AgentServerConfig | None = None,
        *,
        state_dir: str = DEFAULT_STATE_DIR,
        registry: ServerRegistry | None = None,
        ports: PortAllocator | None = None,
        popen: Callable[..., subprocess.Popen[bytes]] = subprocess.Popen,
        record_events: bool = False,
    ) -> None:
        self.config = config or AgentServerConfig()
        self.state_dir = state_dir
        self.registry = registry or ServerRegistry()
        self.ports = ports or PortAllocator(
            self.config.port_start, self.config.port_end, self.config.host
        )
        self._popen = popen
        self._record_events = record_events

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get_or_start(self, workspace_path: str | Path) -> AgentServerInfo:
        key = _key(workspace_path)
        with self.registry.lock_for(key):
            self._reap_exited(key)
            status = self.registry.status(key)
            if status.state == "running" and status.info and is_pid_alive(status.info.pid):
                return status.info

            persisted = self._read_info(key)
            if persisted is not None and is_pid_alive(persisted.pid):
                self.registry.set_status(key, ServerStatus.running(persisted))
                logger.info("Reusing agent server pid %d for %s", persisted.pid, key)
                return persisted

            return self._start_locked(key)

    def start_server(self, workspace_path: str | Path) -> AgentServerInfo:
        key = _key(workspace_path)
        with self.registry.lock_for(key):
            return self._start_locked(key)

    def stop_server(self, workspace_path: str | Path) -> None:
        key = _key(workspace_path)
        with self.registry.lock_for(key):
            process = self.registry.release(key)
            pid: int | None = None
            if process is not None:
                pid = process.pid
                self._terminate(process)
            else:
                persisted = self._read_info(key)
                if persisted is not None and is_pid_alive(persisted.pid):
                    pid = persisted.pid
                    try:
                        os.kill(persisted.pid, signal.SIGTERM)
                    except ProcessLookupError:
                        logger.debug("Agent server pid %d already gone", persisted.pid)
            remove_file(self._info_path(key))
            self.registry.set_status(key, ServerStatus.stopped())
            logger.info("Agent server stopped for %s", key)
            self._record(key, "agent:server_stopped", {"pid": pid})

    def check_status(self, workspace_path: str | Path) -> ServerStatus:
        key = _key(workspace_path)
        lock = self.registry.lock_for(key)
        if lock.acquire(blocking=False):
            try:
                self._reap_exited(key)
            finally:
                lock.release()
        persisted = self._read_info(key)
        if persisted is None:
            current = self.registry.status(key)
            if current.state in ("starting", "error"):
                return current
            status = ServerStatus.stopped()
        elif is_pid_alive(persisted.pid):
            status = ServerStatus.running(persisted)
        else:
            logger.info("Removing stale server.json for dead pid %d", persisted.pid)
            remove_file(self._info_path(key))
            status = ServerStatus.stopped()
        self.registry.set_status(key, status)
        return status

    def stop_all(self) -> None:
        for key in self.registry.held_keys():
            try:
                self.stop_server(key)
            except OSError as exc:
                logger.warning("Failed to stop agent server for %s: %s", key, exc)

    def resolve_binary(self) -> str:
        explicit = self.config.binary_path
        if explicit:
            candidate = Path(explicit).expanduser()
            if candidate.is_file() and os.access(candidate, os.X_OK):
                return str(candidate)
            logger.warning("Configured agent server path %s is not executable", candidate)
        found = shutil.which(self.config.binary)
        if found:
            return found
        raise BinaryNotFoundError(self.config.binary)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _start_locked(self, key: str) -> AgentServerInfo:
        previous = self.registry.release(key)
        if previous is not None:
            logger.info("Replacing agent server pid %d for %s", previous.pid, key)
            self._terminate(previous)
            remove_file(self._info_path(key))

        self.registry.set_status(key, ServerStatus.starting())
        try:
            binary = self.resolve_binary()
            port = self.ports.allocate()
        except Exception as exc:
            self.registry.set_status(key, ServerStatus.error(str(exc)))
            raise

        layout = state_layout(key, self.state_dir)
        config_dir = layout["server_config"]
        config_dir.mkdir(parents=True, exist_ok=True)
        log_path = layout["logs"] / SERVER_LOG_NAME
        log_path.parent.mkdir(parents=True, exist_ok=True)
        offset = log_path.stat().st_size if log_path.exists() else 0

        env = dict(os.environ)
        if self.config.config_dir_env:
            env[self.config.config_dir_env] = str(config_dir)

        args = [a.format(host=self.config.host, port=port) for a in self.config.args]
        command = [binary, *args]
        logger.info("Starting agent server for %s: %s", key, " ".join(command))
        try:
            with log_path.open("ab") as output:
                process = self._popen(
                    command,
                    cwd=key,
                    env=env,
                    stdin=subprocess.DEVNULL,
                    stdout=output,
                    stderr=subprocess.STDOUT,
                    start_new_session=True,
                )
        except OSError as exc:
            message = f"Failed to launch {binary}: {exc}"
            self.registry.set_status(key, ServerStatus.error(message))
            raise ServerLaunchError(message) from exc

        url = wait_for_ready(
            process,
            self.config.host,
            port,
            timeout=self.config.ready_timeout_seconds,
            log_path=log_path,
            offset=offset,
        )
        info = AgentServerInfo(pid=process.pid, port=port, url=url)
        write_json_atomic(layout["server"], info.to_dict())
        self.registry.hold(key, process)
        self.registry.set_status(key, ServerStatus.running(info))
        logger.info("Agent server pid %d ready at %s", info.pid, info.url)
        self._record(key, "agent:server_started", {"pid": info.pid, "port": port, "url": url})
        return info

    def _reap_exited(self, key: str) -> None:
        """Forget a held child that has exited; polling it also reaps the zombie."""
        process = self.registry.process(key)
        if process is None or process.poll() is None:
            return
        self.registry.release(key)
        logger.info(
            "Agent server pid %d for %s exited with code %s", process.pid, key, process.returncode
        )
        persisted = self._read_info(key)
        if persisted is None or persisted.pid == process.pid:
            remove_file(self._info_path(key))
        self.registry.set_status(key, ServerStatus.stopped())

    def _terminate(self, process: subprocess.Popen[bytes]) -> None:
        if process.poll() is not None:
            return
        process.terminate()
        try:
            process.wait(timeout=self.config.terminate_timeout_seconds)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()

    def _info_path(self, key: str) -> Path:
        return state_layout(key, self.state_dir)["server"]

    def _read_info(self, key: str) -> AgentServerInfo | None:
        path = self._info_path(key)
        if not path.exists():
            return None
        try:
            return AgentServerInfo.from_dict(load_json(path))
        except (OSError, json.JSONDecodeError, SchemaError) as exc:
            logger.warning("Ignoring unreadable %s: %s", path, exc)
            return None

    def _record(self, key: str, event_type: str, data: dict[str, Any]) -> None:
        if not self._record_events:
            return
        EventLog(key, self.state_dir).append(event_type, SYSTEM_ACTOR, data)


def _key(workspace_path: str | Path) -> str:
    return str(Path(workspace_path).expanduser().resolve())
