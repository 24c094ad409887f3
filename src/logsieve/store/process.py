"""PID file and process management for the run-managed local store.

Handles:
- One instance directory per port (data, PID file, daemon log)
- Refusing to start over a live instance that owns the port
- Stale PID file detection and cleanup
- Idempotent shutdown of the managed daemon and its sibling instances
"""

from __future__ import annotations

import json
import os
import shutil
import signal
import socket
import subprocess
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import IO, List, Optional

from ..config import LocalStoreOptions, StoreConnectionInfo
from ..exceptions import ErrorCode, StoreProcessError
from ..logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_HOST = "127.0.0.1"
_PID_FILE_NAME = "store.pid"
_POLL_INTERVAL_SECONDS = 0.1
_TERMINATE_TIMEOUT_SECONDS = 10.0


@dataclass
class StoreInstanceInfo:
    """Information about a running (or formerly running) store daemon."""

    pid: int
    port: int
    data_dir: str

    def to_dict(self) -> dict:
        return {
            "pid": self.pid,
            "port": self.port,
            "data_dir": self.data_dir,
        }

    @classmethod
    def from_dict(cls, data: dict) -> StoreInstanceInfo:
        return cls(
            pid=data["pid"],
            port=data["port"],
            data_dir=data["data_dir"],
        )


def _pid_file_path(instance_dir: Path) -> Path:
    return instance_dir / _PID_FILE_NAME


def _is_process_alive(pid: int) -> bool:
    """Check if a process with the given PID is still running."""
    try:
        os.kill(pid, 0)  # Signal 0 = check existence, don't actually kill
        return True
    except ProcessLookupError:
        return False
    except PermissionError:
        # Process exists but we can't signal it (different user)
        return True
    except OSError:
        return False


def _is_port_in_use(host: str, port: int) -> bool:
    """Check if a port is currently bound."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.settimeout(1)
    try:
        sock.connect((host, port))
        return True
    except (ConnectionRefusedError, OSError):
        return False
    finally:
        sock.close()


def read_pid_file(instance_dir: Path) -> StoreInstanceInfo | None:
    """Read and parse an instance's PID file.

    Returns None if the file doesn't exist or is malformed.
    """
    pid_path = _pid_file_path(instance_dir)
    if not pid_path.exists():
        return None

    try:
        data = json.loads(pid_path.read_text())
        return StoreInstanceInfo.from_dict(data)
    except (json.JSONDecodeError, KeyError, TypeError) as exc:
        logger.warning("Malformed PID file at %s: %s", pid_path, exc)
        return None


def write_pid_file(instance_dir: Path, info: StoreInstanceInfo) -> Path:
    pid_path = _pid_file_path(instance_dir)
    pid_path.parent.mkdir(parents=True, exist_ok=True)
    pid_path.write_text(json.dumps(info.to_dict(), indent=2) + "\n")
    logger.debug("PID file written: %s", pid_path)
    return pid_path


def remove_pid_file(instance_dir: Path) -> bool:
    """Remove an instance's PID file.

    Returns True if file was removed, False if it didn't exist.
    """
    pid_path = _pid_file_path(instance_dir)
    try:
        pid_path.unlink()
        logger.debug("PID file removed: %s", pid_path)
        return True
    except FileNotFoundError:
        return False


def find_instance_dirs(root: Path) -> List[Path]:
    """Instance directories under ``root`` that carry a PID file."""
    if not root.is_dir():
        return []
    return sorted(p.parent for p in root.glob(f"*/{_PID_FILE_NAME}"))


def _signal_instance(info: StoreInstanceInfo) -> bool:
    """Send SIGTERM to a sibling daemon. Returns True if a signal was sent."""
    if info.pid == os.getpid():
        return False
    try:
        os.kill(info.pid, signal.SIGTERM)
        logger.info("Sent SIGTERM to local store on port %d (PID %d)", info.port, info.pid)
        return True
    except ProcessLookupError:
        return False
    except PermissionError:
        logger.warning("Cannot signal process %d (permission denied)", info.pid)
        return False


class LocalStoreProcessManager:
    """Owns the single local store daemon of a run.

    No other component may terminate the process; ``stop()`` is the only
    shutdown path and is safe to call any number of times.
    """

    def __init__(
        self,
        options: LocalStoreOptions,
        root_dir: Path,
        host: str = DEFAULT_HOST,
    ) -> None:
        self.options = options
        self.root_dir = Path(root_dir)
        self.host = host
        self._process: Optional[subprocess.Popen] = None
        self._log_handle: Optional[IO[bytes]] = None

    @property
    def port(self) -> int:
        return self.options.port

    @property
    def instance_dir(self) -> Path:
        return self.root_dir / str(self.port)

    @property
    def data_dir(self) -> Path:
        return self.instance_dir / "data"

    @property
    def log_path(self) -> Path:
        return self.instance_dir / "store.log"

    # ── lifecycle ─────────────────────────────────────────────────

    def purge_data(self) -> None:
        """Remove this instance's prior on-disk data."""
        if self.is_running():
            raise StoreProcessError(self.port, "cannot purge data of a running store")
        if self.data_dir.exists():
            logger.info("Purging local store data at %s..", self.data_dir)
            shutil.rmtree(self.data_dir)

    def start(self) -> StoreConnectionInfo:
        """Launch the daemon and wait for it to bind its port.

        Raises:
            StoreProcessError: If the port is owned by a live process, or the
                daemon exits or fails to bind before the startup timeout
        """
        if self.is_running():
            return self.connection_info()

        self._claim_port()

        if self.options.purge_on_startup:
            self.purge_data()

        self.data_dir.mkdir(parents=True, exist_ok=True)
        command = self._launch_command()
        logger.info("Starting local store on port %d..", self.port)
        logger.debug("Local store command: %s", " ".join(command))

        self._log_handle = open(self.log_path, "ab")
        try:
            self._process = subprocess.Popen(
                command,
                stdout=self._log_handle,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )
        except OSError as exc:
            self._close_log()
            raise StoreProcessError(self.port, f"failed to launch {command[0]}: {exc}") from exc

        write_pid_file(
            self.instance_dir,
            StoreInstanceInfo(pid=self._process.pid, port=self.port, data_dir=str(self.data_dir)),
        )
        self._wait_until_bound()
        logger.info("Local store running (PID %d).", self._process.pid)
        return self.connection_info()

    def connection_info(self) -> StoreConnectionInfo:
        return StoreConnectionInfo(data_dir=str(self.data_dir), host=self.host, port=self.port)

    def is_running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def stop_all(self) -> None:
        """Terminate the managed daemon and every sibling local store instance."""
        if self._process is not None:
            self._terminate(self._process)
            self._process = None
            remove_pid_file(self.instance_dir)
        self._close_log()

        for instance_dir in find_instance_dirs(self.root_dir):
            info = read_pid_file(instance_dir)
            if info is not None and _is_process_alive(info.pid):
                _signal_instance(info)
            remove_pid_file(instance_dir)

    def stop(self) -> None:
        """Shut down the local store if it is currently running."""
        if self.is_running():
            logger.info("Shutting down local store process..")
            self.stop_all()
        elif self._process is not None:
            # Exited on its own; only release what start() acquired
            logger.warning(
                "Local store process exited on its own (code %s).", self._process.returncode
            )
            self._process = None
            remove_pid_file(self.instance_dir)
            self._close_log()

    def __enter__(self) -> StoreConnectionInfo:
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    # ── internals ─────────────────────────────────────────────────

    def _claim_port(self) -> None:
        """Enforce one instance per port; clean up stale PID files."""
        existing = read_pid_file(self.instance_dir)
        if existing is not None:
            if _is_process_alive(existing.pid) and _is_port_in_use(self.host, self.port):
                raise StoreProcessError(
                    self.port,
                    f"already served by local store PID {existing.pid}",
                    code=ErrorCode.LS201,
                )
            logger.info("Stale PID file found (process %d is dead), cleaning up", existing.pid)
            remove_pid_file(self.instance_dir)

        if _is_port_in_use(self.host, self.port):
            raise StoreProcessError(
                self.port, "port is in use by another process", code=ErrorCode.LS201
            )

    def _launch_command(self) -> List[str]:
        if self.options.command:
            return [
                part.format(port=self.port, data_dir=self.data_dir, host=self.host)
                for part in self.options.command
            ]
        return [
            sys.executable,
            "-m",
            "logsieve.store.daemon",
            "--host",
            self.host,
            "--port",
            str(self.port),
            "--data-dir",
            str(self.data_dir),
        ]

    def _wait_until_bound(self) -> None:
        assert self._process is not None
        deadline = time.monotonic() + self.options.startup_timeout_seconds
        while time.monotonic() < deadline:
            if self._process.poll() is not None:
                returncode = self._process.returncode
                self._process = None
                remove_pid_file(self.instance_dir)
                self._close_log()
                raise StoreProcessError(
                    self.port,
                    f"process exited with code {returncode} (see {self.log_path})",
                )
            if _is_port_in_use(self.host, self.port):
                return
            time.sleep(_POLL_INTERVAL_SECONDS)

        self.stop_all()
        raise StoreProcessError(
            self.port,
            f"did not bind within {self.options.startup_timeout_seconds}s",
            code=ErrorCode.LS202,
        )

    @staticmethod
    def _terminate(process: subprocess.Popen) -> None:
        if process.poll() is not None:
            return
        process.terminate()
        try:
            process.wait(timeout=_TERMINATE_TIMEOUT_SECONDS)
        except subprocess.TimeoutExpired:
            logger.warning("Local store PID %d ignored SIGTERM, killing", process.pid)
            process.kill()
            process.wait()

    def _close_log(self) -> None:
        if self._log_handle is not None:
            self._log_handle.close()
            self._log_handle = None
