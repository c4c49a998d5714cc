"""Command source reader: streams the stdout of a spawned process."""

import logging
import os
import shutil
import signal
import subprocess
import threading
from typing import Iterator

from logscout.config import SourceConfig
from logscout.errors import SourceTerminatedEarly, SourceUnavailable
from logscout.file_reader import decode_line
from logscout.reader import SourceReader

logger = logging.getLogger(__name__)


class CommandReader(SourceReader):
    """Runs ``command args...`` in its own process group and yields its output lines.

    Cancellation sends SIGTERM to the whole group and escalates to SIGKILL
    after kill_timeout. ``close()`` always reaps the child.
    """

    def __init__(self, source: SourceConfig, cancel_event: threading.Event,
                 poll_interval: float = 0.25, kill_timeout: float = 2.0):
        super().__init__(source, cancel_event, poll_interval)
        self._kill_timeout = kill_timeout
        self._proc: subprocess.Popen | None = None
        self._proc_lock = threading.Lock()
        self._killer: threading.Timer | None = None

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc else None

    @property
    def returncode(self) -> int | None:
        return self._proc.returncode if self._proc else None

    def open(self):
        command = (self.source.command or "").strip()
        if not command:
            raise SourceUnavailable(self.name, "command is empty")
        if shutil.which(command) is None:
            raise SourceUnavailable(self.name, f"command `{command}` not found")
        try:
            proc = subprocess.Popen(
                [command, *self.source.args],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            raise SourceUnavailable(self.name, f"failed to spawn command `{command}`: {e}") from e
        with self._proc_lock:
            self._proc = proc
        logger.info("Source `%s`: started `%s` (pid %d)", self.name, command, proc.pid)
        if self.cancelled:
            self._terminate()

    def lines(self) -> Iterator[str]:
        for raw in iter(self._proc.stdout.readline, b""):
            if self.cancelled:
                return
            yield decode_line(raw)

        returncode = self._proc.wait()
        if self.cancelled:
            return
        if returncode != 0:
            raise SourceTerminatedEarly(self.name, f"command exited with status {returncode}")
        logger.info("Source `%s`: command exited", self.name)

    def cancel(self):
        super().cancel()
        self._terminate()

    def _terminate(self):
        with self._proc_lock:
            proc = self._proc
            if proc is None or proc.poll() is not None:
                return
            self._signal_group(proc, signal.SIGTERM)
            if self._killer is None:
                self._killer = threading.Timer(self._kill_timeout, self._kill, args=(proc,))
                self._killer.daemon = True
                self._killer.start()

    def _kill(self, proc: subprocess.Popen):
        if proc.poll() is None:
            logger.warning("Source `%s`: pid %d ignored SIGTERM, killing", self.name, proc.pid)
            self._signal_group(proc, signal.SIGKILL)

    @staticmethod
    def _signal_group(proc: subprocess.Popen, sig: int):
        try:
            os.killpg(proc.pid, sig)
        except ProcessLookupError:
            pass

    def close(self):
        with self._proc_lock:
            proc = self._proc
        if proc is None:
            return
        if proc.poll() is None:
            self._terminate()
        try:
            proc.wait(timeout=self._kill_timeout * 2)
        except subprocess.TimeoutExpired:
            self._signal_group(proc, signal.SIGKILL)
            proc.wait()
        if self._killer:
            self._killer.cancel()
        if proc.stdout:
            proc.stdout.close()
