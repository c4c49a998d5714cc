"""File source reader with one-shot and follow (``tail -F``) modes."""

import logging
import os
import stat
import threading
from typing import Iterator

from logscout.config import SourceConfig
from logscout.errors import SourceTerminatedEarly, SourceUnavailable
from logscout.reader import SourceReader

logger = logging.getLogger(__name__)


def decode_line(raw: bytes) -> str:
    """Strip the line terminator and decode as UTF-8, replacing bad bytes."""
    if raw.endswith(b"\n"):
        raw = raw[:-1]
    if raw.endswith(b"\r"):
        raw = raw[:-1]
    return raw.decode("utf-8", errors="replace")


class FileTailReader(SourceReader):
    """Reads a log file from the start and optionally keeps following it.

    In follow mode it handles:
    - Appended content (woken by the file watcher or after poll_interval)
    - Log rotation (inode change at the path, reopen at offset 0)
    - File truncation (size below read position, seek back to 0)
    - The path vanishing for a while (waits for it to reappear)
    """

    def __init__(self, source: SourceConfig, cancel_event: threading.Event,
                 follow: bool = False, poll_interval: float = 0.25):
        super().__init__(source, cancel_event, poll_interval)
        self._follow = follow
        self._file = None
        self._inode = None

    @property
    def path(self) -> str | None:
        return self.source.path

    def open(self):
        if not self.path:
            raise SourceUnavailable(self.name, "no path configured")
        try:
            st = os.stat(self.path)
        except FileNotFoundError:
            raise SourceUnavailable(self.name, f"file not found at `{self.path}`")
        except OSError as e:
            raise SourceUnavailable(self.name, f"cannot access `{self.path}`: {e}") from e
        if not stat.S_ISREG(st.st_mode):
            raise SourceUnavailable(self.name, f"`{self.path}` is not a regular file")
        try:
            self._open_file()
        except OSError as e:
            raise SourceUnavailable(self.name, f"cannot open `{self.path}`: {e}") from e

    def _open_file(self):
        self._file = open(self.path, "rb")
        self._inode = os.fstat(self._file.fileno()).st_ino
        logger.debug("Opened %s (inode=%d)", self.path, self._inode)

    def close(self):
        if self._file:
            self._file.close()
            self._file = None

    def lines(self) -> Iterator[str]:
        if self._file is None:
            raise SourceTerminatedEarly(self.name, f"`{self.path}` was never opened")
        partial = b""
        while not self.cancelled:
            try:
                chunk = self._file.readline()
            except OSError as e:
                raise SourceTerminatedEarly(self.name, f"error reading `{self.path}`: {e}") from e

            if chunk:
                if chunk.endswith(b"\n"):
                    yield decode_line(partial + chunk)
                    partial = b""
                else:
                    # EOF in the middle of a line, hold it until the newline arrives
                    partial += chunk
                continue

            if not self._follow:
                if partial:
                    yield decode_line(partial)
                return

            old = self._check_rotation()
            if old is not None:
                yield from self._drain_rotated(old, partial)
                partial = b""
                continue

            if self._check_truncation():
                if partial:
                    yield decode_line(partial)
                    partial = b""
                continue

            self._wait_for_input()

    def _check_rotation(self):
        """Reopen the path if it now points at a different inode.

        Returns the old handle, still open, if rotated, else None.
        """
        try:
            current_inode = os.stat(self.path).st_ino
        except FileNotFoundError:
            return None
        if current_inode == self._inode:
            return None

        logger.info("Source `%s`: rotation detected for %s", self.name, self.path)
        old = self._file
        try:
            self._open_file()
        except FileNotFoundError:
            # Vanished again between stat and open, keep the old handle
            return None
        except OSError as e:
            raise SourceTerminatedEarly(self.name, f"cannot reopen `{self.path}`: {e}") from e
        return old

    def _drain_rotated(self, old, partial: bytes) -> Iterator[str]:
        """Yield whatever reached the rotated file after our last read."""
        try:
            with old:
                rest = partial + old.read()
        except OSError as e:
            raise SourceTerminatedEarly(self.name, f"error reading rotated `{self.path}`: {e}") from e
        *complete, tail = rest.split(b"\n")
        for raw in complete:
            yield decode_line(raw)
        if tail:
            yield decode_line(tail)

    def _check_truncation(self) -> bool:
        """Seek back to the start if the file shrank below our position."""
        try:
            size = os.fstat(self._file.fileno()).st_size
        except OSError as e:
            raise SourceTerminatedEarly(self.name, f"cannot stat `{self.path}`: {e}") from e
        if self._file.tell() > size:
            logger.info("Source `%s`: truncation detected for %s", self.name, self.path)
            self._file.seek(0)
            return True
        return False
