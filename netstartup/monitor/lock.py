"""Single-instance lock file holding the owner's PID."""

from __future__ import annotations

import os
from pathlib import Path
from types import TracebackType
from typing import Self

from loguru import logger

from netstartup.exceptions import LockError


def read_holder_pid(path: Path) -> int | None:
    try:
        return int(path.read_text().strip())
    except (OSError, ValueError):
        return None


class InstanceLock:
    """Exclusive lock file, created atomically (``O_CREAT | O_EXCL``).

    An existing lock file is never modified; acquiring fails with :class:`LockError`.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self.acquired = False

    def acquire(self) -> Self:
        """Create the lock file and write our PID into it.

        Raises:
            LockError: If the file already exists or cannot be created and written.
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            holder = read_holder_pid(self.path)
            raise LockError(
                f"Another instance is already running (PID: {holder if holder is not None else 'unknown'}, lock: {self.path})",
                path=str(self.path),
                holder_pid=holder,
            ) from None
        except OSError as e:
            raise LockError(f"Cannot create lock file {self.path}: {e}", path=str(self.path)) from e
        try:
            with os.fdopen(fd, "w") as fh:
                fh.write(f"{os.getpid()}\n")
        except OSError as e:
            self.path.unlink(missing_ok=True)
            raise LockError(f"Cannot write lock file {self.path}: {e}", path=str(self.path)) from e
        self.acquired = True
        logger.debug(f"Acquired lock {self.path}")
        return self

    def release(self) -> None:
        if not self.acquired:
            return
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove lock file {self.path}: {e}")
        self.acquired = False
        logger.debug(f"Released lock {self.path}")

    def __enter__(self) -> Self:
        return self.acquire()

    def __exit__(
        self, exc_type: type[BaseException] | None, exc_val: BaseException | None, exc_tb: TracebackType | None
    ) -> None:
        self.release()
