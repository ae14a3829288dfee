"""In-memory holder for the master password.

Security Model:
- The password lives in a mutable ``bytearray`` owned by one
  ``MasterPassword`` instance, never in a module global.
- ``clear()`` overwrites the buffer with zeros before releasing it. It runs
  on explicit teardown, when the holder is garbage collected, and at
  interpreter exit through the credential manager's finalizer.
- This is a mitigation, not a guarantee. Python may already have copied the
  password (the ``str`` passed to ``set``, prompt buffers, interned
  objects), and application code cannot scrub those copies or protect
  against inspection of process memory.
"""

from collections.abc import Callable
from typing import TypeVar

from plurcast.exceptions import MasterPasswordNotSetError, WeakPasswordError
from plurcast.utils.locks import ReadWriteLock

T = TypeVar("T")

MIN_PASSWORD_LENGTH = 8


class MasterPassword:
    """Lock-guarded, wipeable master password.

    Example:
        >>> password = MasterPassword()
        >>> password.set("correct horse battery")
        >>> key = password.use(lambda secret: kdf.derive(secret))
        >>> password.clear()
    """

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._buffer: bytearray | None = None

    def __repr__(self) -> str:
        return f"MasterPassword(set={self.is_set})"

    def __del__(self) -> None:
        self.clear()

    @property
    def is_set(self) -> bool:
        return self._buffer is not None

    def set(self, password: str) -> None:
        """Replace the held password.

        Raises:
            WeakPasswordError: If the password is shorter than 8 characters
        """
        if len(password) < MIN_PASSWORD_LENGTH:
            raise WeakPasswordError(MIN_PASSWORD_LENGTH)

        buffer = bytearray(password.encode("utf-8"))
        with self._lock.write():
            _wipe(self._buffer)
            self._buffer = buffer

    def use(self, fn: Callable[[bytearray], T]) -> T:
        """Call ``fn`` with the password buffer under a read lock.

        ``fn`` must not keep a reference to the buffer.

        Raises:
            MasterPasswordNotSetError: If no password has been set
        """
        with self._lock.read():
            if self._buffer is None:
                raise MasterPasswordNotSetError()
            return fn(self._buffer)

    def clear(self) -> None:
        """Overwrite and drop the held password. Safe to call repeatedly."""
        # __del__ may run on a partially constructed instance
        if not hasattr(self, "_lock"):
            return
        with self._lock.write():
            _wipe(self._buffer)
            self._buffer = None


def _wipe(buffer: bytearray | None) -> None:
    if buffer is None:
        return
    for i in range(len(buffer)):
        buffer[i] = 0
