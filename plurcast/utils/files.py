"""Owner-only, all-or-nothing file writes for credential material."""

import contextlib
import os
import secrets
import sys
from pathlib import Path

import structlog

log = structlog.get_logger(__name__)

PRIVATE_FILE_MODE = 0o600


def write_private_file(path: Path, data: bytes) -> None:
    """Atomically write ``data`` to ``path`` with owner-only permissions.

    The bytes go to a sibling temporary file that is created with mode 0600
    before anything is written, flushed to disk, and then renamed over the
    target. Readers see either the previous content or the new content,
    never a truncated secret.

    Args:
        path: Destination file
        data: Bytes to persist

    Raises:
        OSError: If the directory cannot be created or the write fails
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_name(f".{path.name}.{secrets.token_hex(4)}.tmp")

    fd = os.open(temp_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, PRIVATE_FILE_MODE)
    try:
        # umask may have stripped bits from the creation mode
        _restrict(temp_path)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_path, path)
    except BaseException:
        with contextlib.suppress(OSError):
            temp_path.unlink()
        raise


def file_mode(path: Path) -> int:
    """Return the permission bits of ``path``."""
    return path.stat().st_mode & 0o777


def _restrict(path: Path) -> None:
    if sys.platform == "win32":
        return
    try:
        os.chmod(path, PRIVATE_FILE_MODE)
    except OSError as e:
        log.warning("file_permissions_not_set", path=str(path), error=str(e))
