"""Tests for plurcast/utils: private file writes, locking and terminal detection."""

import os
import sys
import threading
import time
from unittest.mock import MagicMock, patch

import pytest

from plurcast.utils.files import PRIVATE_FILE_MODE, file_mode, write_private_file
from plurcast.utils.locks import ReadWriteLock
from plurcast.utils.terminal import stdin_is_tty


class TestWritePrivateFile:
    """Test write_private_file."""

    def test_writes_content(self, tmp_path):
        """Test bytes land in the target file."""
        target = tmp_path / "secret.enc"

        write_private_file(target, b"payload")

        assert target.read_bytes() == b"payload"

    def test_creates_parent_directories(self, tmp_path):
        """Test missing directories are created."""
        target = tmp_path / "a" / "b" / "secret.enc"

        write_private_file(target, b"payload")

        assert target.exists()

    @pytest.mark.skipif(sys.platform == "win32", reason="Permission test only for Unix")
    def test_owner_only_permissions(self, tmp_path):
        """Test the file is created with mode 0600 even under a permissive umask."""
        target = tmp_path / "secret.enc"
        previous = os.umask(0)
        try:
            write_private_file(target, b"payload")
        finally:
            os.umask(previous)

        assert file_mode(target) == PRIVATE_FILE_MODE

    @pytest.mark.skipif(sys.platform == "win32", reason="Permission test only for Unix")
    def test_overwrite_tightens_permissions(self, tmp_path):
        """Test replacing a world-readable file leaves an owner-only file."""
        target = tmp_path / "secret.enc"
        target.write_bytes(b"old")
        os.chmod(target, 0o644)

        write_private_file(target, b"new")

        assert target.read_bytes() == b"new"
        assert file_mode(target) == PRIVATE_FILE_MODE

    def test_no_temp_files_left(self, tmp_path):
        """Test the temporary file is renamed away."""
        write_private_file(tmp_path / "secret.enc", b"payload")

        assert [p.name for p in tmp_path.iterdir()] == ["secret.enc"]

    def test_failed_write_keeps_previous_content(self, tmp_path):
        """Test a failure before the rename leaves the old file and no temp file."""
        target = tmp_path / "secret.enc"
        target.write_bytes(b"old")

        with patch("plurcast.utils.files.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError, match="disk full"):
                write_private_file(target, b"new")

        assert target.read_bytes() == b"old"
        assert [p.name for p in tmp_path.iterdir()] == ["secret.enc"]


class TestReadWriteLock:
    """Test ReadWriteLock."""

    def test_readers_share(self):
        """Test several readers hold the lock at once."""
        lock = ReadWriteLock()
        inside = threading.Barrier(3, timeout=5)
        errors = []

        def reader():
            try:
                with lock.read():
                    inside.wait()
            except threading.BrokenBarrierError as e:
                errors.append(e)

        threads = [threading.Thread(target=reader) for _ in range(3)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert errors == []

    def test_writer_excludes_readers(self):
        """Test a reader waits for the writer to finish."""
        lock = ReadWriteLock()
        events = []

        def reader():
            with lock.read():
                events.append("read")

        with lock.write():
            thread = threading.Thread(target=reader)
            thread.start()
            time.sleep(0.05)
            events.append("write-done")

        thread.join(timeout=5)

        assert events == ["write-done", "read"]

    def test_released_on_exception(self):
        """Test the lock is released when the body raises."""
        lock = ReadWriteLock()

        with pytest.raises(RuntimeError):
            with lock.write():
                raise RuntimeError("boom")

        with lock.write():
            pass


class TestStdinIsTty:
    """Test stdin_is_tty."""

    def test_tty(self):
        """Test an interactive stdin."""
        fake = MagicMock()
        fake.isatty.return_value = True

        with patch("plurcast.utils.terminal.sys.stdin", fake):
            assert stdin_is_tty() is True

    def test_pipe(self):
        """Test a piped stdin."""
        fake = MagicMock()
        fake.isatty.return_value = False

        with patch("plurcast.utils.terminal.sys.stdin", fake):
            assert stdin_is_tty() is False

    def test_missing_stdin(self):
        """Test a detached process."""
        with patch("plurcast.utils.terminal.sys.stdin", None):
            assert stdin_is_tty() is False

    def test_closed_stdin(self):
        """Test a closed stream."""
        fake = MagicMock()
        fake.isatty.side_effect = ValueError("I/O operation on closed file")

        with patch("plurcast.utils.terminal.sys.stdin", fake):
            assert stdin_is_tty() is False
