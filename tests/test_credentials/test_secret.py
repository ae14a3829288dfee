"""Tests for the in-memory master password holder."""

import threading

import pytest

from plurcast.credentials import MasterPassword
from plurcast.exceptions import MasterPasswordNotSetError, WeakPasswordError


class TestMasterPassword:
    """Test MasterPassword functionality."""

    def test_not_set_initially(self):
        """Test a new holder is empty."""
        holder = MasterPassword()

        assert holder.is_set is False
        with pytest.raises(MasterPasswordNotSetError):
            holder.use(bytes)

    def test_set_and_use(self):
        """Test the callback receives the UTF-8 password bytes."""
        holder = MasterPassword()
        holder.set("correct horse")

        assert holder.use(bytes) == b"correct horse"

    @pytest.mark.parametrize("password", ["", "1234567"])
    def test_weak_password_rejected(self, password):
        """Test passwords under 8 characters are rejected."""
        holder = MasterPassword()

        with pytest.raises(WeakPasswordError):
            holder.set(password)

        assert holder.is_set is False

    def test_minimum_length_accepted(self):
        """Test exactly 8 characters is accepted."""
        holder = MasterPassword()
        holder.set("12345678")

        assert holder.is_set is True

    def test_clear_wipes_buffer(self):
        """Test clear overwrites the buffer before dropping it."""
        holder = MasterPassword()
        holder.set("correct horse")
        leaked = holder.use(lambda buffer: buffer)

        holder.clear()

        assert holder.is_set is False
        assert leaked == bytearray(len(leaked))

    def test_replace_wipes_previous(self):
        """Test setting a new password wipes the old buffer."""
        holder = MasterPassword()
        holder.set("first-password")
        old = holder.use(lambda buffer: buffer)

        holder.set("second-password")

        assert old == bytearray(len(old))
        assert holder.use(bytes) == b"second-password"

    def test_clear_is_idempotent(self):
        """Test clear can run repeatedly."""
        holder = MasterPassword()
        holder.clear()
        holder.clear()

        assert holder.is_set is False

    def test_repr_hides_value(self):
        """Test repr never shows the password."""
        holder = MasterPassword()
        holder.set("correct horse")

        assert "correct horse" not in repr(holder)
        assert repr(holder) == "MasterPassword(set=True)"

    def test_concurrent_readers(self):
        """Test several threads can use the password at once."""
        holder = MasterPassword()
        holder.set("correct horse")
        inside = threading.Barrier(3, timeout=5)
        results = []

        def reader():
            results.append(holder.use(lambda buffer: (inside.wait(), bytes(buffer))[1]))

        threads = [threading.Thread(target=reader) for _ in range(3)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert results == [b"correct horse"] * 3
