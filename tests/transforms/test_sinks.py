"""Tests for MultiSink."""
import io
from unittest.mock import MagicMock

import pytest

from stagebackup.core.constants import ErrorCode
from stagebackup.core.errors import SinkError
from stagebackup.transforms.sinks import MultiSink


class TestMultiSink:
    """Tests for fanning writes out to several streams."""

    def test_every_sink_receives_every_write(self):
        """Test that outputs are byte-identical."""
        first, second = io.BytesIO(), io.BytesIO()
        sink = MultiSink([first, second])

        sink.write(b"abc")
        sink.write(b"def")

        assert first.getvalue() == second.getvalue() == b"abcdef"
        assert sink.bytes_written == 6
        assert len(sink) == 2

    def test_failure_is_fatal(self):
        """Test that a failing sink raises SinkError naming it."""
        broken = MagicMock()
        broken.write.side_effect = OSError(28, "No space left on device")
        sink = MultiSink([io.BytesIO(), broken], names=["a.tgz", "b.tgz"])

        with pytest.raises(SinkError, match="b.tgz") as exc_info:
            sink.write(b"data")
        assert exc_info.value.error_code == ErrorCode.FATAL

    def test_closed_sink(self):
        """Test that writing to a closed stream is a sink error."""
        closed = io.BytesIO()
        closed.close()
        with pytest.raises(SinkError):
            MultiSink([closed]).write(b"x")

    def test_flush(self):
        """Test that flush reaches every sink."""
        first, second = MagicMock(), MagicMock()
        MultiSink([first, second]).flush()
        first.flush.assert_called_once()
        second.flush.assert_called_once()

    def test_needs_a_sink(self):
        """Test that an empty sink list is rejected."""
        with pytest.raises(ValueError):
            MultiSink([])
