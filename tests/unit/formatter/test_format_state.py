"""
Tests for FormatState, the shared widest-tag tracker.
"""

import itertools
import random
import threading

from logship.core.formatter import FormatState, RecordFormatter
from logship.models.record import LogLevel, LogRecord


class TestFormatState:
    """Test width tracking invariants."""

    def test_starts_at_zero(self) -> None:
        """Test a fresh state has no width."""
        assert FormatState().max_tag_width == 0

    def test_width_never_decreases(self) -> None:
        """Test observing narrower tags keeps the maximum."""
        state = FormatState()
        assert state.observe(7) == 7
        assert state.observe(3) == 7
        assert state.observe(0) == 7
        assert state.max_tag_width == 7

    def test_width_tracks_running_maximum(self) -> None:
        """Test the width after N records is the max of the first N tags."""
        tags = ["a", "abc", "ab", "abcdefg", "", "abcd", "abcdefgh"]
        state = FormatState()
        formatter = RecordFormatter(state, use_color=False)

        for n, tag in enumerate(tags, start=1):
            formatter.format(LogRecord(level=LogLevel.INFO, source_tag=tag, message="m"))
            assert state.max_tag_width == max(len(t) for t in tags[:n])

    def test_final_width_is_order_independent(self) -> None:
        """Test every ordering of the same tags ends at the same width."""
        tags = ["x", "yyyy", "zz", "wwwwww"]

        for ordering in itertools.permutations(tags):
            state = FormatState()
            for tag in ordering:
                state.observe(len(tag))
            assert state.max_tag_width == 6

    def test_concurrent_observers(self) -> None:
        """Test concurrent updates from many threads keep the true maximum."""
        state = FormatState()
        widths = [random.randint(0, 200) for _ in range(2000)]
        chunks = [widths[i::8] for i in range(8)]

        def worker(chunk: list) -> None:
            for width in chunk:
                state.observe(width)

        threads = [threading.Thread(target=worker, args=(chunk,)) for chunk in chunks]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert state.max_tag_width == max(widths)

    def test_state_shared_between_formatters(self) -> None:
        """Test two formatters holding one state align to the same width."""
        state = FormatState()
        plain = RecordFormatter(state, use_color=False)
        styled = RecordFormatter(state, use_color=True)

        styled.format(LogRecord(level=LogLevel.INFO, source_tag="longer.tag", message="m"))
        line = plain.format(LogRecord(level=LogLevel.INFO, source_tag="t", message="m"))

        assert line == " INFO  t          > m"
