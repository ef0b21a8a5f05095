"""
Tests for lazy grid producers: file stepping, exhaustion, failure halting
and elementwise combination.
"""

import pytest
import numpy as np
from datetime import timedelta
from pathlib import Path
from unittest.mock import Mock

import sys
sys.path.append(str(Path(__file__).parent.parent / "src"))

from grid_producers import VariableProducer, check_shapes, combine
from logging_utils import (
    GridFileError,
    MissingVariableError,
    ProducerHaltedError,
    QueueProgressSink,
    ShapeMismatchError,
)
from time_utils import TimeCursor

HOUR = timedelta(hours=1)
DAY = timedelta(hours=24)
TEMPLATE = "/data/wrfcmaq_[DATE].nc"


def numbered_files(start, days, records_per_file, shape=(2, 3)):
    """Files whose grids hold day * 100 + record everywhere."""
    files = {}
    for day in range(days):
        records = np.stack([np.full(shape, day * 100 + record, dtype=float)
                            for record in range(records_per_file)])
        files[start + day * DAY] = {'PBLH': records}
    return files


def make_producer(reader, start, end, variable='PBLH', record_interval=HOUR,
                  file_interval=DAY, sink=None):
    cursor = TimeCursor(start, end, record_interval, file_interval)
    return VariableProducer(reader, TEMPLATE, variable, cursor, sink)


class TestVariableProducer:
    """Test reading one variable across dated files"""

    def test_crosses_file_boundaries(self, make_reader, start_time):
        """Test that records continue seamlessly into the next file"""
        reader = make_reader(numbered_files(start_time, 2, 24))
        producer = make_producer(reader, start_time, start_time + 2 * DAY)

        values = [grid[0, 0] for grid in producer]

        assert len(values) == 48
        assert values[:24] == list(range(24))
        assert values[24:] == list(range(100, 124))
        assert reader.opened == [start_time, start_time + DAY]

    def test_tracks_timestamp(self, make_reader, start_time):
        reader = make_reader(numbered_files(start_time, 1, 24))
        producer = make_producer(reader, start_time, start_time + DAY)

        producer.pull()
        producer.pull()

        assert producer.timestamp == start_time + HOUR

    def test_returns_grid_shape(self, make_reader, start_time):
        reader = make_reader(numbered_files(start_time, 1, 24, shape=(4, 5)))
        producer = make_producer(reader, start_time, start_time + DAY)

        assert producer.pull().shape == (4, 5)

    def test_empty_window_yields_nothing(self, make_reader, start_time):
        """Test that start == end gives zero grids and no error"""
        reader = make_reader(numbered_files(start_time, 1, 24))
        producer = make_producer(reader, start_time, start_time)

        assert list(producer) == []
        assert reader.opened == []

    def test_exhaustion_is_distinct_from_failure(self, make_reader, start_time):
        """Test that pulling past the end keeps raising StopIteration"""
        reader = make_reader(numbered_files(start_time, 1, 24))
        producer = make_producer(reader, start_time, start_time + 2 * HOUR)

        producer.pull()
        producer.pull()
        with pytest.raises(StopIteration):
            producer.pull()
        with pytest.raises(StopIteration):
            producer.pull()
        assert not producer.halted

    def test_closes_file_when_exhausted(self, make_reader, start_time):
        reader = make_reader(numbered_files(start_time, 2, 24))
        producer = make_producer(reader, start_time, start_time + 2 * DAY)

        list(producer)

        assert reader.closed == 2

    def test_missing_file_halts_producer(self, make_reader, start_time):
        """Test that a missing second file fails the pull that needs it"""
        reader = make_reader(numbered_files(start_time, 1, 2))
        producer = make_producer(reader, start_time, start_time + 2 * DAY,
                                 record_interval=12 * HOUR)

        producer.pull()
        producer.pull()
        with pytest.raises(GridFileError):
            producer.pull()

        assert producer.halted
        with pytest.raises(ProducerHaltedError):
            producer.pull()

    def test_missing_variable(self, make_reader, start_time):
        reader = make_reader(numbered_files(start_time, 1, 24))
        producer = make_producer(reader, start_time, start_time + DAY, variable='QRAIN')

        with pytest.raises(MissingVariableError) as exc_info:
            producer.pull()

        assert exc_info.value.context['variable'] == 'QRAIN'
        assert exc_info.value.context['timestamp'] == start_time.isoformat()

    def test_reports_progress_per_file(self, make_reader, start_time):
        """Test that the progress sink hears about every file opened"""
        reader = make_reader(numbered_files(start_time, 2, 24))
        sink = QueueProgressSink()
        producer = make_producer(reader, start_time, start_time + 2 * DAY, sink=sink)

        list(producer)

        messages = []
        while not sink.queue.empty():
            messages.append(sink.queue.get_nowait())
        assert len(messages) == 2
        assert "PBLH" in messages[0]
        assert "wrfcmaq_2005-01-01.nc" in messages[0]
        assert "wrfcmaq_2005-01-02.nc" in messages[1]

    def test_failing_sink_does_not_break_pull(self, make_reader, start_time):
        reader = make_reader(numbered_files(start_time, 1, 24))
        sink = Mock()
        sink.send.side_effect = RuntimeError("sink is broken")
        producer = make_producer(reader, start_time, start_time + DAY, sink=sink)

        assert producer.pull()[0, 0] == 0.0

    def test_fresh_producers_are_independent(self, make_reader, start_time):
        """Test that two producers over the same data each start at the beginning"""
        reader = make_reader(numbered_files(start_time, 1, 24))
        first = make_producer(reader, start_time, start_time + DAY)
        second = make_producer(reader, start_time, start_time + DAY)

        first.pull()
        first.pull()

        assert second.pull()[0, 0] == 0.0
        assert first.pull()[0, 0] == 2.0


class TestCombinedProducer:
    """Test lifting elementwise functions over producers"""

    def test_combines_in_lock_step(self, make_reader, start_time):
        reader = make_reader(numbered_files(start_time, 2, 24))
        a = make_producer(reader, start_time, start_time + 2 * DAY)
        b = make_producer(reader, start_time, start_time + 2 * DAY)

        summed = combine(np.add, a, b, name="double")
        values = [grid[0, 0] for grid in summed]

        assert len(values) == 48
        assert values[25] == 2 * 101

    def test_default_name(self, make_reader, start_time):
        reader = make_reader(numbered_files(start_time, 1, 24))

        def doubled(grid):
            return 2 * grid

        producer = combine(doubled, make_producer(reader, start_time, start_time + DAY))
        assert producer.name == "doubled"

    def test_pulls_upstreams_in_declaration_order(self, start_time):
        order = []

        first, second = Mock(), Mock()
        first.name, second.name = "first", "second"
        first.timestamp = second.timestamp = start_time
        first.pull.side_effect = lambda: order.append("first") or np.zeros(2)
        second.pull.side_effect = lambda: order.append("second") or np.ones(2)

        producer = combine(np.add, first, second, name="sum")
        np.testing.assert_array_equal(producer.pull(), [1.0, 1.0])

        assert order == ["first", "second"]

    def test_shape_mismatch_fails_before_function_runs(self, make_reader, start_time):
        """Test that mismatched inputs never reach the function"""
        surface = make_reader(numbered_files(start_time, 1, 24, shape=(2, 3)))
        profile = make_reader(numbered_files(start_time, 1, 24, shape=(4, 2, 3)))
        func = Mock(return_value=np.zeros((2, 3)))

        producer = combine(func,
                           make_producer(surface, start_time, start_time + DAY),
                           make_producer(profile, start_time, start_time + DAY),
                           name="mismatch")

        with pytest.raises(ShapeMismatchError) as exc_info:
            producer.pull()

        func.assert_not_called()
        assert "mismatch" in str(exc_info.value)
        assert producer.halted

    def test_upstream_failure_propagates(self, make_reader, start_time):
        reader = make_reader(numbered_files(start_time, 1, 24))
        producer = combine(np.add,
                           make_producer(reader, start_time, start_time + DAY),
                           make_producer(reader, start_time, start_time + DAY, variable='GLW'),
                           name="broken")

        with pytest.raises(MissingVariableError):
            producer.pull()

    def test_upstream_exhaustion_ends_sequence(self, make_reader, start_time):
        reader = make_reader(numbered_files(start_time, 1, 24))
        producer = combine(np.add,
                           make_producer(reader, start_time, start_time),
                           make_producer(reader, start_time, start_time),
                           name="empty")

        assert list(producer) == []

    def test_context_manager_closes_upstreams(self, make_reader, start_time):
        reader = make_reader(numbered_files(start_time, 1, 24))
        with combine(np.add,
                     make_producer(reader, start_time, start_time + DAY),
                     make_producer(reader, start_time, start_time + DAY)) as producer:
            producer.pull()

        assert reader.closed == 2


def test_check_shapes_accepts_matching():
    check_shapes([np.zeros((2, 2)), np.ones((2, 2))], ["a", "b"], "target")


def test_check_shapes_reports_every_shape():
    with pytest.raises(ShapeMismatchError) as exc_info:
        check_shapes([np.zeros((2, 2)), np.ones((3, 2))], ["a", "b"], "target")

    assert exc_info.value.context['shapes'] == {'a': (2, 2), 'b': (3, 2)}


if __name__ == '__main__':
    pytest.main([__file__])
