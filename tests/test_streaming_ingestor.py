from __future__ import annotations

from typing import Any, Iterator, Sequence

import pytest

from trippulse.ingestion.errors import SinkError, SourceReadError
from trippulse.ingestion.pipeline import (
    RunOptions,
    StreamingIngestor,
    clear_and_reload,
    format_stats_report,
    run_full,
    run_sample,
)
from trippulse.ingestion.schemas import CleanTrip, RawTripRecord
from trippulse.settings import AppConfig
from trippulse.sources.csv_sources import iter_mapping_records


def _row(trip_id: str, **overrides: Any) -> dict[str, str]:
    row = {
        "id": trip_id,
        "vendor_id": "2",
        "pickup_datetime": "2016-03-14 17:24:55",
        "dropoff_datetime": "2016-03-14 17:34:55",
        "passenger_count": "1",
        "pickup_longitude": "-74.0060",
        "pickup_latitude": "40.7128",
        "dropoff_longitude": "-73.9352",
        "dropoff_latitude": "40.7306",
        "store_and_fwd_flag": "N",
        "trip_duration": "600",
    }
    row.update(overrides)
    return row


class _RecordingSink:
    def __init__(self, pulled: list[str] | None = None, fail_calls: Sequence[int] = ()) -> None:
        self.batches: list[list[CleanTrip]] = []
        self.pulled_at_flush: list[int] = []
        self.deleted = 0
        self._pulled = pulled
        self._fail_calls = set(fail_calls)
        self._calls = 0

    def bulk_insert(self, batch: Sequence[CleanTrip]) -> None:
        self._calls += 1
        if self._pulled is not None:
            self.pulled_at_flush.append(len(self._pulled))
        if self._calls in self._fail_calls:
            raise SinkError("simulated write failure")
        self.batches.append(list(batch))

    def delete_all(self) -> None:
        self.deleted += 1
        self.batches.clear()

    def count(self) -> int:
        return sum(len(b) for b in self.batches)


def _counting_source(rows: list[dict[str, str]], pulled: list[str]) -> Iterator[RawTripRecord]:
    for row in rows:
        pulled.append(row["id"])
        yield RawTripRecord.from_mapping(row)


@pytest.fixture
def config() -> AppConfig:
    return AppConfig()


def test_three_record_scenario(config: AppConfig) -> None:
    rows = [
        _row("out", pickup_latitude="45.0"),
        _row("short", trip_duration="30"),
        _row("good"),
    ]
    sink = _RecordingSink()
    stats = run_full(iter_mapping_records(rows), sink, config=config)

    assert stats.rows_seen == 3
    assert stats.valid_rows == 1
    assert stats.invalid == 2
    assert stats.out_of_bounds == 1
    assert stats.outliers == 1
    assert stats.inserted == 1

    trip = sink.batches[0][0]
    assert trip.trip_id == "good"
    assert trip.trip_distance_km == pytest.approx(6.286, abs=0.01)
    assert trip.trip_speed_kmh == pytest.approx(37.72, abs=0.05)
    assert (trip.hour_of_day, trip.day_of_week, trip.is_weekend) == (17, 1, False)


def test_repeated_identifier_is_counted_once_as_duplicate(config: AppConfig) -> None:
    sink = _RecordingSink()
    stats = run_full(iter_mapping_records([_row("dup"), _row("dup"), _row("dup")]), sink, config=config)
    assert stats.valid_rows == 1
    assert stats.duplicates == 2
    assert stats.inserted == 1


def test_duplicate_wins_over_bad_payload(config: AppConfig) -> None:
    rows = [_row("a"), _row("a", pickup_latitude="oops")]
    stats = run_full(iter_mapping_records(rows), _RecordingSink(), config=config)
    assert stats.duplicates == 1
    assert stats.invalid == 0


def test_rejected_first_occurrence_does_not_mark_identifier(config: AppConfig) -> None:
    rows = [_row("a", trip_duration="30"), _row("a")]
    sink = _RecordingSink()
    stats = run_full(iter_mapping_records(rows), sink, config=config)
    assert stats.outliers == 1
    assert stats.duplicates == 0
    assert stats.valid_rows == 1
    assert sink.count() == 1


def test_counters_partition_input(config: AppConfig) -> None:
    rows = [
        _row("a"),
        _row("a"),
        _row("b", vendor_id=""),
        _row("c", dropoff_latitude="39.0"),
        _row("d", pickup_datetime="yesterday"),
        _row("e", trip_duration="20000"),
        _row("f"),
    ]
    stats = run_full(iter_mapping_records(rows), _RecordingSink(), config=config)
    assert stats.rows_seen == 7
    assert stats.rows_seen == stats.valid_rows + stats.invalid + stats.duplicates
    assert stats.invalid == stats.malformed + stats.out_of_bounds + stats.outliers
    assert (stats.malformed, stats.out_of_bounds, stats.outliers) == (2, 1, 1)
    assert stats.is_partitioned


def test_flushes_at_batch_multiples_before_pulling_more(config: AppConfig) -> None:
    pulled: list[str] = []
    sink = _RecordingSink(pulled=pulled)
    rows = [_row(f"t{i}") for i in range(7)]
    stats = run_full(_counting_source(rows, pulled), sink, config=config, batch_size=3)

    assert [len(b) for b in sink.batches] == [3, 3, 1]
    assert sink.pulled_at_flush == [3, 6, 7]
    assert stats.inserted == 7
    assert stats.batches_flushed == 3


def test_no_partial_flush_when_exact_multiple(config: AppConfig) -> None:
    sink = _RecordingSink()
    run_full(iter_mapping_records([_row(f"t{i}") for i in range(4)]), sink, config=config, batch_size=2)
    assert [len(b) for b in sink.batches] == [2, 2]


def test_sample_run_stops_pulling_at_target(config: AppConfig) -> None:
    pulled: list[str] = []
    sink = _RecordingSink()
    rows = [_row(f"t{i}") for i in range(100)]
    stats = run_sample(_counting_source(rows, pulled), sink, target_valid_count=5, batch_size=500, config=config)

    assert stats.valid_rows == 5
    assert stats.inserted == 5
    assert sink.count() == 5
    assert len(pulled) == 5


def test_sample_run_counts_rejections_until_target(config: AppConfig) -> None:
    rows = [_row("bad", trip_duration="1")] + [_row(f"t{i}") for i in range(10)]
    stats = run_sample(iter_mapping_records(rows), _RecordingSink(), target_valid_count=3, batch_size=2, config=config)
    assert stats.rows_seen == 4
    assert stats.inserted == 3


def test_sink_failure_is_logged_and_run_continues(config: AppConfig, caplog: pytest.LogCaptureFixture) -> None:
    sink = _RecordingSink(fail_calls=[1])
    rows = [_row(f"t{i}") for i in range(5)]
    with caplog.at_level("ERROR", logger="trippulse.ingestion.pipeline"):
        stats = run_full(iter_mapping_records(rows), sink, config=config, batch_size=2)

    assert stats.valid_rows == 5
    assert stats.inserted == 3
    assert stats.failed_batches == 1
    assert stats.failed_rows == 2
    assert [t.trip_id for b in sink.batches for t in b] == ["t2", "t3", "t4"]
    assert "Batch insert of 2 trips failed" in caplog.text


def test_source_failure_aborts_with_partial_stats(config: AppConfig) -> None:
    def broken_source() -> Iterator[RawTripRecord]:
        yield RawTripRecord.from_mapping(_row("a"))
        yield RawTripRecord.from_mapping(_row("b"))
        raise OSError("disk went away")

    sink = _RecordingSink()
    with pytest.raises(SourceReadError) as excinfo:
        run_full(broken_source(), sink, config=config, batch_size=10)

    error = excinfo.value
    assert isinstance(error.__cause__, OSError)
    assert error.stats is not None
    assert error.stats.rows_seen == 2
    assert error.stats.valid_rows == 2
    assert error.stats.inserted == 2
    assert sink.count() == 2


def test_runs_do_not_share_dedup_state(config: AppConfig) -> None:
    ingestor = StreamingIngestor(_RecordingSink(), config=config)
    options = RunOptions(batch_size=10)
    first = ingestor.run(iter_mapping_records([_row("a")]), options)
    second = ingestor.run(iter_mapping_records([_row("a")]), options)
    assert first.valid_rows == 1
    assert second.valid_rows == 1
    assert second.duplicates == 0


def test_clear_and_reload_deletes_first(config: AppConfig) -> None:
    sink = _RecordingSink()
    run_full(iter_mapping_records([_row("old")]), sink, config=config)
    stats = clear_and_reload(iter_mapping_records([_row("new1"), _row("new2")]), sink, config=config)
    assert sink.deleted == 1
    assert stats.inserted == 2
    assert [t.trip_id for b in sink.batches for t in b] == ["new1", "new2"]


def test_run_options_reject_bad_batch_size() -> None:
    with pytest.raises(ValueError):
        RunOptions(batch_size=0)


def test_stats_report_lists_counters(config: AppConfig) -> None:
    stats = run_full(iter_mapping_records([_row("a"), _row("a")]), _RecordingSink(), config=config)
    report = format_stats_report(stats)
    assert "rows seen:        2" in report
    assert "duplicates:       1" in report
    assert "inserted:         1" in report
