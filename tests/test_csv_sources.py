from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from trippulse.ingestion.errors import SourceReadError
from trippulse.sources.csv_sources import iter_csv_records, missing_columns, open_source

HEADER = (
    "id,vendor_id,pickup_datetime,dropoff_datetime,passenger_count,pickup_longitude,"
    "pickup_latitude,dropoff_longitude,dropoff_latitude,store_and_fwd_flag,trip_duration\n"
)


def _write_csv(path: Path, *lines: str) -> Path:
    path.write_text(HEADER + "".join(line + "\n" for line in lines), encoding="utf-8")
    return path


def test_csv_rows_stay_text_and_blank_cells_stay_empty(tmp_path) -> None:
    path = _write_csv(
        tmp_path / "train.csv",
        "id2875421,2,2016-03-14 17:24:55,2016-03-14 17:32:30,1,-73.982154,40.767937,-73.964630,40.765602,N,455",
        "id2377394,1,2016-06-12 00:43:35,2016-06-12 00:54:38,,-73.980415,40.738564,-73.999481,40.731152,N,663",
    )
    records = list(iter_csv_records(path, chunk_rows=1))
    assert [r.trip_id for r in records] == ["id2875421", "id2377394"]
    assert records[0].pickup_latitude == "40.767937"
    assert records[0].trip_duration == "455"
    assert records[1].passenger_count == ""


def test_csv_source_is_lazy(tmp_path) -> None:
    path = _write_csv(
        tmp_path / "train.csv",
        *[f"id{i},2,2016-03-14 17:24:55,2016-03-14 17:32:30,1,-73.98,40.76,-73.96,40.76,N,455" for i in range(5)],
    )
    records = iter_csv_records(path, chunk_rows=2)
    first = next(records)
    assert first.trip_id == "id0"
    records.close()


def test_missing_file_raises_on_first_read(tmp_path) -> None:
    records = iter_csv_records(tmp_path / "missing.csv")
    with pytest.raises(SourceReadError) as excinfo:
        next(records)
    assert isinstance(excinfo.value.__cause__, FileNotFoundError)


def test_missing_required_columns(tmp_path) -> None:
    path = tmp_path / "partial.csv"
    path.write_text("id,vendor_id\nx,1\n", encoding="utf-8")
    with pytest.raises(SourceReadError, match="missing required columns"):
        list(iter_csv_records(path))


def test_column_aliases_are_normalized() -> None:
    columns = [
        "ID",
        "VendorID",
        "Pickup_Datetime",
        "dropoff_datetime",
        "passenger_count",
        "pickup_lon",
        "pickup_lat",
        "dropoff_lon",
        "dropoff_lat",
        "store_and_fwd_flag",
        "TripDuration",
    ]
    assert missing_columns(columns) == []
    assert missing_columns(["id"])[0] == "vendor_id"


def test_parquet_source(tmp_path) -> None:
    df = pd.DataFrame(
        [
            {
                "id": "p1",
                "vendor_id": 2,
                "pickup_datetime": "2016-03-14 17:24:55",
                "dropoff_datetime": "2016-03-14 17:34:55",
                "passenger_count": 1,
                "pickup_longitude": -74.006,
                "pickup_latitude": 40.7128,
                "dropoff_longitude": -73.9352,
                "dropoff_latitude": 40.7306,
                "store_and_fwd_flag": "N",
                "trip_duration": 600,
            }
        ]
    )
    path = tmp_path / "trips.parquet"
    df.to_parquet(path, index=False)

    records = list(open_source(path))
    assert len(records) == 1
    assert records[0].trip_id == "p1"
    assert records[0].vendor_id == "2"
    assert float(records[0].pickup_latitude or "nan") == 40.7128
