from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, Optional, Sequence
from zoneinfo import ZoneInfo

import pandas as pd

from trippulse.ingestion.errors import SinkError
from trippulse.ingestion.schemas import TRIP_COLUMNS, CleanTrip
from trippulse.storage.filters import TripFilter
from trippulse.utils.time import to_local, weekday_name

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_COLUMN_TYPES: dict[str, str] = {
    "trip_id": "VARCHAR PRIMARY KEY",
    "vendor_id": "INTEGER NOT NULL",
    "pickup_datetime": "TIMESTAMP NOT NULL",
    "dropoff_datetime": "TIMESTAMP NOT NULL",
    "passenger_count": "INTEGER NOT NULL",
    "pickup_latitude": "DOUBLE NOT NULL",
    "pickup_longitude": "DOUBLE NOT NULL",
    "dropoff_latitude": "DOUBLE NOT NULL",
    "dropoff_longitude": "DOUBLE NOT NULL",
    "store_and_fwd_flag": "VARCHAR(1) NOT NULL",
    "trip_duration_s": "INTEGER NOT NULL",
    "trip_distance_km": "DOUBLE NOT NULL",
    "trip_speed_kmh": "DOUBLE NOT NULL",
    "hour_of_day": "INTEGER NOT NULL",
    "day_of_week": "INTEGER NOT NULL",
    "is_weekend": "BOOLEAN NOT NULL",
}

GROUPABLE_COLUMNS = ("hour_of_day", "day_of_week")


def _import_duckdb():
    try:
        import duckdb
    except ImportError as exc:
        raise RuntimeError("duckdb is required. Install the project dependencies.") from exc
    return duckdb


def _sql_identifier(text: str) -> str:
    if not _IDENTIFIER.match(text):
        raise ValueError(f"Invalid SQL identifier: {text!r}")
    return text


def trips_frame(batch: Sequence[CleanTrip], tz: ZoneInfo) -> pd.DataFrame:
    """Convert trips to a DataFrame in table column order, timestamps as local wall-clock."""

    rows: list[dict[str, Any]] = []
    for trip in batch:
        row = trip.model_dump()
        row["pickup_datetime"] = to_local(trip.pickup_datetime, tz).replace(tzinfo=None)
        row["dropoff_datetime"] = to_local(trip.dropoff_datetime, tz).replace(tzinfo=None)
        rows.append(row)
    df = pd.DataFrame(rows, columns=list(TRIP_COLUMNS))
    for col in ["pickup_datetime", "dropoff_datetime"]:
        df[col] = pd.to_datetime(df[col])
    return df


@dataclass(frozen=True)
class DuckdbTripStore:
    """Trip sink and read interface over a DuckDB database file."""

    db_path: Path
    table: str = "trips"
    timezone: str = "America/New_York"

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @contextmanager
    def _connection(self) -> Iterator[Any]:
        duckdb = _import_duckdb()
        if str(self.db_path) != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        con = duckdb.connect(database=str(self.db_path))
        try:
            self._ensure_table(con)
            yield con
        finally:
            con.close()

    def _ensure_table(self, con: Any) -> None:
        table = _sql_identifier(self.table)
        columns = ",\n    ".join(f"{name} {_COLUMN_TYPES[name]}" for name in TRIP_COLUMNS)
        con.execute(f"CREATE TABLE IF NOT EXISTS {table} (\n    {columns}\n)")

    def bulk_insert(self, batch: Sequence[CleanTrip]) -> None:
        if not batch:
            return
        duckdb = _import_duckdb()
        table = _sql_identifier(self.table)
        df = trips_frame(batch, self.tz)
        cols = ", ".join(TRIP_COLUMNS)
        try:
            with self._connection() as con:
                con.register("batch_df", df)
                try:
                    con.execute(f"INSERT INTO {table} ({cols}) SELECT {cols} FROM batch_df")
                finally:
                    con.unregister("batch_df")
        except duckdb.Error as exc:
            raise SinkError(f"bulk insert of {len(batch)} trips into {table} failed: {exc}") from exc

    def delete_all(self) -> None:
        duckdb = _import_duckdb()
        table = _sql_identifier(self.table)
        try:
            with self._connection() as con:
                con.execute(f"DELETE FROM {table}")
        except duckdb.Error as exc:
            raise SinkError(f"delete from {table} failed: {exc}") from exc
        logger.info("Deleted all rows from %s (%s).", table, self.db_path)

    def count(self) -> int:
        duckdb = _import_duckdb()
        table = _sql_identifier(self.table)
        try:
            with self._connection() as con:
                row = con.execute(f"SELECT count(*) FROM {table}").fetchone()
        except duckdb.Error as exc:
            raise SinkError(f"count on {table} failed: {exc}") from exc
        return int(row[0]) if row else 0

    def describe_table(self) -> pd.DataFrame:
        sql = (
            "SELECT column_name, data_type FROM information_schema.columns "
            "WHERE table_name = ? ORDER BY ordinal_position"
        )
        with self._connection() as con:
            return con.execute(sql, [self.table]).fetchdf()

    def get_trip(self, trip_id: str) -> pd.DataFrame:
        table = _sql_identifier(self.table)
        with self._connection() as con:
            return con.execute(f"SELECT * FROM {table} WHERE trip_id = ? LIMIT 1", [str(trip_id)]).fetchdf()

    def _local_naive(self, dt: datetime) -> datetime:
        return to_local(dt, self.tz).replace(tzinfo=None)

    def query_trips(self, trip_filter: Optional[TripFilter] = None) -> tuple[pd.DataFrame, int]:
        """Filtered, sorted, paginated trips plus the total count matching the filter."""

        spec = trip_filter or TripFilter()
        table = _sql_identifier(self.table)

        where = " WHERE 1=1"
        params: list[object] = []
        for column, value in spec.equals.items():
            where += f" AND {_sql_identifier(column)} = ?"
            params.append(value)
        for column, value in spec.min_values.items():
            where += f" AND {_sql_identifier(column)} >= ?"
            params.append(float(value))
        for column, value in spec.max_values.items():
            where += f" AND {_sql_identifier(column)} <= ?"
            params.append(float(value))
        if spec.start is not None:
            where += " AND pickup_datetime >= ?"
            params.append(self._local_naive(spec.start))
        if spec.end is not None:
            where += " AND pickup_datetime < ?"
            params.append(self._local_naive(spec.end))

        order = "ASC" if spec.sort_order == "asc" else "DESC"
        sort_col = _sql_identifier(spec.sort_by)
        page_sql = (
            f"SELECT * FROM {table}{where} ORDER BY {sort_col} {order}, trip_id ASC LIMIT ? OFFSET ?"
        )

        with self._connection() as con:
            total_row = con.execute(f"SELECT count(*) FROM {table}{where}", params).fetchone()
            df = con.execute(page_sql, [*params, int(spec.limit), int(spec.offset)]).fetchdf()
        total = int(total_row[0]) if total_row else 0
        return df, total

    def summary_stats(self) -> dict[str, float]:
        table = _sql_identifier(self.table)
        sql = f"""
            SELECT
                count(*) AS total_trips,
                avg(trip_duration_s) AS avg_duration_s,
                avg(trip_distance_km) AS avg_distance_km,
                avg(trip_speed_kmh) AS avg_speed_kmh,
                sum(trip_distance_km) AS total_distance_km,
                avg(passenger_count) AS avg_passengers
            FROM {table}
        """
        with self._connection() as con:
            df = con.execute(sql).fetchdf()
        record = df.to_dict(orient="records")[0]
        out: dict[str, float] = {}
        for key, value in record.items():
            out[key] = 0.0 if value is None or pd.isna(value) else float(value)
        out["total_trips"] = int(out["total_trips"])
        return out

    def distribution(self, by: str) -> pd.DataFrame:
        """Trip counts and averages grouped by `hour_of_day` or `day_of_week`."""

        if by not in GROUPABLE_COLUMNS:
            raise ValueError(f"Unsupported grouping column: {by}. Supported: {list(GROUPABLE_COLUMNS)}")
        table = _sql_identifier(self.table)
        sql = f"""
            SELECT
                {by} AS bucket,
                count(*) AS trip_count,
                avg(trip_duration_s) AS avg_duration_s,
                avg(trip_distance_km) AS avg_distance_km,
                avg(trip_speed_kmh) AS avg_speed_kmh
            FROM {table}
            GROUP BY {by}
            ORDER BY {by}
        """
        with self._connection() as con:
            df = con.execute(sql).fetchdf()
        df = df.rename(columns={"bucket": by})
        if by == "day_of_week" and not df.empty:
            df["day_name"] = df["day_of_week"].map(weekday_name)
        return df
