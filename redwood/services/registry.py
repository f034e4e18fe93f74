"""Local aircraft registry used to decorate live state with airframe details."""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Callable, Iterable, Iterator, Sequence

from sqlalchemy import insert, select

from redwood import db_models
from redwood.config import settings
from redwood.db import build_engine, build_session_factory, init_db, sqlite_file
from redwood.models.air_traffic import AircraftRecord

logger = logging.getLogger("redwood.registry")

# CSV header (lowercased) -> column on AircraftEntry
_CSV_COLUMNS = {
    "registration": "registration",
    "manufacturername": "manufacturer_name",
    "model": "model",
    "typecode": "typecode",
    "operator": "operator",
    "operatorcallsign": "operator_callsign",
    "owner": "owner",
}

# SQLite caps bound parameters per statement
_LOOKUP_CHUNK = 500


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip().strip("'").strip()
    return cleaned or None


def _chunks(items: Sequence[str], size: int) -> Iterator[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class AircraftRegistry:
    """Read-mostly lookup table of airframes imported from the OpenSky CSV."""

    def __init__(self, database_url: str | None = None) -> None:
        self.database_url = database_url or settings.registry_db_url
        self.engine = build_engine(self.database_url)
        self.session_factory = build_session_factory(self.engine)

    def exists(self) -> bool:
        """True when a file-backed database is present on disk."""

        path = sqlite_file(self.database_url)
        if path is None:
            return True
        return path.exists()

    def import_csv(
        self,
        csv_path: str | Path,
        *,
        batch_size: int = 5000,
        progress: Callable[[int], None] | None = None,
    ) -> int:
        """Load an aircraft-database CSV; returns the number of rows stored.

        Fields are single-quoted in the published dump. Headers are matched
        case-insensitively and a leading byte-order mark is ignored. Rows with
        an icao24 already present replace the earlier row.
        """

        init_db(self.engine)
        path = Path(csv_path)
        stored = 0

        with path.open(newline="", encoding="utf-8-sig") as handle:
            reader = csv.reader(handle, quotechar="'")
            try:
                headers = [h.strip().strip("'").lower() for h in next(reader)]
            except StopIteration as exc:
                raise ValueError(f"{path} is empty") from exc

            if "icao24" not in headers:
                raise ValueError(f"{path} has no icao24 column (found: {headers})")
            icao_idx = headers.index("icao24")
            column_idx = {
                column: headers.index(header)
                for header, column in _CSV_COLUMNS.items()
                if header in headers
            }

            statement = insert(db_models.AircraftEntry).prefix_with("OR REPLACE")
            batch: list[dict[str, str | None]] = []
            with self.session_factory() as session:
                for row in reader:
                    if len(row) <= icao_idx:
                        continue
                    icao = _clean(row[icao_idx])
                    if not icao:
                        continue
                    values: dict[str, str | None] = {"icao24": icao.lower()}
                    for column, idx in column_idx.items():
                        values[column] = _clean(row[idx]) if idx < len(row) else None
                    batch.append(values)

                    if len(batch) >= batch_size:
                        session.execute(statement, batch)
                        stored += len(batch)
                        batch = []
                        if progress:
                            progress(stored)

                if batch:
                    session.execute(statement, batch)
                    stored += len(batch)
                    if progress:
                        progress(stored)
                session.commit()

        logger.info("Imported %s aircraft from %s", stored, path)
        return stored

    def lookup(self, icao24s: Iterable[str]) -> dict[str, db_models.AircraftEntry]:
        keys = sorted({icao.lower() for icao in icao24s})
        found: dict[str, db_models.AircraftEntry] = {}
        if not keys:
            return found

        with self.session_factory() as session:
            for chunk in _chunks(keys, _LOOKUP_CHUNK):
                rows = session.scalars(
                    select(db_models.AircraftEntry).where(
                        db_models.AircraftEntry.icao24.in_(chunk)
                    )
                )
                for row in rows:
                    found[row.icao24] = row
        return found

    def decorate(
        self, records: Sequence[AircraftRecord]
    ) -> tuple[list[AircraftRecord], int]:
        """Return copies of ``records`` with registry fields filled in, plus hits."""

        entries = self.lookup(record.icao24 for record in records)
        decorated: list[AircraftRecord] = []
        hits = 0
        for record in records:
            entry = entries.get(record.icao24)
            if entry is None:
                decorated.append(record)
                continue
            hits += 1
            decorated.append(
                record.model_copy(
                    update={
                        "registration": entry.registration,
                        "operator": entry.operator or entry.owner,
                        "manufacturer": entry.manufacturer_name,
                        "model": entry.model,
                        "typecode": entry.typecode,
                    }
                )
            )
        return decorated, hits


__all__ = ["AircraftRegistry"]
