import logging

from sqlalchemy.exc import SQLAlchemyError

from src.config import STORAGE_PRECISION
from src.db.database import EventDB, SignalDB
from src.geohash.geohash_utils import KM_PER_DEGREE, covering_cells, distance, prefix_range
from src.models.crowd import Event, Signal

# Get logger
logger = logging.getLogger(__name__)

EVENT_COLUMNS = [
    "title", "host_id", "latitude", "longitude", "geohash", "radius_meters", "people_count",
    "attendee_count", "signal_strength", "tags", "created_at", "updated_at", "starts_at", "ends_at",
]
SIGNAL_COLUMNS = [
    "user_id", "event_id", "latitude", "longitude", "geohash", "signal_strength", "people_count",
    "color", "radius_meters", "created_at", "updated_at",
]


def _save(db, table, columns, records):
    inserted_count = 0
    updated_count = 0

    try:
        for record in records:
            values = {column: getattr(record, column) for column in columns}
            existing = db.query(table).filter(table.id == record.id).first()

            if existing:
                for column, value in values.items():
                    setattr(existing, column, value)
                updated_count += 1
            else:
                db.add(table(id=record.id, **values))
                inserted_count += 1

        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error saving {len(records)} rows to {table.__tablename__}: {str(e)}")
        raise

    logger.info(f"Saved {table.__tablename__}: {inserted_count} inserted, {updated_count} updated")
    return inserted_count, updated_count


def save_events(db, events):
    """Upsert events into the cache. Returns (inserted, updated)."""
    return _save(db, EventDB, EVENT_COLUMNS, events)


def save_signals(db, signals):
    """Upsert signals into the cache. Returns (inserted, updated)."""
    return _save(db, SignalDB, SIGNAL_COLUMNS, signals)


def query_prefix(db, table, prefix):
    """Rows of `table` whose geohash starts with `prefix`, as a range scan over the geohash index."""
    start, end = prefix_range(prefix)
    return (
        db.query(table)
        .filter(table.geohash >= start, table.geohash <= end)
        .order_by(table.geohash)
        .all()
    )


def _candidate_rows(db, table, latitude, longitude, radius_km):
    cells = covering_cells(latitude, longitude, radius_km)
    if cells is None:
        # No geohash covering this wide; scan the latitude band instead
        lat_range = radius_km / KM_PER_DEGREE
        logger.info(f"Scanning {table.__tablename__} by latitude band for {radius_km} km around ({latitude}, {longitude})")
        return (
            db.query(table)
            .filter(table.latitude >= latitude - lat_range, table.latitude <= latitude + lat_range)
            .all()
        )

    # Stored keys are STORAGE_PRECISION long; a longer prefix would never match them
    cells = list(dict.fromkeys(cell[:STORAGE_PRECISION] for cell in cells))

    rows = {}
    for cell in cells:
        for row in query_prefix(db, table, cell):
            rows[row.id] = row
    return list(rows.values())


def _find_nearby(db, table, model, columns, latitude, longitude, radius_km):
    center = (latitude, longitude)

    results = []
    for row in _candidate_rows(db, table, latitude, longitude, radius_km):
        row_distance = distance(center, (row.latitude, row.longitude))
        if row_distance <= radius_km:
            values = {column: getattr(row, column) for column in columns}
            results.append(model(id=row.id, distance=row_distance, **values))

    results.sort(key=lambda record: record.distance)
    logger.info(f"Found {len(results)} cached {table.__tablename__} within {radius_km} km of ({latitude}, {longitude})")
    return results


def find_nearby_events(db, latitude, longitude, radius_km):
    return _find_nearby(db, EventDB, Event, EVENT_COLUMNS, latitude, longitude, radius_km)


def find_nearby_signals(db, latitude, longitude, radius_km):
    return _find_nearby(db, SignalDB, Signal, SIGNAL_COLUMNS, latitude, longitude, radius_km)
