from fastapi import FastAPI, HTTPException, Depends, BackgroundTasks, Query
from sqlalchemy.orm import Session
import logging
import time
from typing import Optional

from src.config import DEFAULT_EVENT_RADIUS_KM, DEFAULT_SIGNAL_RADIUS_KM
from src.db.database import get_db, SessionLocal
from src.db.cache import save_events, save_signals, find_nearby_events, find_nearby_signals
from src.functions.client import FunctionsClient, FunctionsError
from src.geohash.geohash_utils import (
    encode, decode_with_error, distance, neighbors, precision_for_radius, geohash_range
)
from src.geohash.spatial_query import spatial_query, spatial_query_for_radius

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(message)s",
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Crowd Geo API",
    description="Geohash utilities and cached nearby events and signals",
    version="1.0.0"
)

functions_client = FunctionsClient()


# Background task for syncing the local cache with the backend
def sync_nearby_task(latitude, longitude, event_radius_km, signal_radius_km):
    db = SessionLocal()
    try:
        start_time = time.time()
        events = functions_client.get_nearby_events(latitude, longitude, event_radius_km)
        signals = functions_client.get_nearby_signals(latitude, longitude, signal_radius_km)

        events_inserted, events_updated = save_events(db, events)
        signals_inserted, signals_updated = save_signals(db, signals)
        duration = time.time() - start_time

        logger.info(f"Sync completed in {duration:.1f} seconds: events {events_inserted} inserted, {events_updated} updated; "
                    f"signals {signals_inserted} inserted, {signals_updated} updated")
        return {
            "success": True,
            "events": len(events),
            "signals": len(signals),
            "processing_time_seconds": duration
        }
    except FunctionsError as e:
        logger.error(f"Error syncing nearby data: {e.message}")
        return {"success": False, "error": e.message}
    except Exception as e:
        logger.error(f"Error syncing nearby data: {str(e)}")
        db.rollback()
        return {"success": False, "error": str(e)}
    finally:
        db.close()

@app.get("/")
def read_root():
    return {"message": "Welcome to the Crowd Geo API"}

@app.get("/geohash/encode")
def encode_geohash(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    precision: int = Query(6, ge=1, le=12)
):
    return {"geohash": encode(latitude, longitude, precision), "precision": precision}

@app.get("/geohash/decode/{geohash}")
def decode_geohash(geohash: str):
    """Decode a geohash into its cell center. Characters outside the alphabet are ignored."""
    decoded = decode_with_error(geohash)
    return {
        "latitude": decoded.latitude,
        "longitude": decoded.longitude,
        "error": {
            "latitude": decoded.latitude_error,
            "longitude": decoded.longitude_error
        }
    }

@app.get("/geohash/{geohash}/neighbors")
def get_neighbors(geohash: str):
    try:
        cells = neighbors(geohash)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return dict(zip(["n", "s", "e", "w", "ne", "nw", "se", "sw"], cells))

@app.get("/geohash/query")
def get_spatial_query(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    precision: Optional[int] = Query(None, ge=1, le=12),
    radius_km: Optional[float] = Query(None, gt=0)
):
    """
    Return the prefix range to subscribe to for a location.
    Uses `precision` when given, otherwise the precision chosen for `radius_km`.
    """
    if precision is not None:
        query = spatial_query(latitude, longitude, precision)
    elif radius_km is not None:
        query = spatial_query_for_radius(latitude, longitude, radius_km)
    else:
        raise HTTPException(status_code=400, detail="Either precision or radius_km is required")

    result = query.model_dump()
    if radius_km is not None:
        result["cells"] = geohash_range(latitude, longitude, radius_km)
    return result

@app.get("/distance")
def get_distance(
    lat1: float = Query(..., ge=-90, le=90),
    lon1: float = Query(..., ge=-180, le=180),
    lat2: float = Query(..., ge=-90, le=90),
    lon2: float = Query(..., ge=-180, le=180)
):
    return {"distance_km": distance((lat1, lon1), (lat2, lon2))}

@app.get("/precision")
def get_precision(radius_km: float = Query(..., ge=0)):
    return {"radius_km": radius_km, "precision": precision_for_radius(radius_km)}

@app.get("/events/nearby")
def get_nearby_events(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    radius_km: float = Query(DEFAULT_EVENT_RADIUS_KM, gt=0),
    db: Session = Depends(get_db)
):
    try:
        events = find_nearby_events(db, latitude, longitude, radius_km)
        return {"events": [event.model_dump(by_alias=True, mode="json") for event in events]}
    except Exception as e:
        logger.error(f"Error retrieving nearby events: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@app.get("/signals/nearby")
def get_nearby_signals(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    radius_km: float = Query(DEFAULT_SIGNAL_RADIUS_KM, gt=0),
    db: Session = Depends(get_db)
):
    try:
        signals = find_nearby_signals(db, latitude, longitude, radius_km)
        return {"signals": [signal.model_dump(by_alias=True, mode="json") for signal in signals]}
    except Exception as e:
        logger.error(f"Error retrieving nearby signals: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@app.post("/sync")
async def sync_nearby(
    background_tasks: BackgroundTasks,
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    event_radius_km: float = Query(DEFAULT_EVENT_RADIUS_KM, gt=0),
    signal_radius_km: float = Query(DEFAULT_SIGNAL_RADIUS_KM, gt=0)
):
    """
    Fetch nearby events and signals from the backend and store them in the local cache.
    The fetch runs in the background; poll /events/nearby and /signals/nearby for the result.
    """
    try:
        background_tasks.add_task(sync_nearby_task, latitude, longitude, event_radius_km, signal_radius_km)
        return {
            "message": f"Sync started for ({latitude}, {longitude})",
            "status": "processing",
            "geohash": encode(latitude, longitude, precision_for_radius(event_radius_km))
        }
    except Exception as e:
        logger.error(f"Error starting sync: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
