"""
Main entrypoint for the Crowd geo client.

Usage:
    Run directly (`python main.py`) to fetch the events and signals around a location,
    store them in the local cache and print a summary. Set FUNCTIONS_BASE_URL to point at
    the backend or the local emulator.
"""
import logging
import os
from datetime import datetime

from src.config import DEFAULT_EVENT_RADIUS_KM, DEFAULT_SIGNAL_RADIUS_KM, LISTENER_PRECISION, LOG_DIR
from src.db.database import SessionLocal, create_tables
from src.db.cache import save_events, save_signals
from src.functions.client import FunctionsClient, FunctionsError
from src.geohash.geohash_utils import decode, distance, encode, precision_for_radius

# Create logs directory
os.makedirs(LOG_DIR, exist_ok=True)

# Create log file with today's date
log_filename = os.path.join(LOG_DIR, f'crowd_{datetime.now().strftime("%Y%m%d")}.log')

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(log_filename),
        logging.StreamHandler()
    ]
)

logger = logging.getLogger(__name__)

SAN_FRANCISCO = (37.7749, -122.4194)
NEW_YORK = (40.7128, -74.0060)


def main(latitude=SAN_FRANCISCO[0], longitude=SAN_FRANCISCO[1]):
    """
    Main function to sync the area around a location into the local cache.
    """
    try:
        geohash = encode(latitude, longitude, LISTENER_PRECISION)
        center = decode(geohash)
        print(f"Location ({latitude}, {longitude}) is in cell {geohash} centered at ({center.latitude:.4f}, {center.longitude:.4f})")
        print(f"  Precision for {DEFAULT_EVENT_RADIUS_KM} km events: {precision_for_radius(DEFAULT_EVENT_RADIUS_KM)}")
        print(f"  Distance to New York: {distance((latitude, longitude), NEW_YORK):.2f} km")

        # Initialize database tables
        create_tables()

        client = FunctionsClient()
        events = client.get_nearby_events(latitude, longitude, DEFAULT_EVENT_RADIUS_KM)
        signals = client.get_nearby_signals(latitude, longitude, DEFAULT_SIGNAL_RADIUS_KM)

        db = SessionLocal()
        try:
            events_inserted, events_updated = save_events(db, events)
            signals_inserted, signals_updated = save_signals(db, signals)
        finally:
            db.close()

        print(f"\nSync completed successfully")
        print(f"  Events found: {len(events)} ({events_inserted} inserted, {events_updated} updated)")
        print(f"  Signals found: {len(signals)} ({signals_inserted} inserted, {signals_updated} updated)")

        return 0
    except FunctionsError as e:
        logger.error(f"Backend call failed: {e.message}")
        return 1
    except Exception as e:
        print(f"An error occurred in the main function: {str(e)}")
        return 1


if __name__ == "__main__":
    exit_code = main()
    print(f"Exiting with code {exit_code}")
