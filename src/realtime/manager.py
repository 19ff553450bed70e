import logging
from threading import Lock
from typing import Any, Dict, List, NamedTuple, Optional

from pydantic import ValidationError

from src.config import DEFAULT_EVENT_RADIUS_KM, DEFAULT_SIGNAL_RADIUS_KM, LISTENER_PRECISION
from src.functions.client import FunctionsError
from src.geohash.geohash_utils import encode, prefix_range
from src.models.crowd import Event, Signal

# Get logger
logger = logging.getLogger(__name__)

EVENTS_COLLECTION = "events"
SIGNALS_COLLECTION = "signals"
GEOHASH_FIELD = "geohash"

ADDED = "added"
MODIFIED = "modified"
REMOVED = "removed"


class DocumentChange(NamedTuple):
    type: str
    document: Dict[str, Any]


class RealtimeManager:
    """
    Owns the nearby events and signals shown to a user and the listeners that keep them current.

    `feed` is the change-feed service. It must provide
    `subscribe(collection, field, start, end, on_changes, on_error)` returning a registration
    with a `remove()` method; `on_changes` receives a list of DocumentChange in feed order.
    `client` is a FunctionsClient, only needed for the fetch_* calls.

    Feed callbacks may arrive on any thread. The record stores, `error` and `is_loading`
    are only written while holding `_lock`.
    """

    def __init__(self, feed, client=None):
        self.feed = feed
        self.client = client
        self.error: Optional[str] = None
        self.is_loading = False

        self._lock = Lock()
        self._events: Dict[str, Event] = {}
        self._signals: Dict[str, Signal] = {}
        self._event_listener = None
        self._signal_listener = None
        self.event_prefix: Optional[str] = None
        self.signal_prefix: Optional[str] = None

    @property
    def events(self) -> List[Event]:
        with self._lock:
            return list(self._events.values())

    @property
    def signals(self) -> List[Signal]:
        with self._lock:
            return list(self._signals.values())

    # Fetching

    def fetch_nearby_events(self, latitude, longitude, radius_km=DEFAULT_EVENT_RADIUS_KM):
        """Replace the current events with the backend's nearby events. Keeps them on failure."""
        return self._fetch("events", self.client.get_nearby_events, self._events,
                           latitude, longitude, radius_km)

    def fetch_nearby_signals(self, latitude, longitude, radius_km=DEFAULT_SIGNAL_RADIUS_KM):
        """Replace the current signals with the backend's nearby signals. Keeps them on failure."""
        return self._fetch("signals", self.client.get_nearby_signals, self._signals,
                           latitude, longitude, radius_km)

    def _fetch(self, label, get_nearby, store, latitude, longitude, radius_km):
        with self._lock:
            self.is_loading = True
            self.error = None
        try:
            records = get_nearby(latitude, longitude, radius_km)
        except (FunctionsError, ValidationError) as e:
            logger.error(f"Error fetching nearby {label}: {e}")
            with self._lock:
                self.error = f"Error fetching {label}: {e}"
            return False
        finally:
            with self._lock:
                self.is_loading = False

        # Listeners hold a reference to the store, so it is refilled rather than replaced
        with self._lock:
            store.clear()
            store.update((record.id, record) for record in records)
        return True

    # Real-time listeners

    def start_listening_to_events(self, geohash_prefix: str):
        self.stop_listening_to_events()
        logger.info(f"Starting event listener for geohash: {geohash_prefix}")

        start, end = prefix_range(geohash_prefix)
        self._event_listener = self.feed.subscribe(
            EVENTS_COLLECTION, GEOHASH_FIELD, start, end,
            lambda changes: self._apply_changes(self._events, Event, changes),
            lambda error: self._on_listener_error("events", error)
        )
        self.event_prefix = geohash_prefix

    def start_listening_to_signals(self, geohash_prefix: str):
        self.stop_listening_to_signals()
        logger.info(f"Starting signal listener for geohash: {geohash_prefix}")

        start, end = prefix_range(geohash_prefix)
        self._signal_listener = self.feed.subscribe(
            SIGNALS_COLLECTION, GEOHASH_FIELD, start, end,
            lambda changes: self._apply_changes(self._signals, Signal, changes),
            lambda error: self._on_listener_error("signals", error)
        )
        self.signal_prefix = geohash_prefix

    def stop_listening_to_events(self):
        if self._event_listener is not None:
            self._event_listener.remove()
            self._event_listener = None
            logger.info("Stopped listening to events")
        self.event_prefix = None

    def stop_listening_to_signals(self):
        if self._signal_listener is not None:
            self._signal_listener.remove()
            self._signal_listener = None
            logger.info("Stopped listening to signals")
        self.signal_prefix = None

    def stop_all_listeners(self):
        self.stop_listening_to_events()
        self.stop_listening_to_signals()

    def update_listeners_for_location(self, latitude, longitude, precision=LISTENER_PRECISION) -> str:
        """
        Point both listeners at the cell containing the given location.
        Listeners already on that cell are left running.
        """
        geohash = encode(latitude, longitude, precision)
        if self.event_prefix != geohash:
            self.start_listening_to_events(geohash)
        if self.signal_prefix != geohash:
            self.start_listening_to_signals(geohash)
        return geohash

    def _apply_changes(self, store, model, changes):
        label = model.__name__
        with self._lock:
            for change in changes:
                try:
                    record = model.model_validate(change.document)
                except ValidationError as e:
                    logger.error(f"Error decoding {label.lower()}: {e.errors()}")
                    continue

                if change.type == ADDED:
                    logger.info(f"{label} added: {record.id}")
                    if record.id not in store:
                        store[record.id] = record
                elif change.type == MODIFIED:
                    logger.info(f"{label} modified: {record.id}")
                    if record.id in store:
                        store[record.id] = record
                elif change.type == REMOVED:
                    logger.info(f"{label} removed: {record.id}")
                    store.pop(record.id, None)
                else:
                    logger.warning(f"Unknown change type {change.type!r} for {label.lower()} {record.id}")

    def _on_listener_error(self, collection, error):
        logger.error(f"Error listening to {collection}: {error}")
        with self._lock:
            self.error = f"Error listening to {collection}: {error}"
