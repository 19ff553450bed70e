import logging
import time
from typing import Any, Dict, List

import requests
from pydantic import ValidationError

from src.config import (
    DEFAULT_EVENT_RADIUS_KM,
    DEFAULT_SIGNAL_RADIUS_KM,
    FUNCTIONS_BASE_URL,
    MAX_RETRIES,
    REQUEST_TIMEOUT,
    RETRY_DELAY,
)
from src.models.crowd import CreateEventRequest, CreateSignalRequest, Event, Signal
from src.models.geo import NearbyQuery

# Get logger
logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json",
}


class FunctionsError(Exception):
    """A callable function failed or returned something unusable."""

    def __init__(self, message, status=None):
        super().__init__(message)
        self.message = message
        self.status = status


class FunctionsClient:
    def __init__(self, base_url=FUNCTIONS_BASE_URL, timeout=REQUEST_TIMEOUT,
                 max_retries=MAX_RETRIES, retry_delay=RETRY_DELAY, session=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.session = session or requests.Session()

    def call(self, name: str, data: Dict[str, Any]) -> Any:
        """
        Invoke a callable function and return its `result` payload.

        Connection errors, HTTP 429 and 5xx responses are retried with a linear back-off.
        Any other failure raises FunctionsError.
        """
        url = f"{self.base_url}/{name}"
        retries = 0

        while retries < self.max_retries:
            try:
                logger.info(f"Calling {name}")
                response = self.session.post(
                    url,
                    json={"data": data},
                    headers=DEFAULT_HEADERS,
                    timeout=self.timeout
                )

                if response.status_code == 200:
                    body = _json_or_empty(response)
                    if "error" in body:
                        raise FunctionsError(_error_message(body), status=response.status_code)
                    if "result" not in body:
                        logger.error(f"Invalid response from {name}: missing result")
                        raise FunctionsError("Invalid response from server", status=response.status_code)
                    return body["result"]

                retries += 1
                wait_time = self.retry_delay * retries

                if response.status_code == 429:
                    logger.warning(f"Rate limit exceeded calling {name}. Retrying in {wait_time}s... (Attempt {retries}/{self.max_retries})")
                elif 500 <= response.status_code < 600:
                    logger.warning(f"Server error: HTTP {response.status_code} calling {name}. Retrying in {wait_time}s... (Attempt {retries}/{self.max_retries})")
                else:
                    message = _error_message(_json_or_empty(response))
                    logger.error(f"Client error: HTTP {response.status_code} calling {name} - {message}")
                    raise FunctionsError(message, status=response.status_code)

                if retries < self.max_retries:
                    time.sleep(wait_time)

            except requests.exceptions.RequestException as e:
                retries += 1
                wait_time = self.retry_delay * retries
                logger.warning(f"Connection error calling {name}: {e}. Retrying in {wait_time}s... (Attempt {retries}/{self.max_retries})")
                if retries < self.max_retries:
                    time.sleep(wait_time)

        logger.error(f"Failed to call {name} after {self.max_retries} attempts")
        raise FunctionsError(f"Failed to call {name} after {self.max_retries} attempts")

    def get_nearby_events(self, latitude, longitude, radius_km=DEFAULT_EVENT_RADIUS_KM) -> List[Event]:
        query = NearbyQuery(latitude=latitude, longitude=longitude, radius_km=radius_km)
        result = self.call("getNearbyEvents", query.model_dump(by_alias=True))
        events = _parse_records(result, "events", Event)
        logger.info(f"Successfully fetched {len(events)} nearby events")
        return events

    def get_nearby_signals(self, latitude, longitude, radius_km=DEFAULT_SIGNAL_RADIUS_KM) -> List[Signal]:
        query = NearbyQuery(latitude=latitude, longitude=longitude, radius_km=radius_km)
        result = self.call("getNearbySignals", query.model_dump(by_alias=True))
        signals = _parse_records(result, "signals", Signal)
        logger.info(f"Successfully fetched {len(signals)} nearby signals")
        return signals

    def create_event(self, title, latitude, longitude, radius_meters=60, tags=None) -> Event:
        request = CreateEventRequest(
            title=title,
            latitude=latitude,
            longitude=longitude,
            radius_meters=radius_meters,
            tags=tags or []
        )
        result = self.call("createEvent", request.model_dump(by_alias=True))
        return _parse_record(result, "event", Event)

    def create_signal(self, event_id, latitude, longitude, signal_strength=5) -> Signal:
        request = CreateSignalRequest(
            event_id=event_id,
            latitude=latitude,
            longitude=longitude,
            signal_strength=signal_strength
        )
        result = self.call("createSignal", request.model_dump(by_alias=True))
        return _parse_record(result, "signal", Signal)


def _json_or_empty(response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _error_message(body: Dict[str, Any]) -> str:
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("message") or error.get("status") or "Unknown error"
    if isinstance(error, str):
        return error
    return "Unknown error"


def _parse_records(result, key, model):
    records = result.get(key) if isinstance(result, dict) else None
    if not isinstance(records, list):
        raise FunctionsError("Invalid response from server")

    parsed = []
    for record in records:
        try:
            parsed.append(model.model_validate(record))
        except ValidationError as e:
            # Skip records the backend sent in a shape we cannot display
            record_id = record.get("id") if isinstance(record, dict) else None
            logger.error(f"Validation error for {model.__name__.lower()} {record_id}: {e.errors()}")
    return parsed


def _parse_record(result, key, model):
    record = result.get(key) if isinstance(result, dict) else None
    if not isinstance(record, dict):
        raise FunctionsError("Invalid response")
    try:
        return model.model_validate(record)
    except ValidationError as e:
        logger.error(f"Validation error for {model.__name__.lower()} {record.get('id')}: {e.errors()}")
        raise FunctionsError(f"Invalid {key} in response") from e
