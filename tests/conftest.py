import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.db.database import create_tables


class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self.body = body

    def json(self):
        if self.body is None:
            raise ValueError("No JSON object could be decoded")
        return self.body


class FakeSession:
    """Stands in for requests.Session; replays queued responses or exceptions in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeRegistration:
    def __init__(self, feed, subscription):
        self.feed = feed
        self.subscription = subscription
        self.removed = False

    def remove(self):
        self.removed = True
        self.feed.subscriptions.remove(self.subscription)


class FakeChangeFeed:
    """In-process change feed filtering documents by an inclusive key range, like a Firestore listener."""

    def __init__(self):
        self.subscriptions = []
        self.subscribe_count = 0

    def subscribe(self, collection, field, start, end, on_changes, on_error):
        self.subscribe_count += 1
        subscription = {
            "collection": collection,
            "field": field,
            "start": start,
            "end": end,
            "on_changes": on_changes,
            "on_error": on_error,
        }
        self.subscriptions.append(subscription)
        return FakeRegistration(self, subscription)

    def emit(self, collection, changes):
        for subscription in list(self.subscriptions):
            if subscription["collection"] != collection:
                continue
            key = subscription["field"]
            matching = [
                change for change in changes
                if subscription["start"] <= change.document.get(key, "") <= subscription["end"]
            ]
            if matching:
                subscription["on_changes"](matching)

    def fail(self, collection, error):
        for subscription in list(self.subscriptions):
            if subscription["collection"] == collection:
                subscription["on_error"](error)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    yield db
    db.close()


@pytest.fixture
def feed():
    return FakeChangeFeed()
