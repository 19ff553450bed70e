"""
Realtime Module
-------------
Keeps the nearby events and signals in sync with the backend's change feed.
Subscriptions are keyed by a geohash prefix and restarted when the viewing location moves to a new cell.
"""
