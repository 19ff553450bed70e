"""
API Module
---------
Provides RESTful API endpoints for the geohash utilities and cached crowd data using FastAPI.
Features include:
- Encoding, decoding and neighbor lookup for geohashes
- Prefix range queries and radius-to-precision selection
- Nearby events and signals from the local cache
- Syncing the cache from the backend in the background
"""
