"""
Functions Module
--------------
Client for the backend's callable Cloud Functions.
Fetches nearby events and signals and creates new ones, with retries on rate limiting and server errors.
"""
