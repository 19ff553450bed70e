"""
Database Module
-------------
Handles database connections, ORM models, and database operations.
Uses SQLAlchemy to cache fetched events and signals locally, indexed by geohash for prefix range scans.
"""
