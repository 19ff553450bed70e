"""
Data Models Module
----------------
Contains Pydantic models for data validation and serialization.
Defines request payloads, spatial queries, and the event and signal records returned by the backend,
translating between camelCase wire names and snake_case attributes.
"""
