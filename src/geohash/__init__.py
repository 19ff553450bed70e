"""
Geohash Module
-------------
Encodes coordinates into base-32 geohash keys and decodes them back into cell centers.
Provides haversine distance, radius-to-precision selection, neighbor lookup and the
prefix ranges used to query and subscribe to entities stored by geohash.
"""
