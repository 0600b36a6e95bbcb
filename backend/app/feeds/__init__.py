"""
Disaster feeds package.

Modules:
    models      — DisasterRecord and its enums
    classifier  — keyword heuristics (type, severity, country, region)
    sources     — ReliefWeb API, GDACS RSS, ReliefWeb updates RSS
    curated     — fixed fallback records for known coverage gaps
    geocoder    — Nominatim lookups
    cache       — snapshot cache with TTL
    aggregator  — concurrent fetch, merge, enrich, cache
"""
