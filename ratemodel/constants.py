"""Unit constants shared across the engine."""

MONTHS_PER_YEAR = 12
UNITS_PER_RATE_BLOCK = 1000   # rates are quoted per 1000 gallons
TIER_SLOTS = 4
