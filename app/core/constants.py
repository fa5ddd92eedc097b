"""
Business constants for the booking flow.

Kept in code (not in the database) so request validation never has to
touch the network.
"""

CITIES = [
    {"name": "Sydney", "slug": "sydney"},
    {"name": "Melbourne", "slug": "melbourne"},
    {"name": "Brisbane", "slug": "brisbane"},
    {"name": "Perth", "slug": "perth"},
    {"name": "Adelaide", "slug": "adelaide"},
    {"name": "Canberra", "slug": "canberra"},
]

SERVICES = [
    {"name": "Regular Cleaning", "slug": "regular-cleaning"},
    {"name": "Deep Cleaning", "slug": "deep-cleaning"},
    {"name": "End of Lease", "slug": "end-of-lease"},
]

CITY_SLUGS = frozenset(city["slug"] for city in CITIES)
SERVICE_SLUGS = frozenset(service["slug"] for service in SERVICES)

# Prices in whole dollars
BASE_PRICES = {
    "regular-cleaning": 120,
    "deep-cleaning": 180,
    "end-of-lease": 250,
}

EXTRA_PRICES = {
    "windows": 30,
    "fridge": 25,
}

MIN_DURATION_HOURS = 2
MAX_DURATION_HOURS = 8
DEFAULT_DURATION_HOURS = 3

POSTCODE_LENGTH = 4
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 100
