"""Default rows written into an empty store by DataService.initialize()."""

from typing import Dict, List

INITIAL_USERS: List[Dict[str, str]] = [
    {"username": "admin@timetracker.app", "password": "admin123", "name": "System Admin", "role": "admin"},
    {"username": "stacy@timetracker.app", "password": "stacy123", "name": "Stacy", "role": "user"},
    {"username": "jeremy@timetracker.app", "password": "jeremy123", "name": "Jeremy", "role": "user"},
    {"username": "humberto@timetracker.app", "password": "humberto123", "name": "Humberto", "role": "user"},
    {"username": "enrique@timetracker.app", "password": "enrique123", "name": "Enrique", "role": "user"},
    {"username": "drew@timetracker.app", "password": "drew123", "name": "Drew", "role": "user"},
    {"username": "enriquesr@timetracker.app", "password": "enriquesr123", "name": "Enrique Sr", "role": "user"},
    {"username": "karen@timetracker.app", "password": "karen123", "name": "Karen", "role": "user"},
    {"username": "anthony@timetracker.app", "password": "anthony123", "name": "Anthony", "role": "user"},
    {"username": "angela@timetracker.app", "password": "angela123", "name": "Angela", "role": "user"},
]

INITIAL_JOB_ADDRESSES: List[str] = [
    "1620 Spruce St",
    "1710 OOB, LLC",
    "4 Hayden Ln",
    "408 Kintner LLC",
    "4301 N Delaware OOB",
    "451 Perry Auger, LLC",
    "520 Kintner Road LLC",
    "730 Lonely Cottage, LLC",
    "7658 Easton Road, LLC",
    "804 N Broad St",
    "Amida Special Opportunity Fund",
    "Aquadilla, OOB",
    "CDD 2016 Irv Trust",
    "Daniel Cohen",
    "ECPM Admin",
    "Gimme Shelter",
    "Headquarters Rd",
    "15 Headquarters Rd",
    "Lot 126",
    "Matthew Chaikin",
    "Michael Axelrod and Affiliated Companies",
    "PP Loom, LLC",
    "Rafi Licht",
    "746 S 4th St",
    "Ruby Development",
    "24-30 Bank St",
]

INITIAL_CSI_TASKS: List[str] = [
    "General Construction",
    "Site Preparation",
    "Concrete",
    "Masonry",
    "Metals",
    "Wood, Plastics, and Composites",
    "Thermal and Moisture Protection",
    "Openings",
    "Finishes",
    "Specialties",
    "Equipment",
    "Furnishings",
    "Special Construction",
    "Conveying Equipment",
    "Fire Suppression",
    "Plumbing",
    "HVAC",
    "Electrical",
    "Communications",
    "Electronic Safety and Security",
]

# Served by get_available_task_names() when the catalog cannot be read at all
FALLBACK_TASK_NAMES: List[str] = ["General", "Plumbing", "Electrical", "Carpentry", "Masonry", "HVAC"]
