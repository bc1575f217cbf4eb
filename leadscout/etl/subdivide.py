"""Split a wide area into sub-region search tasks to surface more listings."""

from typing import Iterable, List, Optional, Tuple

from leadscout.core.models import SearchTask

FOOD_DRINK_CATEGORIES = (
    "restaurants",
    "bars",
    "pubs",
    "cafes",
    "coffee shops",
    "bistros",
    "taverns",
    "diners",
    "eateries",
    "tapas bars",
    "wine bars",
    "cocktail bars",
    "breweries",
    "food trucks",
    "pizzerias",
    "fast food",
    "takeaway",
    "bakeries",
    "ice cream shops",
    "juice bars",
)

DIRECTIONS = ("North", "South", "East", "West", "Central")
AREA_SUFFIXES = (
    "downtown",
    "old town",
    "city center",
    "historic center",
    "business district",
    "commercial area",
    "industrial area",
    "residential area",
    "suburbs",
    "outskirts",
)
CATCH_ALL_TERM = "businesses"


def split_location(location: str) -> Tuple[str, str]:
    """Return (main area, country tail) from e.g. "Madrid, Community of Madrid, Spain"."""
    parts = [part.strip() for part in location.split(",")]
    return parts[0], ", ".join(parts[1:])


def _with_country(area: str, country: str) -> str:
    return f"{area}, {country}" if country else area


def _direction_variants(location: str) -> List[str]:
    main_area, country = split_location(location)
    return [_with_country(f"{direction} {main_area}", country) for direction in DIRECTIONS]


def _district_variants(location: str) -> List[str]:
    main_area, country = split_location(location)
    variants = [_with_country(f"{main_area} {suffix}", country) for suffix in AREA_SUFFIXES]
    variants.append(_with_country(f"near {main_area}", country))
    return variants


def subdivide_location(location: str) -> List[str]:
    return [location] + _direction_variants(location) + _district_variants(location)


def generate_zone_searches(location: str, zones: int = 10) -> List[str]:
    """Numbered district / zone / area variants for very large cities."""
    main_area, country = split_location(location)
    searches = [location]
    for index in range(1, zones + 1):
        searches.append(_with_country(f"{main_area} district {index}", country))
        searches.append(_with_country(f"{main_area} zone {index}", country))
    for index in range(1, min(zones, 5) + 1):
        searches.append(_with_country(f"{main_area} area {index}", country))
    return searches


def plan(
    location: str,
    *,
    include_directions: bool = True,
    include_districts: bool = True,
    include_zones: bool = False,
    zone_count: int = 5,
    categories: Iterable[str] = FOOD_DRINK_CATEGORIES,
) -> List[SearchTask]:
    """Combine every category with every location variant, without repeats."""
    locations = [location]
    if include_directions:
        locations.extend(_direction_variants(location))
    if include_districts:
        locations.extend(_district_variants(location))
    if include_zones:
        locations.extend(generate_zone_searches(location, zone_count))

    category_list = list(categories)
    tasks: List[SearchTask] = []
    seen = set()
    for loc in locations:
        for category in category_list:
            task = f"{category} in {loc}"
            if task not in seen:
                seen.add(task)
                tasks.append(task)
    return tasks


def build_search_query(query: Optional[str], location: str) -> SearchTask:
    term = query.strip() if query and query.strip() else CATCH_ALL_TERM
    return f"{term} in {location}"
