# rental_monitor/query.py
"""Search URL construction for the configured filter."""
from urllib.parse import urlencode, quote
from .config import SearchCriteria

BASE_URL = "https://www.airbnb.com"

def build_search_url(criteria: SearchCriteria, page: int = 1) -> str:
    bounds = criteria.map_bounds
    params = [
        ("refinement_paths[]", "/homes"),
        ("checkin", criteria.checkin),
        ("checkout", criteria.checkout),
        ("date_picker_type", "calendar"),
        ("adults", criteria.adults),
        ("guests", criteria.guests),
        ("search_type", "user_map_move"),
        ("channel", "EXPLORE"),
        ("room_types[]", criteria.room_type),
        ("selected_filter_order[]", f"room_types:{criteria.room_type}"),
        ("selected_filter_order[]", f"min_bedrooms:{criteria.min_bedrooms}"),
        ("selected_filter_order[]", f"price_max:{criteria.max_price}"),
        ("update_selected_filters", "true"),
        ("min_bedrooms", criteria.min_bedrooms),
        ("place_id", criteria.place_id),
        ("source", "structured_search_input_header"),
        ("query", criteria.location),
        ("search_mode", "regular_search"),
        ("ne_lat", bounds.ne_lat),
        ("ne_lng", bounds.ne_lng),
        ("sw_lat", bounds.sw_lat),
        ("sw_lng", bounds.sw_lng),
        ("zoom", bounds.zoom),
        ("zoom_level", bounds.zoom),
        ("search_by_map", "true"),
        ("price_max", criteria.max_price),
    ]
    if page > 1:
        params.append(("section_offset", page - 1))
    return f"{BASE_URL}/s/{quote(criteria.location, safe='')}/homes?{urlencode(params)}"
