"""Internal taxonomy: category slugs and their display names."""

from __future__ import annotations

EVENT_CATEGORIES: dict[str, str] = {
    "event.concert_show": "Concerts & Shows",
    "event.theatre_performing_arts": "Theatre & Performing Arts",
    "event.cinema_screening": "Cinema & Screenings",
    "event.museum_exhibition": "Exhibitions & Museum Events",
    "event.festival_city_event": "Festivals & City Events",
    "event.sport_match_fan": "Sport Matches & Fan Events",
    "event.sport_race_endurance": "Races & Endurance Events",
    "event.activity_class": "Activity Classes (Yoga, Dance, etc.)",
    "event.tour_excursion": "Tours & Excursions",
    "event.workshop_course": "Workshops & Short Courses",
    "event.conference_meetup": "Conferences & Meetups",
    "event.community_club_series": "Community Clubs & Series",
    "event.kids_family": "Kids & Family Events",
    "event.nightlife_party": "Nightlife & Parties",
    "event.online_event": "Online Events",
    "event.other": "Other Events",
}

PLACE_CATEGORIES: dict[str, str] = {
    "place.food_restaurant": "Restaurants",
    "place.food_cafe_coffee": "Cafes & Coffee Shops",
    "place.food_fast_street": "Fast Food & Street Food",
    "place.food_dessert_bakery": "Dessert Places & Bakeries",
    "place.bar_pub": "Bars & Pubs",
    "place.nightlife_club": "Nightclubs",
    "place.culture_museum_gallery": "Museums & Art Galleries",
    "place.culture_theatre_venue": "Theatres & Cultural Venues",
    "place.culture_cinema": "Cinemas",
    "place.family_zoo_aqua_theme": "Zoos, Aquaparks & Theme Parks",
    "place.fun_bowling_arcade_escape": "Bowling, Arcades & Escape Rooms",
    "place.outdoor_park_garden": "Parks & Gardens",
    "place.outdoor_nature_hiking": "Nature & Hiking Spots",
    "place.outdoor_beach_waterfront": "Beaches & Waterfronts",
    "place.sport_fitness_stadium": "Sports & Fitness Venues",
    "place.spa_wellness_sauna": "Spa & Wellness / Saunas",
    "place.shopping_mall_department": "Shopping Malls & Department Stores",
    "place.shopping_market_souvenir": "Markets & Souvenir Shops",
    "place.sight_landmark_historic": "Landmarks & Historic Sites",
    "place.sight_religion_worship": "Religious Sites",
    "place.kids_playground": "Kids Playgrounds & Play Centers",
    "place.other": "Other Places",
}


def is_event_slug(slug: str) -> bool:
    return slug in EVENT_CATEGORIES


def is_place_slug(slug: str) -> bool:
    return slug in PLACE_CATEGORIES
