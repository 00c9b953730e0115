"""Provider category vocabularies mapped onto internal taxonomy slugs.

Every function is pure: raw provider strings in, ordered de-duplicated
slugs out (primary first).  The reverse tables (slug -> provider
filter values) are used by adapters to shape outgoing requests.
"""

from __future__ import annotations

from collections.abc import Iterable

# (segment, genre, slug); first matching rule per segment wins, genre-specific first
TICKETMASTER_RULES: list[tuple[str, str | None, str]] = [
    ("Music", "Dance/Electronic", "event.nightlife_party"),
    ("Music", None, "event.concert_show"),
    ("Sports", "Athletic Races", "event.sport_race_endurance"),
    ("Sports", None, "event.sport_match_fan"),
    ("Film", None, "event.cinema_screening"),
    ("Arts & Theatre", "Children's Theatre", "event.kids_family"),
    ("Arts & Theatre", "Fine Art", "event.museum_exhibition"),
    ("Arts & Theatre", "Music", "event.concert_show"),
    ("Arts & Theatre", None, "event.theatre_performing_arts"),
    ("Miscellaneous", "Fairs & Festivals", "event.festival_city_event"),
    ("Miscellaneous", "Holiday", "event.festival_city_event"),
    ("Miscellaneous", "Family", "event.kids_family"),
    ("Miscellaneous", "Comedy", "event.concert_show"),
    ("Miscellaneous", "Lecture/Seminar", "event.workshop_course"),
    ("Miscellaneous", "Hobby/Special Interest Expos", "event.museum_exhibition"),
    ("Miscellaneous", "Community/Civic", "event.community_club_series"),
    ("Miscellaneous", "Health/Wellness", "event.activity_class"),
    ("Undefined", None, "event.other"),
    ("Miscellaneous", None, "event.other"),
]

PREDICTHQ_CATEGORIES: dict[str, str] = {
    "concerts": "event.concert_show",
    "performing-arts": "event.theatre_performing_arts",
    "sports": "event.sport_match_fan",
    "festivals": "event.festival_city_event",
    "community": "event.community_club_series",
    "conferences": "event.conference_meetup",
    "expos": "event.museum_exhibition",
    "academic": "event.workshop_course",
    "school-holidays": "event.kids_family",
    "public-holidays": "event.festival_city_event",
    "observances": "event.festival_city_event",
    "politics": "event.other",
    "daylight-savings": "event.other",
    "airport-delays": "event.other",
    "severe-weather": "event.other",
    "disasters": "event.other",
    "terror": "event.other",
    "health-warnings": "event.other",
}

GEOAPIFY_PREFIX_RULES: list[tuple[str, str]] = [
    ("catering.restaurant", "place.food_restaurant"),
    ("catering.cafe", "place.food_cafe_coffee"),
    ("catering.fast_food", "place.food_fast_street"),
    ("catering.bar", "place.bar_pub"),
    ("catering.pub", "place.bar_pub"),
    ("catering.taproom", "place.bar_pub"),
    ("adult.nightclub", "place.nightlife_club"),
    ("entertainment.cinema", "place.culture_cinema"),
    ("entertainment.museum", "place.culture_museum_gallery"),
    ("entertainment.culture", "place.culture_theatre_venue"),
    ("leisure.park", "place.outdoor_park_garden"),
    ("beach", "place.outdoor_beach_waterfront"),
    ("sport", "place.sport_fitness_stadium"),
    ("service.beauty", "place.spa_wellness_sauna"),
    ("commercial.shopping_mall", "place.shopping_mall_department"),
    ("commercial.department_store", "place.shopping_mall_department"),
    ("commercial.marketplace", "place.shopping_market_souvenir"),
    ("commercial.food_and_drink", "place.shopping_market_souvenir"),
    ("commercial.gift_and_souvenir", "place.shopping_market_souvenir"),
    ("tourism.attraction", "place.sight_landmark_historic"),
    ("tourism.sights", "place.sight_landmark_historic"),
    ("religion.place_of_worship", "place.sight_religion_worship"),
    ("leisure.playground", "place.kids_playground"),
]

GOOGLE_TYPES: dict[str, str] = {
    "restaurant": "place.food_restaurant",
    "cafe": "place.food_cafe_coffee",
    "bakery": "place.food_dessert_bakery",
    "bar": "place.bar_pub",
    "night_club": "place.nightlife_club",
    "movie_theater": "place.culture_cinema",
    "museum": "place.culture_museum_gallery",
    "art_gallery": "place.culture_museum_gallery",
    "zoo": "place.family_zoo_aqua_theme",
    "aquarium": "place.family_zoo_aqua_theme",
    "amusement_park": "place.family_zoo_aqua_theme",
    "bowling_alley": "place.fun_bowling_arcade_escape",
    "park": "place.outdoor_park_garden",
    "beach": "place.outdoor_beach_waterfront",
    "gym": "place.sport_fitness_stadium",
    "stadium": "place.sport_fitness_stadium",
    "sports_complex": "place.sport_fitness_stadium",
    "spa": "place.spa_wellness_sauna",
    "shopping_mall": "place.shopping_mall_department",
    "department_store": "place.shopping_mall_department",
    "tourist_attraction": "place.sight_landmark_historic",
    "place_of_worship": "place.sight_religion_worship",
}

# Substring rules over lowercased "name short_name"; first hit wins
FOURSQUARE_NAME_RULES: list[tuple[str, str]] = [
    ("restaurant", "place.food_restaurant"),
    ("food court", "place.food_fast_street"),
    ("fast food", "place.food_fast_street"),
    ("coffee", "place.food_cafe_coffee"),
    ("bakery", "place.food_dessert_bakery"),
    ("dessert", "place.food_dessert_bakery"),
    ("bar", "place.bar_pub"),
    ("pub", "place.bar_pub"),
    ("nightclub", "place.nightlife_club"),
    ("karaoke", "place.nightlife_club"),
    ("museum", "place.culture_museum_gallery"),
    ("art gallery", "place.culture_museum_gallery"),
    ("theater", "place.culture_theatre_venue"),
    ("cinema", "place.culture_cinema"),
    ("zoo", "place.family_zoo_aqua_theme"),
    ("aquarium", "place.family_zoo_aqua_theme"),
    ("theme park", "place.family_zoo_aqua_theme"),
    ("water park", "place.family_zoo_aqua_theme"),
    ("bowling", "place.fun_bowling_arcade_escape"),
    ("arcade", "place.fun_bowling_arcade_escape"),
    ("escape room", "place.fun_bowling_arcade_escape"),
    ("park", "place.outdoor_park_garden"),
    ("trail", "place.outdoor_nature_hiking"),
    ("beach", "place.outdoor_beach_waterfront"),
    ("gym", "place.sport_fitness_stadium"),
    ("stadium", "place.sport_fitness_stadium"),
    ("sports club", "place.sport_fitness_stadium"),
    ("spa", "place.spa_wellness_sauna"),
    ("sauna", "place.spa_wellness_sauna"),
    ("mall", "place.shopping_mall_department"),
    ("shopping center", "place.shopping_mall_department"),
    ("market", "place.shopping_market_souvenir"),
    ("gift shop", "place.shopping_market_souvenir"),
    ("souvenir", "place.shopping_market_souvenir"),
    ("historic site", "place.sight_landmark_historic"),
    ("monument", "place.sight_landmark_historic"),
    ("castle", "place.sight_landmark_historic"),
    ("church", "place.sight_religion_worship"),
    ("cathedral", "place.sight_religion_worship"),
    ("temple", "place.sight_religion_worship"),
    ("mosque", "place.sight_religion_worship"),
    ("synagogue", "place.sight_religion_worship"),
    ("playground", "place.kids_playground"),
    ("kids", "place.kids_playground"),
]

# Request-shaping tables: internal slug -> provider filter values
PLACE_TO_GEOAPIFY: dict[str, list[str]] = {
    "place.food_restaurant": ["catering.restaurant"],
    "place.food_cafe_coffee": ["catering.cafe"],
    "place.food_fast_street": ["catering.fast_food"],
    "place.food_dessert_bakery": ["catering.cafe.ice_cream", "catering.cafe.dessert", "commercial.food_and_drink.bakery"],
    "place.bar_pub": ["catering.bar", "catering.pub", "catering.taproom"],
    "place.nightlife_club": ["adult.nightclub"],
    "place.culture_museum_gallery": ["entertainment.museum", "entertainment.culture.gallery"],
    "place.culture_theatre_venue": ["entertainment.culture.theatre", "entertainment.culture.arts_centre"],
    "place.culture_cinema": ["entertainment.cinema"],
    "place.family_zoo_aqua_theme": [
        "entertainment.zoo",
        "entertainment.aquarium",
        "entertainment.theme_park",
        "entertainment.water_park",
    ],
    "place.fun_bowling_arcade_escape": [
        "entertainment.bowling_alley",
        "entertainment.amusement_arcade",
        "entertainment.escape_game",
        "entertainment.miniature_golf",
    ],
    "place.outdoor_park_garden": ["leisure.park"],
    "place.outdoor_nature_hiking": ["natural.forest", "natural.mountain"],
    "place.outdoor_beach_waterfront": ["beach", "beach.beach_resort"],
    "place.sport_fitness_stadium": [
        "sport.fitness.fitness_centre",
        "sport.stadium",
        "sport.swimming_pool",
        "sport.ice_rink",
    ],
    "place.spa_wellness_sauna": ["service.beauty.spa", "service.beauty.massage", "building.spa"],
    "place.shopping_mall_department": ["commercial.shopping_mall", "commercial.department_store"],
    "place.shopping_market_souvenir": [
        "commercial.marketplace",
        "commercial.food_and_drink",
        "commercial.gift_and_souvenir",
    ],
    "place.sight_landmark_historic": ["tourism.attraction", "tourism.sights"],
    "place.sight_religion_worship": ["religion.place_of_worship", "tourism.sights.place_of_worship"],
    "place.kids_playground": ["leisure.playground"],
}

PLACE_TO_GOOGLE: dict[str, list[str]] = {
    "place.food_restaurant": ["restaurant"],
    "place.food_cafe_coffee": ["cafe"],
    "place.food_fast_street": ["restaurant", "meal_takeaway"],
    "place.food_dessert_bakery": ["bakery"],
    "place.bar_pub": ["bar"],
    "place.nightlife_club": ["night_club"],
    "place.culture_museum_gallery": ["museum", "art_gallery"],
    "place.culture_cinema": ["movie_theater"],
    "place.family_zoo_aqua_theme": ["zoo", "aquarium", "amusement_park"],
    "place.fun_bowling_arcade_escape": ["bowling_alley", "amusement_center"],
    "place.outdoor_park_garden": ["park"],
    "place.outdoor_nature_hiking": ["park", "natural_feature"],
    "place.outdoor_beach_waterfront": ["beach"],
    "place.sport_fitness_stadium": ["gym", "stadium", "sports_complex"],
    "place.spa_wellness_sauna": ["spa"],
    "place.shopping_mall_department": ["shopping_mall", "department_store"],
    "place.shopping_market_souvenir": ["grocery_or_supermarket", "store"],
    "place.sight_landmark_historic": ["tourist_attraction"],
    "place.sight_religion_worship": ["place_of_worship"],
    "place.kids_playground": ["park"],
}


def _unique(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(v for v in values if v))


def map_ticketmaster(raw: Iterable[str]) -> list[str]:
    """Map flattened segment/genre/subGenre names to event slugs.

    A rule matches when its segment (and genre, if set) appears among the
    raw names, compared case-insensitively.
    """
    names = {str(r).strip().lower() for r in raw if r}
    return _unique(
        slug
        for segment, genre, slug in TICKETMASTER_RULES
        if segment.lower() in names and (genre is None or genre.lower() in names)
    )


def map_predicthq(raw: Iterable[str]) -> list[str]:
    return _unique(PREDICTHQ_CATEGORIES.get(str(r).strip().lower(), "") for r in raw if r)


def map_geoapify(raw: Iterable[str]) -> list[str]:
    slugs = []
    for category in raw:
        for prefix, slug in GEOAPIFY_PREFIX_RULES:
            if str(category).startswith(prefix):
                slugs.append(slug)
                break
    return _unique(slugs)


def map_google(raw: Iterable[str]) -> list[str]:
    return _unique(GOOGLE_TYPES.get(str(t), "") for t in raw)


def map_foursquare(names: Iterable[str]) -> list[str]:
    """Primary category only: the first substring rule matching any name."""
    haystack = [str(n).lower() for n in names if n]
    for needle, slug in FOURSQUARE_NAME_RULES:
        if any(needle in name for name in haystack):
            return [slug]
    return []


def geoapify_filters_for(slugs: Iterable[str] | None) -> list[str]:
    keys = list(slugs or []) or list(PLACE_TO_GEOAPIFY)
    return _unique(value for key in keys for value in PLACE_TO_GEOAPIFY.get(key, []))


def google_types_for(slugs: Iterable[str] | None) -> list[str]:
    keys = list(slugs or [])
    return _unique(value for key in keys for value in PLACE_TO_GOOGLE.get(key, []))
