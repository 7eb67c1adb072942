"""Fixture catalog data for local development and tests."""

from backend.tripgen.models.common import Geo
from backend.tripgen.models.places import CatalogCity, CatalogPlace

PARIS_CITY_ID = "city-paris"


def paris_city() -> CatalogCity:
    return CatalogCity(
        id=PARIS_CITY_ID,
        name="Paris",
        name_en="Paris",
        name_local="Paris",
        aliases=["Paree"],
        country_code="FR",
        currency="EUR",
        geo=Geo(lat=48.8566, lon=2.3522),
    )


def paris_places() -> list[CatalogPlace]:
    """A small curated Paris catalog."""
    return [
        CatalogPlace(
            id="place-eiffel",
            city_id=PARIS_CITY_ID,
            name="Eiffel Tower",
            aliases=["Eiffel Tower"],
            geo=Geo(lat=48.8584, lon=2.2945),
            rating=4.7,
            review_count=420000,
            editorial_summary="Wrought-iron lattice tower on the Champ de Mars.",
            tags=["landmark"],
            external_id="ChIJLU7jZClu5kcR4PcOOO6p3I0",
            entrance_fee=29.4,
        ),
        CatalogPlace(
            id="place-louvre",
            city_id=PARIS_CITY_ID,
            name="Louvre Museum",
            display_name_local="Musée du Louvre",
            geo=Geo(lat=48.8606, lon=2.3376),
            rating=4.7,
            review_count=310000,
            editorial_summary="The world's most-visited art museum.",
            tags=["museum"],
            external_id="ChIJD3uTd9hx5kcR1IQvGfr8dbk",
            entrance_fee=22.0,
        ),
        CatalogPlace(
            id="place-orsay",
            city_id=PARIS_CITY_ID,
            name="Musée d'Orsay",
            geo=Geo(lat=48.86, lon=2.3266),
            rating=4.8,
            review_count=120000,
            tags=["museum"],
            entrance_fee=16.0,
        ),
        CatalogPlace(
            id="place-sacre-coeur",
            city_id=PARIS_CITY_ID,
            name="Sacré-Cœur Basilica",
            geo=Geo(lat=48.8867, lon=2.3431),
            rating=4.7,
            tags=["landmark"],
        ),
        CatalogPlace(
            id="place-luxembourg",
            city_id=PARIS_CITY_ID,
            name="Luxembourg Gardens",
            display_name_local="Jardin du Luxembourg",
            geo=Geo(lat=48.8462, lon=2.3372),
            buzz_score=8.5,
            tags=["park"],
        ),
        CatalogPlace(
            id="place-comptoir",
            city_id=PARIS_CITY_ID,
            name="Le Comptoir du Relais",
            geo=Geo(lat=48.8521, lon=2.3389),
            rating=4.2,
            tags=["restaurant"],
        ),
        CatalogPlace(
            id="place-bouillon",
            city_id=PARIS_CITY_ID,
            name="Bouillon Chartier",
            geo=Geo(lat=48.8719, lon=2.3436),
            rating=4.3,
            tags=["restaurant"],
        ),
        CatalogPlace(
            id="place-angelina",
            city_id=PARIS_CITY_ID,
            name="Angelina Paris",
            geo=Geo(lat=48.8651, lon=2.3283),
            rating=4.3,
            tags=["cafe"],
        ),
    ]
