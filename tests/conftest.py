from typing import NamedTuple

import pytest
from sqlalchemy.orm import Session, close_all_sessions

from tests.models import Base, Planet, Star, engine


class OneTimeData(NamedTuple):
    star_ids: list[int]
    planet_ids: list[int]


@pytest.fixture(scope="session", autouse=True)
def setup_database():
    Base.metadata.create_all(engine)

    # Three stars with two planets each, enough to make N+1 patterns visible
    with Session(engine) as session:
        stars = [
            Star(name=name, planets=[Planet(name=f"{name} b"), Planet(name=f"{name} c")])
            for name in ("Sun", "Sirius", "Vega")
        ]
        session.add_all(stars)
        session.commit()

        one_time_data = OneTimeData(
            star_ids=[star.id for star in stars],
            planet_ids=[planet.id for star in stars for planet in star.planets],
        )

    yield one_time_data

    close_all_sessions()

    Base.metadata.drop_all(engine)


@pytest.fixture
def session():
    with Session(engine) as session:
        yield session
