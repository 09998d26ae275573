import os

import pytest

from bestiary.index import BestiaryIndex

FIXTURES = os.path.join(os.path.dirname(__file__), "fixtures")
BESTIARY_FILE = os.path.join(FIXTURES, "bestiary-sample.json")
TEMPLATES_FILE = os.path.join(FIXTURES, "templates-sample.json")


@pytest.fixture
def index() -> BestiaryIndex:
    return BestiaryIndex.from_paths([BESTIARY_FILE, TEMPLATES_FILE])


@pytest.fixture
def lookups(index):
    return index.lookups()
