import pytest

from feedgen.models import init_db
from tests.fixtures import Clock


@pytest.fixture
def database(tmp_path):
    database = init_db(str(tmp_path / "feed.db"))
    yield database
    database.close()


@pytest.fixture
def clock():
    return Clock()
