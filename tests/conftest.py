import pytest

from .helpers import make_repo


@pytest.fixture
def repo():
    r = make_repo()
    r.init()
    return r
