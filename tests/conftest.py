import pytest

from builders import make_board


@pytest.fixture
def board():
    return make_board()
