from collections.abc import Callable, Iterable
from functools import partial
from unittest.mock import MagicMock

import pytest

from seqre.dao.base import RecordBaseDAO
from seqre.utils.validators import validate_target_url


@pytest.fixture
def codes() -> Callable[[Iterable[str]], Callable[[], str]]:
    """Turn a list of short codes into a shortcode_factory handing them out in order."""

    def factory(values: Iterable[str]) -> Callable[[], str]:
        return iter(values).__next__

    return factory


@pytest.fixture
def offline_validator() -> Callable[[str], str]:
    """URL validator that never touches DNS."""
    return partial(validate_target_url, resolve=False)


@pytest.fixture
def mock_dao() -> Callable[[type], MagicMock]:
    def factory(model: type) -> MagicMock:
        dao = MagicMock(spec=RecordBaseDAO)
        dao.model = model
        return dao

    return factory
