from __future__ import annotations

import pytest

from voice_recipe.api.routes.recipes import get_generator
from voice_recipe.core.config import get_settings


@pytest.fixture(autouse=True)
def clear_cached_settings():
    get_settings.cache_clear()
    get_generator.cache_clear()
    yield
    get_settings.cache_clear()
    get_generator.cache_clear()
