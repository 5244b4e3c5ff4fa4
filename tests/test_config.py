"""
Test Settings
"""

import pytest
from pydantic import ValidationError

from covetalks.config import Settings


def test_price_lookup(settings):
    assert settings.price_id_for("Standard", "Monthly") == "price_standard_monthly"
    assert settings.price_id_for("Premium", "Yearly") == "price_premium_yearly"
    assert settings.price_id_for("Free", "Monthly") is None
    assert settings.price_id_for("Plus", "Weekly") is None


def test_log_level_is_normalised():
    assert Settings(log_level="debug").log_level == "DEBUG"


def test_invalid_log_level():
    with pytest.raises(ValidationError):
        Settings(log_level="LOUD")


def test_invalid_environment():
    with pytest.raises(ValidationError):
        Settings(environment="moon")


def test_environment_flags():
    assert Settings(environment="production").is_production
    assert Settings(environment="development").is_development
    assert not Settings(environment="test").is_production
