"""Unit tests for environment-driven settings."""
from market_gateway.settings import Settings


def test_defaults():
    settings = Settings.model_validate({})

    assert settings.environment == "development"
    assert settings.is_production is False
    assert settings.expose_errors is False


def test_environment_variable_sets_production():
    settings = Settings.model_validate({"ENVIRONMENT": "production"})

    assert settings.is_production is True


def test_node_style_variable_is_ignored():
    settings = Settings.model_validate({"NODE_ENV": "production"})

    assert settings.environment == "development"


def test_expose_errors_flag():
    assert Settings.model_validate({"EXPOSE_ERRORS": "true"}).expose_errors is True
