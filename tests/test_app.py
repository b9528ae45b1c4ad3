import json

import config
from app import resolve_config_class


def test_config_aliases():
    assert resolve_config_class("test") is config.TestingConfig
    assert resolve_config_class("dev") is config.DevelopmentConfig
    assert resolve_config_class("unknown") is config.ProductionConfig


def test_testing_config_is_isolated(app):
    assert app.config["TESTING"] is True
    assert app.config["SQLALCHEMY_DATABASE_URI"] == "sqlite:///:memory:"
    assert app.config["GEMINI_API_KEY"] == ""


def test_responses_carry_request_id(client):
    response = client.get("/auth/login", headers={"X-Request-ID": "abc123"})
    assert response.headers["X-Request-ID"] == "abc123"
    assert client.get("/auth/login").headers["X-Request-ID"]


def test_unknown_page_renders_404(client):
    assert client.get("/no-such-page").status_code == 404


def test_export_state_command(app):
    result = app.test_cli_runner().invoke(args=["export-state"])
    assert result.exit_code == 0
    payload = json.loads(result.output)
    assert [u["houseNumber"] for u in payload["users"]] == ["SA01"]
    assert payload["queries"] == []
