"""Tests for health check functionality."""
import pytest

from fxrates.config import Config
from fxrates.health import HealthStatus, check_database, check_provider, get_health_status
from fxrates.services import build_services
from conftest import FakeProvider


class UnreachableProvider(FakeProvider):
    def health_check(self) -> bool:
        return False


@pytest.fixture
def services(temp_config_file, database):
    services = build_services(Config(temp_config_file), provider=FakeProvider(), database=database)
    yield services
    services.refresher.shutdown(wait=True)


def test_check_database(services):
    result = check_database(services)
    assert result["status"] == HealthStatus.HEALTHY
    assert "message" in result


def test_check_database_unhealthy(services, monkeypatch):
    def broken_ping():
        raise RuntimeError("connection refused")

    monkeypatch.setattr(services.database, "ping", broken_ping)
    result = check_database(services)
    assert result["status"] == HealthStatus.UNHEALTHY
    assert "connection refused" in result["message"]


def test_check_provider(services):
    assert check_provider(services)["status"] == HealthStatus.HEALTHY


def test_get_health_status(services):
    status = get_health_status(services)

    assert status["status"] == HealthStatus.HEALTHY
    assert "timestamp" in status
    assert set(status["components"]) == {"database", "provider"}


def test_provider_outage_only_degrades(temp_config_file, database):
    services = build_services(Config(temp_config_file), provider=UnreachableProvider(), database=database)
    try:
        status = get_health_status(services)
        assert status["status"] == HealthStatus.DEGRADED
        assert status["components"]["provider"]["status"] == HealthStatus.DEGRADED
    finally:
        services.refresher.shutdown(wait=True)


def test_skip_provider_check(services):
    status = get_health_status(services, include_provider=False)
    assert set(status["components"]) == {"database"}
