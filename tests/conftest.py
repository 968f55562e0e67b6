"""Shared fixtures: an isolated database and upload directory per test."""

import pytest
from fastapi.testclient import TestClient

from catalog_api.app.core.config import settings
from catalog_api.app.main import create_app

from .helpers import promote_to_admin, register


@pytest.fixture
def isolated_settings(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "database_url", str(tmp_path / "catalog-test.db"))
    monkeypatch.setattr(settings, "upload_dir", str(tmp_path / "uploads"))
    monkeypatch.setattr(settings, "keep_alive_url", "")
    monkeypatch.setattr(settings, "public_base_url", "")
    monkeypatch.setattr(settings, "cloudinary_cloud_name", "")
    monkeypatch.setattr(settings, "environment", "development")
    return settings


@pytest.fixture
def client(isolated_settings):
    with TestClient(create_app()) as test_client:
        yield test_client


@pytest.fixture
def user(client) -> dict:
    return register(client)


@pytest.fixture
def other_user(client) -> dict:
    return register(client, name="Ravi Kumar", email="ravi@example.com", phone="9123456780")


@pytest.fixture
def admin(client) -> dict:
    session = register(client, name="Store Admin", email="admin@example.com", phone="9988776655")
    promote_to_admin(session["user"]["id"])
    session["user"]["role"] = "admin"
    return session
