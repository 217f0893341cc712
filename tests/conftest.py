"""Shared fixtures for DockSign tests."""

import pytest

from docksign.config import Settings
from docksign.models import FieldPosition, FieldType, Requester, TemplateCreate, TemplateField
from docksign.store import Store


PASSWORD = "correct-horse-9"


@pytest.fixture
def tmp_store(tmp_path):
    """Create a temporary Store."""
    return Store(base_dir=tmp_path / "data")


@pytest.fixture
def settings(tmp_path):
    return Settings(
        data_dir=tmp_path / "data",
        secret_key="test-secret",
        bcrypt_rounds=4,
        max_upload_bytes=1024,
    )


@pytest.fixture
def alice():
    return Requester(id="0b6f2f6e-6a54-4d1f-9d0b-6c1f3f0b1a11", email="alice@example.com", name="Alice")


@pytest.fixture
def bob():
    return Requester(id="5c1a7d0e-2f3b-4b8e-a6f4-93d8c0e2b722", email="bob@example.com", name="Bob")


@pytest.fixture
def nda_fields():
    return [
        TemplateField(
            id="f1",
            type=FieldType.TEXT,
            label="Name",
            required=True,
            position=FieldPosition(x=0, y=0, width=100, height=20, page=1),
        ),
        TemplateField(
            id="f2",
            type=FieldType.CHECKBOX,
            label="Agree",
            position=FieldPosition(x=0, y=40, width=20, height=20, page=1),
        ),
        TemplateField(
            id="sig",
            type=FieldType.SIGNATURE,
            label="Signature",
            required=True,
            position=FieldPosition(x=0, y=0, width=200, height=50, page=2),
        ),
    ]


@pytest.fixture
def nda_template(tmp_store, alice, nda_fields):
    from docksign.templates import TemplateStore

    return TemplateStore(tmp_store).create(alice, TemplateCreate(name="NDA", fields=nda_fields))


@pytest.fixture
def sample_pdf() -> bytes:
    """Minimal valid PDF bytes for testing."""
    return (
        b"%PDF-1.4\n"
        b"1 0 obj<</Type/Catalog/Pages 2 0 R>>endobj\n"
        b"2 0 obj<</Type/Pages/Kids[3 0 R]/Count 1>>endobj\n"
        b"3 0 obj<</Type/Page/MediaBox[0 0 612 792]/Parent 2 0 R>>endobj\n"
        b"xref\n0 4\n"
        b"0000000000 65535 f \n"
        b"0000000009 00000 n \n"
        b"0000000058 00000 n \n"
        b"0000000115 00000 n \n"
        b"trailer<</Size 4/Root 1 0 R>>\n"
        b"startxref\n190\n%%EOF"
    )


@pytest.fixture
def client(settings):
    """TestClient over a fresh app and data directory."""
    from fastapi.testclient import TestClient

    from docksign.api import create_app

    app = create_app(settings=settings)
    with TestClient(app) as test_client:
        yield test_client


def _register_and_login(client, name: str, email: str) -> dict:
    resp = client.post(
        "/api/auth/register",
        json={"name": name, "email": email, "password": PASSWORD},
    )
    assert resp.status_code == 201, resp.text
    resp = client.post("/api/auth/token", json={"email": email, "password": PASSWORD})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['accessToken']}"}


@pytest.fixture
def alice_headers(client):
    return _register_and_login(client, "Alice", "alice@example.com")


@pytest.fixture
def bob_headers(client):
    return _register_and_login(client, "Bob", "bob@example.com")
