import os
import tempfile
from datetime import datetime, timedelta

import pytest

_tmp = tempfile.mkdtemp(prefix="feedhub-tests-")
TEST_AUTH_KEY = "test-identity-provider-key"

# configure before anything from app/ is imported
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmp, 'feedhub.db')}"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["STORAGE_DIR"] = os.path.join(_tmp, "blobs")
os.environ["PUBLIC_BASE_URL"] = "http://testserver"
os.environ["AUTH_PUBLIC_KEY"] = TEST_AUTH_KEY
os.environ["AUTH_ALGORITHMS"] = "HS256"
os.environ.pop("AUTH_AUDIENCE", None)
os.environ.pop("AUTH_ISSUER", None)

from fastapi.testclient import TestClient  # noqa: E402
from jose import jwt  # noqa: E402

from main import app  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.session import SessionLocal, engine  # noqa: E402


def make_token(external_id: str, expires_in: timedelta = timedelta(minutes=30), **claims) -> str:
    payload = {"sub": external_id, "exp": datetime.utcnow() + expires_in, **claims}
    return jwt.encode(payload, TEST_AUTH_KEY, algorithm="HS256")


def auth_headers(external_id: str) -> dict:
    return {"Authorization": f"Bearer {make_token(external_id)}"}


@pytest.fixture(autouse=True)
def fresh_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def sign_up(client):
    """Sync a user through the API; returns (user_id, headers)."""

    def _sign_up(external_id: str, name: str, email: str, avatar=None):
        headers = auth_headers(external_id)
        response = client.post(
            "/api/auth/sync",
            json={"name": name, "email": email, "avatar": avatar},
            headers=headers,
        )
        assert response.status_code == 200, response.text
        return response.json()["user_id"], headers

    return _sign_up


PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00\x1f\x15\xc4\x89"
    b"\x00\x00\x00\rIDATx\x9cc\xf8\x0f\x00\x00\x01\x01\x00\x05\x18\xd8N\x00\x00\x00\x00IEND\xaeB`\x82"
)


@pytest.fixture
def upload_image(client):
    """Run the two-step upload; returns the storage id."""

    def _upload(headers, data: bytes = PNG_BYTES, content_type: str = "image/png"):
        ticket = client.post("/api/storage/upload-url", headers=headers).json()
        response = client.post(ticket["uploadUrl"], content=data, headers={"Content-Type": content_type})
        assert response.status_code == 200, response.text
        return response.json()["storageId"]

    return _upload


@pytest.fixture
def headers_for():
    return auth_headers


@pytest.fixture
def token_for():
    return make_token


@pytest.fixture
def png_bytes():
    return PNG_BYTES
