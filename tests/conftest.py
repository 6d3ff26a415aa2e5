import io

import mongomock
import pytest
from mongoengine import disconnect

from app import create_app
from client import ApiClient
from models import Book, User

BASE_URL = "http://bookhaven.test"


class FakeUploader:
    """Stands in for Cloudinary; records uploads and returns predictable URLs."""

    def __init__(self):
        self.uploads = []

    def upload(self, file, folder):
        self.uploads.append((file.filename, folder))
        return f"https://media.test/{folder}/{file.filename}"


class FlaskResponse:
    def __init__(self, response):
        self.status_code = response.status_code
        self._response = response

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        data = self._response.get_json(silent=True)
        if data is None:
            raise ValueError("No JSON body")
        return data


class FlaskTestSession:
    """Routes ``requests``-style calls from ApiClient into the Flask test client."""

    def __init__(self, test_client):
        self.test_client = test_client
        self.calls = []

    def request(self, method, url, headers=None, json=None, data=None, files=None, timeout=None):
        path = url[len(BASE_URL):]
        self.calls.append((method, path))
        kwargs = {"headers": headers or {}}
        if json is not None:
            kwargs["json"] = json
        elif files:
            form = {k: v for k, v in (data or {}).items() if v is not None}
            for name, (filename, fileobj, *_) in files.items():
                form[name] = (fileobj, filename)
            kwargs["data"] = form
            kwargs["content_type"] = "multipart/form-data"
        elif data is not None:
            kwargs["data"] = {k: v for k, v in data.items() if v is not None}
        return FlaskResponse(self.test_client.open(path, method=method, **kwargs))


@pytest.fixture
def uploader():
    return FakeUploader()


@pytest.fixture
def app(uploader):
    app = create_app(
        {
            "TESTING": True,
            "JWT_SECRET_KEY": "test-jwt-secret",
            "SECRET_KEY": "test-flask-secret",
            "BCRYPT_LOG_ROUNDS": 4,
            "MONGODB_SETTINGS": {
                "db": "bookhaven_test",
                "host": "mongodb://localhost",
                "mongo_client_class": mongomock.MongoClient,
            },
        },
        media_uploader=uploader,
    )
    yield app
    User.drop_collection()
    Book.drop_collection()
    disconnect()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def register(client):
    def _register(username="alice", email="a@x.com", password="secret1"):
        return client.post(
            "/api/auth/register",
            json={"username": username, "email": email, "password": password},
        )
    return _register


@pytest.fixture
def alice(register):
    """Registered user: returns (token, user projection)."""
    data = register().get_json()
    return data["token"], data["user"]


@pytest.fixture
def bob(register):
    data = register("bob", "b@x.com", "secret2").get_json()
    return data["token"], data["user"]


@pytest.fixture
def api(app):
    return ApiClient(BASE_URL, session=FlaskTestSession(app.test_client()))


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def image(name="cover.png"):
    return (io.BytesIO(b"\x89PNG fake image"), name)
