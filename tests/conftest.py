import itertools
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app
from security import hash_password
from tokens import TokenService

SECRET = "test-secret"
SUPERADMIN_EMAIL = "root@moh.gov"
SUPERADMIN_PASSWORD = "RootPass123!"
PASSWORD = "Password123"


class Clock:
    """Settable clock handed to the token service"""

    def __init__(self, now=None):
        self.now = now or datetime(2025, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        secret_key=SECRET,
        database_path=str(tmp_path / "test.db"),
        superadmin_email=SUPERADMIN_EMAIL,
        superadmin_password=SUPERADMIN_PASSWORD,
    )


@pytest.fixture
def tokens(settings, clock):
    return TokenService.from_settings(settings, clock=clock)


@pytest.fixture
def app(settings, tokens):
    return create_app(settings, tokens)


@pytest.fixture
def db(app, settings):
    database = app.state.db
    database.init(settings.superadmin_email, settings.superadmin_password)
    return database


@pytest.fixture
def client(app, db):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def hospital(db):
    return db.create_hospital("Black Lion Hospital", "BLH-01", "addis ababa")


@pytest.fixture
def other_hospital(db):
    return db.create_hospital("Adama General", "ADG-01", "oromia")


@pytest.fixture
def pharmacy(db):
    return db.create_pharmacy("Kenema Pharmacy", "KEN-01", "addis ababa")


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make(role, profile=None, password=PASSWORD, is_active=True):
        n = next(counter)
        user_id = db.create_user(
            {
                "email": f"{role}{n}@example.com",
                "phone": f"+2519110000{n:02d}",
                "password_hash": hash_password(password),
                "first_name": role.replace("_", " ").title(),
                "last_name": str(n),
                "role": role,
            },
            profile,
        )
        if not is_active:
            db.set_user_active(user_id, False)
        return user_id

    return _make


@pytest.fixture
def patient_user(make_user):
    return make_user(
        "patient",
        {"date_of_birth": "1990-04-12", "gender": "female", "region": "oromia", "city": "Adama"},
    )


@pytest.fixture
def auth_headers(tokens):
    def _headers(user_id, role, **scope):
        token = tokens.issue({"sub": user_id, "role": role, **scope})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def patient_headers(patient_user, auth_headers):
    return auth_headers(patient_user, "patient")


@pytest.fixture
def superadmin_headers(client):
    r = client.post("/auth/login", json={"email": SUPERADMIN_EMAIL, "password": SUPERADMIN_PASSWORD})
    assert r.status_code == 200
    return {"Authorization": f"Bearer {r.json()['data']['accessToken']}"}
