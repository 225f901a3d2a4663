import pytest
from werkzeug.security import generate_password_hash

from navhub import create_app
from navhub.config import TestConfig
from navhub.extensions import db

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "correct horse"


@pytest.fixture
def app():
    app = create_app(TestConfig)
    app.config["AUTH_PASSWORD"] = generate_password_hash(
        ADMIN_PASSWORD, method=TestConfig.PASSWORD_HASH_METHOD
    )
    with app.app_context():
        db.drop_all()
        db.create_all()
    yield app


@pytest.fixture
def client(app):
    return app.test_client()
