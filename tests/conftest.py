import io

import pytest
from PIL import Image

from app import create_app
from utils.state_store import request_state, save_state


@pytest.fixture()
def app():
    app = create_app("testing")
    yield app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def ctx(app):
    """App and request context for calling the state services directly."""
    with app.test_request_context():
        yield app


@pytest.fixture()
def state(ctx):
    return request_state()


def png_bytes(color=(200, 30, 30)):
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture()
def register_user(app):
    """Add a user straight to the stored state document."""

    def _register(house, pin="1234", role="RESIDENT", phone="03001234567"):
        from utils import auth_service

        with app.test_request_context():
            state = request_state()
            user = auth_service.signup(state, house, phone, role, pin)
            save_state(state)
            return user.house_number

    return _register


def login(client, house, pin):
    return client.post("/auth/login", data={"house_number": house, "password": pin}, follow_redirects=False)
