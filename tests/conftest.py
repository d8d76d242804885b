from datetime import datetime, timezone
from io import BytesIO

import pytest
from PIL import Image

from kioskinstall.config import TestConfig
from kioskinstall.domain.project import CapturedImage, GeoLocation, ImageCategory, ProjectImages
from kioskinstall.extensions import db
from kioskinstall.server import create_app
from kioskinstall.utils.image_utils import encode_data_url

FIXED_NOW = datetime(2026, 10, 19, 18, 30, 0, tzinfo=timezone.utc)


def render_frame(width=640, height=480, color=(30, 120, 200), fmt='JPEG'):
    image = Image.new('RGB', (width, height), color)
    output = BytesIO()
    image.save(output, format=fmt)
    return output.getvalue()


@pytest.fixture
def frame_factory():
    return render_frame


@pytest.fixture
def image_factory():
    """Build CapturedImage records with a small real JPEG payload."""
    payload = encode_data_url(render_frame(96, 64))
    counter = {'n': 0}

    def make(category=ImageCategory.BEFORE, lat=40.712776, lng=-74.005974, timestamp='10/19/2026, 2:30:00 PM'):
        counter['n'] += 1
        return CapturedImage(
            id=f"img-{counter['n']}",
            data_url=payload,
            timestamp=timestamp,
            location=GeoLocation(lat=lat, lng=lng),
            category=category,
        )
    return make


@pytest.fixture
def full_images(image_factory):
    """A (6, 9, 2) image set that satisfies every category minimum."""
    return ProjectImages(
        before=tuple(image_factory(ImageCategory.BEFORE) for _ in range(6)),
        after=tuple(image_factory(ImageCategory.AFTER) for _ in range(9)),
        receiving=tuple(image_factory(ImageCategory.RECEIVING) for _ in range(2)),
    )


@pytest.fixture
def app(tmp_path):
    class IsolatedConfig(TestConfig):
        REPORT_OUTPUT_DIR = str(tmp_path / 'reports')
        LOGS_DIR = str(tmp_path / 'logs')

    app = create_app(IsolatedConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def app_ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login(client):
    """Sign in through the role picker and return request headers."""
    def do_login(role='FIELD_USER'):
        resp = client.post('/api/session/login', json={'role': role})
        assert resp.status_code == 200, resp.get_json()
        return {
            'Authentication-Token': resp.get_json()['token'],
            'Accept': 'application/json',
        }
    return do_login
