import io
import os
import random
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from flask_jwt_extended import create_access_token
from PIL import Image

from app import create_app
from app.extensions import db
from app.models.Composite import BeforeAfterComposite
from app.models.Photo import Photo
from app.models.User import User, Role
from app.utils.model_utils.user_utils import ensure_admin_user

ADMIN_PASSWORD = 'Admin#2024pass'


@pytest.fixture(scope='function')
def app(tmp_path):
    """Create application for testing."""
    os.environ['FLASK_ENV'] = 'testing'

    app = create_app('testing', overrides={
        'UPLOAD_FOLDER': str(tmp_path / 'uploads'),
        'ASSETS_FOLDER': str(tmp_path / 'attached_assets'),
        'COMPOSITES_FOLDER': str(tmp_path / 'attached_assets' / 'composites'),
        'LOGGING_BASE_DIR': str(tmp_path / 'logs'),
        'LOG_FILE': str(tmp_path / 'logs' / 'app.log'),
        'PUBLIC_BASE_URL': 'https://example.test',
    })

    with app.app_context():
        # Create all tables
        db.create_all()
        yield app
        db.session.remove()
        # Drop all tables
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def runner(app):
    """Create test CLI runner."""
    return app.test_cli_runner()


@pytest.fixture(scope='function')
def admin_user(app):
    """Whitelisted admin account."""
    return ensure_admin_user('admin', 'admin@example.com', ADMIN_PASSWORD)


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    token = create_access_token(identity=str(admin_user.id))
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def create_user(app):
    """Create a plain (non-admin) user."""
    def _create_user(username='testuser', email='test@example.com', password='User#2024pass', role=Role.USER):
        user = User(username=username, email=email, is_active=True)
        user.set_password(password)
        user.add_role(role)
        db.session.add(user)
        db.session.commit()
        return user
    return _create_user


@pytest.fixture(scope='function')
def user_headers(create_user):
    user = create_user()
    token = create_access_token(identity=str(user.id))
    return {'Authorization': f'Bearer {token}'}


def noise_image(seed, size=(640, 480), blocks=(32, 24)):
    """Blocky grey noise; the same seed gives the same scene at any size."""
    rng = random.Random(seed)
    small = Image.new('RGB', blocks)
    small.putdata([(v, v, v) for v in (rng.randrange(256) for _ in range(blocks[0] * blocks[1]))])
    return small.resize(size, Image.NEAREST)


def image_bytes(img, fmt='JPEG', **save_kwargs):
    buffer = io.BytesIO()
    img.save(buffer, fmt, **save_kwargs)
    return buffer.getvalue()


@pytest.fixture(scope='function')
def write_upload(app):
    """Write image bytes into the upload folder and return the public url."""
    def _write_upload(data, name=None):
        name = name or f'{uuid.uuid4().hex}.jpg'
        with open(os.path.join(app.config['UPLOAD_FOLDER'], name), 'wb') as fh:
            fh.write(data)
        return f'/uploads/{name}'
    return _write_upload


@pytest.fixture(scope='function')
def create_photo(app, write_upload):
    """Persist a Photo row backed by a real image file."""
    def _create_photo(seed=1, job_id='job-1', category='water-heater', quality_score=60,
                      uploaded_at=None, size=(640, 480), jpeg_quality=90, phash=None, **extra):
        url = write_upload(image_bytes(noise_image(seed, size=size), quality=jpeg_quality))
        photo = Photo(
            photo_url=url,
            job_id=job_id,
            category=category,
            quality_score=quality_score,
            is_good_quality=quality_score >= 40,
            uploaded_at=uploaded_at or datetime.now(timezone.utc),
            phash=phash,
            **extra,
        )
        db.session.add(photo)
        db.session.commit()
        return photo
    return _create_photo


@pytest.fixture(scope='function')
def create_composite(app):
    def _create_composite(before_score=50, after_score=50, created_at=None, posted_at=None, **extra):
        composite = BeforeAfterComposite(
            before_photo_url='/uploads/before.jpg',
            after_photo_url='/uploads/after.jpg',
            before_photo_score=before_score,
            after_photo_score=after_score,
            composite_url=extra.pop('composite_url', '/attached_assets/composites/test.webp'),
            caption=extra.pop('caption', 'Before and after! #Plumbing'),
            category='water-heater',
            job_id=extra.pop('job_id', 'job-1'),
            created_at=created_at or datetime.now(timezone.utc) - timedelta(hours=1),
            posted_at=posted_at,
            **extra,
        )
        db.session.add(composite)
        db.session.commit()
        return composite
    return _create_composite


@pytest.fixture(scope='function')
def make_image():
    """Encoded noise image bytes; see ``noise_image``."""
    def _make_image(seed=1, size=(640, 480), fmt='JPEG', **save_kwargs):
        return image_bytes(noise_image(seed, size=size), fmt, **save_kwargs)
    return _make_image
