import os
import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from PIL import Image

from app.extensions import db
from app.models.Composite import BeforeAfterComposite
from app.services.before_after_composer import (
    contact_footer,
    create_before_after_composite,
    create_composites_for_job,
    create_daily_composites,
    detect_before_after_pairs,
    download_filename,
    generate_caption,
)
from app.services.errors import PhotoLoadError

# 12 bits apart -> 81% similar: same scene, not a duplicate
BEFORE_HASH = '0000000000000000'
AFTER_HASH = '0000000000000fff'
DUPLICATE_HASH = '0000000000000001'
UNRELATED_HASH = 'ffffffff00000000'

EARLIER = datetime.now(timezone.utc) - timedelta(hours=3)
LATER = datetime.now(timezone.utc) - timedelta(hours=1)


class TestDetectPairs:

    def test_same_scene_pair_is_ordered_by_time(self, app, create_photo):
        after = create_photo(seed=1, phash=AFTER_HASH, uploaded_at=LATER, description='new tank installed')
        before = create_photo(seed=2, phash=BEFORE_HASH, uploaded_at=EARLIER, description='rusted tank')

        pairs = detect_before_after_pairs([after, before])

        assert len(pairs) == 1
        assert pairs[0].before_photo.id == before.id
        assert pairs[0].after_photo.id == after.id
        assert pairs[0].similarity == 81
        assert pairs[0].confidence > 0.7

    def test_duplicates_and_unrelated_are_not_pairs(self, app, create_photo):
        base = create_photo(seed=1, phash=BEFORE_HASH, uploaded_at=EARLIER)
        duplicate = create_photo(seed=1, phash=DUPLICATE_HASH, uploaded_at=LATER)
        unrelated = create_photo(seed=3, phash=UNRELATED_HASH, uploaded_at=LATER)
        assert detect_before_after_pairs([base, duplicate]) == []
        assert detect_before_after_pairs([base, unrelated]) == []

    def test_category_must_match(self, app, create_photo):
        before = create_photo(seed=1, phash=BEFORE_HASH, category='drain', uploaded_at=EARLIER)
        after = create_photo(seed=2, phash=AFTER_HASH, category='leak', uploaded_at=LATER)
        assert detect_before_after_pairs([before, after]) == []

    def test_a_photo_is_used_once(self, app, create_photo):
        before = create_photo(seed=1, phash=BEFORE_HASH, uploaded_at=EARLIER)
        after_1 = create_photo(seed=2, phash=AFTER_HASH, uploaded_at=LATER)
        after_2 = create_photo(seed=3, phash='00000000000007ff', uploaded_at=LATER)
        pairs = detect_before_after_pairs([before, after_1, after_2])
        used = [p.before_photo.id for p in pairs] + [p.after_photo.id for p in pairs]
        assert len(used) == len(set(used))

    def test_single_photo(self, app, create_photo):
        assert detect_before_after_pairs([create_photo(seed=1)]) == []

    def test_unloadable_photo_is_fetched_once(self, app, create_photo):
        broken = create_photo(seed=9, uploaded_at=EARLIER)
        broken.photo_url = '/uploads/gone.jpg'
        others = [create_photo(seed=n, phash=AFTER_HASH, uploaded_at=LATER) for n in (2, 3, 4)]
        failure = PhotoLoadError('/uploads/gone.jpg', 'not found')

        with patch('app.services.photo_analysis.load_photo_bytes', side_effect=failure) as load:
            pairs = detect_before_after_pairs([broken] + others)

        assert pairs == []
        assert load.call_count == 1
        assert broken.phash is None


class TestCompositeImage:

    def test_writes_polaroid_webp(self, app, make_image, tmp_path):
        out = tmp_path / 'out' / 'composite.webp'
        create_before_after_composite(make_image(seed=1), make_image(seed=2, size=(300, 900)), str(out))

        with Image.open(out) as img:
            assert img.format == 'WEBP'
            assert img.size == (980, 1600)


class TestCaption:

    def test_caption_has_contact_footer(self, app, create_photo):
        before = create_photo(seed=1, phash=BEFORE_HASH, uploaded_at=EARLIER, description='leaking water heater')
        after = create_photo(seed=2, phash=AFTER_HASH, uploaded_at=LATER)
        pair = detect_before_after_pairs([before, after])[0]

        caption = generate_caption(pair)

        assert caption.endswith(contact_footer())
        assert '512.575.3157' in caption
        assert 'Leaking water heater.' in caption
        assert '#WaterHeater' in caption

    def test_download_filename(self, app):
        composite = BeforeAfterComposite(caption='Before and after! Fixed it.')
        composite.id = uuid.UUID('12345678-1234-5678-1234-567812345678')
        assert download_filename(composite) == 'before-and-after-fixed-it-12345678.jpg'


class TestCreateComposites:

    def test_job_composites_are_saved(self, app, create_photo):
        before = create_photo(seed=1, phash=BEFORE_HASH, uploaded_at=EARLIER, quality_score=70, job_id='J-100')
        after = create_photo(seed=2, phash=AFTER_HASH, uploaded_at=LATER, quality_score=80, job_id='J-100')

        composites = create_composites_for_job('J-100')

        assert len(composites) == 1
        composite = BeforeAfterComposite.query.one()
        assert composite.before_photo_id == before.id
        assert composite.total_score == 150
        assert composite.posted_at is None
        assert composite.composite_url.startswith('/attached_assets/composites/before_after_J-100_')
        filename = composite.composite_url.rsplit('/', 1)[1]
        assert os.path.exists(os.path.join(app.config['COMPOSITES_FOLDER'], filename))
        assert before.is_used and after.is_used

    def test_missing_image_skips_pair(self, app, create_photo):
        before = create_photo(seed=1, phash=BEFORE_HASH, uploaded_at=EARLIER, job_id='J-200')
        create_photo(seed=2, phash=AFTER_HASH, uploaded_at=LATER, job_id='J-200')
        os.remove(os.path.join(app.config['UPLOAD_FOLDER'], before.photo_url.rsplit('/', 1)[1]))

        assert create_composites_for_job('J-200') == []
        assert BeforeAfterComposite.query.count() == 0

    def test_daily_run_happens_once_per_day(self, app, create_photo):
        create_photo(seed=1, phash=BEFORE_HASH, uploaded_at=EARLIER, job_id='J-300')
        create_photo(seed=2, phash=AFTER_HASH, uploaded_at=LATER, job_id='J-300')
        create_photo(seed=5, job_id='J-301')

        now = datetime.now(timezone.utc)
        assert create_daily_composites(now) == 1
        assert create_daily_composites(now) == 0
        assert BeforeAfterComposite.query.count() == 1

    def test_daily_run_ignores_old_photos(self, app, create_photo):
        old = datetime.now(timezone.utc) - timedelta(days=3)
        create_photo(seed=1, phash=BEFORE_HASH, uploaded_at=old, job_id='J-400')
        create_photo(seed=2, phash=AFTER_HASH, uploaded_at=old + timedelta(hours=1), job_id='J-400')
        assert create_daily_composites() == 0

    def test_daily_run_ignores_photos_without_upload_time(self, app, create_photo):
        before = create_photo(seed=1, phash=BEFORE_HASH, job_id='J-500')
        after = create_photo(seed=2, phash=AFTER_HASH, job_id='J-500')
        for photo in (before, after):
            photo.uploaded_at = None
        db.session.commit()

        assert create_daily_composites() == 0
        assert BeforeAfterComposite.query.count() == 0
