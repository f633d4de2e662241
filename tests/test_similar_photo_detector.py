import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from app.services.photo_analysis import hamming_distance
from app.services.similar_photo_detector import (
    KEEP_BOTH,
    KEEP_FIRST,
    KEEP_SECOND,
    compare_photos,
    find_similar_photos,
    group_photos_by_potential_similarity,
    similarity_from_distance,
)

T0 = datetime(2025, 3, 4, 9, 0, tzinfo=timezone.utc)

# pairwise distances: A-B 8, B-C 8, A-C 16, A-D 32
HASH_A = '0000000000000000'
HASH_B = '00000000000000ff'
HASH_C = '000000000000ffff'
HASH_D = '00000000ffffffff'


def fake_photo(phash, job_id='job-1', category='drain', quality=50, taken_at=T0):
    return SimpleNamespace(id=uuid.uuid4(), phash=phash, job_id=job_id, category=category,
                           quality_score=quality, taken_at=taken_at)


class TestSimilarity:
    """Hash distance and comparison helpers."""

    def test_hamming_distance(self):
        assert hamming_distance(HASH_A, HASH_A) == 0
        assert hamming_distance(HASH_A, HASH_B) == 8
        assert hamming_distance(HASH_A, 'ffffffffffffffff') == 64

    def test_similarity_from_distance(self):
        assert similarity_from_distance(0) == 100
        assert similarity_from_distance(64) == 0
        assert similarity_from_distance(16) == 75

    def test_compare_prefers_higher_quality(self, app):
        low = fake_photo(HASH_A, quality=30)
        high = fake_photo(HASH_B, quality=80)
        result = compare_photos(low, high, low.phash, high.phash)
        assert result.recommended == KEEP_SECOND
        assert result.similarity_score >= 85

        result = compare_photos(high, low, high.phash, low.phash)
        assert result.recommended == KEEP_FIRST

    def test_compare_below_threshold_keeps_both(self, app):
        a, c = fake_photo(HASH_A), fake_photo(HASH_C)
        result = compare_photos(a, c, a.phash, c.phash)
        assert result.recommended == KEEP_BOTH
        assert result.distance == 16


class TestGrouping:
    """Candidate groups before pairwise comparison."""

    def test_groups_by_job_id(self, app):
        photos = [fake_photo(HASH_A, job_id='j1'), fake_photo(HASH_A, job_id='j1'), fake_photo(HASH_A, job_id='j2')]
        groups = group_photos_by_potential_similarity(photos)
        assert len(groups) == 1
        assert {p.job_id for p in groups[0]} == {'j1'}

    def test_fallback_requires_category_and_time_window(self, app):
        seed = fake_photo(HASH_A, job_id=None, category='drain')
        near = fake_photo(HASH_A, job_id=None, category='drain', taken_at=T0 + timedelta(hours=23))
        far = fake_photo(HASH_A, job_id=None, category='drain', taken_at=T0 + timedelta(hours=25))
        other_category = fake_photo(HASH_A, job_id=None, category='leak', taken_at=T0 + timedelta(hours=1))

        groups = group_photos_by_potential_similarity([seed, near, far, other_category])
        assert len(groups) == 1
        assert {p.id for p in groups[0]} == {seed.id, near.id}

    def test_single_photos_are_not_groups(self, app):
        assert group_photos_by_potential_similarity([fake_photo(HASH_A)]) == []


class TestFindSimilarPhotos:
    """Connected components of near-identical photos."""

    def test_groups_are_transitive(self, app):
        a = fake_photo(HASH_A, quality=40)
        b = fake_photo(HASH_B, quality=90)
        c = fake_photo(HASH_C, quality=60)
        groups = find_similar_photos([a, b, c])

        assert len(groups) == 1
        group = groups[0]
        assert {p.id for p in group.photos} == {a.id, b.id, c.id}
        assert group.best_photo_id == b.id
        assert set(group.photos_to_delete) == {a.id, c.id}

    def test_unrelated_photo_survives(self, app):
        a = fake_photo(HASH_A, quality=70)
        b = fake_photo(HASH_B, quality=50)
        d = fake_photo(HASH_D, quality=10)
        groups = find_similar_photos([a, b, d])

        assert len(groups) == 1
        assert d.id not in {p.id for p in groups[0].photos}
        assert groups[0].photos_to_delete == [b.id]

    def test_quality_tie_keeps_earliest(self, app):
        later = fake_photo(HASH_A, quality=50, taken_at=T0 + timedelta(minutes=5))
        earlier = fake_photo(HASH_A, quality=50, taken_at=T0)
        groups = find_similar_photos([later, earlier])
        assert groups[0].best_photo_id == earlier.id

    def test_photos_without_hash_are_skipped(self, app):
        a = fake_photo(HASH_A)
        missing = fake_photo(None)
        assert find_similar_photos([a, missing]) == []

    def test_custom_hash_source(self, app):
        a, b = fake_photo(None), fake_photo(None)
        hashes = {a.id: HASH_A, b.id: HASH_A}
        groups = find_similar_photos([a, b], hash_for=lambda p: hashes[p.id])
        assert len(groups) == 1

    @pytest.mark.parametrize('threshold, expected_groups', [(85, 1), (90, 0)])
    def test_threshold_is_configurable(self, app, threshold, expected_groups):
        app.config['PHOTO_SIMILARITY_THRESHOLD'] = threshold
        # distance 8 -> 88% similar
        assert len(find_similar_photos([fake_photo(HASH_A), fake_photo(HASH_B)])) == expected_groups
