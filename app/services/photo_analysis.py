"""
Local photo analysis: perceptual hashing for duplicate detection and a
Pillow-based quality score used to pick the keeper of a duplicate group and
the best composite to post.
"""

import io
from dataclasses import dataclass

import imagehash
from flask import current_app
from PIL import Image, ImageFilter, ImageOps, ImageStat, UnidentifiedImageError

from app.models.enumerations import PhotoCategory
from app.services.errors import PhotoLoadError
from app.services.photo_loader import load_photo_bytes
from app.utils.logging_utils import get_logger

logger = get_logger("photos")

CATEGORIES = [c.value for c in PhotoCategory]
DEFAULT_CATEGORY = PhotoCategory.GENERAL.value

HASH_SIZE = 8
HASH_BITS = HASH_SIZE * HASH_SIZE

# resolution at or above which a photo earns the full resolution score
FULL_RES_PIXELS = 1280 * 960
# variance of the edge map at which sharpness saturates
SHARPNESS_SATURATION = 400.0


@dataclass(frozen=True)
class QualityReport:
    score: int
    is_good_quality: bool
    reason: str
    width: int
    height: int


def normalize_category(category) -> str:
    value = (category or "").strip().lower()
    return value if value in CATEGORIES else DEFAULT_CATEGORY


def _open(image_bytes: bytes) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(image_bytes))
        img.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise PhotoLoadError("<bytes>", "not a readable image") from exc
    return ImageOps.exif_transpose(img).convert("RGB")


def compute_phash(image_bytes: bytes) -> str:
    """16 hex digit (64-bit) perceptual hash."""
    return str(imagehash.phash(_open(image_bytes), hash_size=HASH_SIZE))


def hamming_distance(hash_a: str, hash_b: str) -> int:
    return bin(int(hash_a, 16) ^ int(hash_b, 16)).count("1")


def score_photo_quality(image_bytes: bytes) -> QualityReport:
    """
    Score 0-100 from three parts:

    * resolution, 40 points, linear up to ``FULL_RES_PIXELS``;
    * exposure, 30 points, best at mid-grey mean brightness;
    * sharpness, 30 points, variance of the edge map.
    """
    img = _open(image_bytes)
    width, height = img.size
    gray = img.convert("L")

    resolution = min(1.0, (width * height) / FULL_RES_PIXELS)
    brightness = ImageStat.Stat(gray).mean[0]
    exposure = max(0.0, 1.0 - abs(brightness - 128.0) / 128.0)
    edge_variance = ImageStat.Stat(gray.filter(ImageFilter.FIND_EDGES)).var[0]
    sharpness = min(1.0, edge_variance / SHARPNESS_SATURATION)

    score = int(round(40 * resolution + 30 * exposure + 30 * sharpness))
    score = max(0, min(100, score))

    problems = []
    if resolution < 0.25:
        problems.append("low resolution")
    if brightness < 40:
        problems.append("too dark")
    elif brightness > 215:
        problems.append("overexposed")
    if sharpness < 0.2:
        problems.append("blurry")
    reason = ", ".join(problems) if problems else "clear, well exposed"

    threshold = current_app.config.get("PHOTO_MIN_QUALITY_SCORE", 40)
    return QualityReport(score=score, is_good_quality=score >= threshold, reason=reason,
                         width=width, height=height)


def analyze_photo(photo, image_bytes: bytes = None):
    """Fill hash and quality fields on ``photo``; raises ``PhotoLoadError``."""
    if image_bytes is None:
        image_bytes = load_photo_bytes(photo.photo_url)
    report = score_photo_quality(image_bytes)
    photo.phash = compute_phash(image_bytes)
    photo.quality_score = report.score
    photo.is_good_quality = report.is_good_quality
    photo.quality_reason = report.reason
    photo.width = report.width
    photo.height = report.height
    photo.category = normalize_category(photo.category)
    logger.info("Analyzed photo url=%s score=%s phash=%s", photo.photo_url, report.score, photo.phash)
    return report


def ensure_phash(photo):
    """Stored hash, or compute and stage one.  ``None`` if the image is unavailable."""
    if photo.phash:
        return photo.phash
    try:
        photo.phash = compute_phash(load_photo_bytes(photo.photo_url))
    except PhotoLoadError as exc:
        logger.warning("Cannot hash photo %s: %s", photo.id, exc)
        return None
    return photo.phash
