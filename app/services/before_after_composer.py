import io
import os
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from typing import List, Optional

from flask import current_app
from PIL import Image, ImageDraw, ImageFont, ImageOps

from app.extensions import db
from app.security_utils import as_utc
from app.models.Composite import BeforeAfterComposite
from app.services.errors import PhotoLoadError
from app.services.photo_analysis import ensure_phash, hamming_distance
from app.services.photo_loader import load_photo_bytes
from app.services.similar_photo_detector import similarity_from_distance
from app.utils.logging_utils import get_logger, log_context
from app.utils.model_utils import composite_utils, photo_utils

logger = get_logger("composites")

PHOTO_SIZE = (800, 600)
FRAME_MARGIN = 40
LABEL_HEIGHT = 80
FRAME_GAP = 60
CANVAS_PADDING = 100
LABEL_COLOR = (0x1E, 0x88, 0xE5)
CANVAS_COLOR = (240, 240, 240)
BEFORE_ROTATION = 2
AFTER_ROTATION = -3
WEBP_QUALITY = 85
JPEG_QUALITY = 90
FONT_PATH = "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"

CATEGORY_PHRASES = {
    "water-heater": "water heater",
    "drain": "drain line",
    "leak": "leak repair",
    "toilet": "toilet repair",
    "faucet": "faucet and fixture",
    "gas": "gas line",
    "backflow": "backflow device",
    "commercial": "commercial plumbing",
    "general-plumbing": "plumbing",
}


@dataclass(frozen=True)
class BeforeAfterPair:
    before_photo: object
    after_photo: object
    similarity: int
    confidence: float
    reasoning: str


def _minimum_similarity() -> int:
    return int(current_app.config.get("BEFORE_AFTER_MIN_SIMILARITY", 71))


def _duplicate_similarity() -> int:
    return int(current_app.config.get("PHOTO_SIMILARITY_THRESHOLD", 85))


def detect_before_after_pairs(photos) -> List[BeforeAfterPair]:
    """
    Two photos of one job and category are a before/after pair when their
    perceptual similarity says "same scene" but stays below the duplicate
    threshold.  The earlier photo is the before shot.  Pairs are taken
    greedily by confidence so no photo lands in two composites.
    """
    if len(photos) < 2:
        return []

    low, high = _minimum_similarity(), _duplicate_similarity()
    hashes = {}

    def phash_of(photo):
        # one load attempt per photo, even when it fails
        if photo.id not in hashes:
            hashes[photo.id] = ensure_phash(photo)
        return hashes[photo.id]

    candidates = []
    for i, first in enumerate(photos):
        for second in photos[i + 1:]:
            if first.category != second.category or first.job_id != second.job_id:
                continue
            hash_1, hash_2 = phash_of(first), phash_of(second)
            if not hash_1 or not hash_2:
                continue
            similarity = similarity_from_distance(hamming_distance(hash_1, hash_2))
            if not (low <= similarity < high):
                continue
            confidence = similarity / 100.0
            if confidence <= 0.7:
                continue
            before, after = (first, second) if first.taken_at <= second.taken_at else (second, first)
            candidates.append(BeforeAfterPair(
                before_photo=before,
                after_photo=after,
                similarity=similarity,
                confidence=confidence,
                reasoning=f"same {first.category} scene, {similarity}% similar",
            ))

    candidates.sort(key=lambda p: (-p.confidence, p.before_photo.taken_at))
    used = set()
    pairs = []
    for pair in candidates:
        if pair.before_photo.id in used or pair.after_photo.id in used:
            continue
        used.update((pair.before_photo.id, pair.after_photo.id))
        pairs.append(pair)
        logger.info("Found pair before=%s after=%s confidence=%.2f",
                    pair.before_photo.id, pair.after_photo.id, pair.confidence)
    return pairs


def _load_font(size: int):
    try:
        return ImageFont.truetype(FONT_PATH, size)
    except (OSError, IOError):
        return ImageFont.load_default()


def _fit_cover(image_bytes: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(image_bytes))
    img = ImageOps.exif_transpose(img).convert("RGB")
    return ImageOps.fit(img, PHOTO_SIZE, Image.LANCZOS)


def _polaroid(photo: Image.Image, label: str) -> Image.Image:
    width = PHOTO_SIZE[0] + FRAME_MARGIN * 2
    height = PHOTO_SIZE[1] + FRAME_MARGIN + LABEL_HEIGHT
    frame = Image.new("RGBA", (width, height), (255, 255, 255, 255))
    frame.paste(photo, (FRAME_MARGIN, FRAME_MARGIN))

    draw = ImageDraw.Draw(frame)
    font = _load_font(36)
    left, top, right, bottom = draw.textbbox((0, 0), label, font=font)
    x = (width - (right - left)) // 2
    y = PHOTO_SIZE[1] + FRAME_MARGIN + (LABEL_HEIGHT - (bottom - top)) // 2
    draw.text((x, y), label, fill=LABEL_COLOR, font=font)
    return frame


def create_before_after_composite(before_bytes: bytes, after_bytes: bytes, output_path: str) -> str:
    """
    Stack the two shots as tilted polaroid frames on a light grey card and
    write a WebP to ``output_path``.
    """
    before = _polaroid(_fit_cover(before_bytes), "BEFORE")
    after = _polaroid(_fit_cover(after_bytes), "AFTER")
    frame_w, frame_h = before.size

    canvas = Image.new("RGB", (frame_w + CANVAS_PADDING, frame_h * 2 + FRAME_GAP + CANVAS_PADDING), CANVAS_COLOR)
    for frame, angle, offset in (
        (before, BEFORE_ROTATION, (50, 20)),
        (after, AFTER_ROTATION, (30, frame_h + FRAME_GAP)),
    ):
        tilted = frame.rotate(angle, resample=Image.BICUBIC, expand=True)
        canvas.paste(tilted, offset, tilted)

    os.makedirs(os.path.dirname(output_path), exist_ok=True)
    canvas.save(output_path, "WEBP", quality=WEBP_QUALITY)
    logger.info("Composite written path=%s", output_path)
    return output_path


def _sentence(text: Optional[str], fallback: str) -> str:
    text = (text or "").strip().rstrip(".")
    if not text:
        return fallback
    return text[0].upper() + text[1:] + "."


def contact_footer() -> str:
    cfg = current_app.config
    return f"\U0001F4DE Call us: {cfg['BUSINESS_PHONE']}\n\U0001F310 Visit: {cfg['BUSINESS_URL']}"


def generate_caption(pair: BeforeAfterPair) -> str:
    cfg = current_app.config
    phrase = CATEGORY_PHRASES.get(pair.before_photo.category, "plumbing")
    problem = _sentence(pair.before_photo.description, f"This {phrase} needed some attention")
    fix = _sentence(pair.after_photo.description, "Our team had it fixed and working like new")
    body = (
        f"Before and after! {problem} {fix} "
        f"Need {phrase} help in {cfg['BUSINESS_SERVICE_AREA']}? {cfg['BUSINESS_NAME']} is ready when you are."
    )
    # footer is appended after the cap
    if len(body) > 260:
        body = body[:257].rstrip() + "..."
    hashtag = "#" + re.sub(r"[^A-Za-z]", "", phrase.title())
    return f"{body} {hashtag} #Plumbing\n\n{contact_footer()}"


def _composite_filename(job_id: str) -> str:
    safe_job = re.sub(r"[^A-Za-z0-9_-]", "", job_id or "nojob") or "nojob"
    return f"before_after_{safe_job}_{uuid.uuid4().hex[:12]}.webp"


def process_before_after_pairs(photos, job_id: str) -> List[BeforeAfterComposite]:
    """Render a composite per detected pair; returns unsaved rows."""
    pairs = detect_before_after_pairs(photos)
    if not pairs:
        logger.info("No before/after pairs found in job %s", job_id)
        return []

    folder = current_app.config["COMPOSITES_FOLDER"]
    composites = []
    for pair in pairs:
        filename = _composite_filename(job_id)
        try:
            create_before_after_composite(
                load_photo_bytes(pair.before_photo.photo_url),
                load_photo_bytes(pair.after_photo.photo_url),
                os.path.join(folder, filename),
            )
        except (PhotoLoadError, OSError, ValueError) as exc:
            logger.error("Composite failed job=%s before=%s after=%s: %s",
                         job_id, pair.before_photo.id, pair.after_photo.id, exc)
            continue

        composites.append(BeforeAfterComposite(
            before_photo_id=pair.before_photo.id,
            after_photo_id=pair.after_photo.id,
            before_photo_url=pair.before_photo.photo_url,
            after_photo_url=pair.after_photo.photo_url,
            before_photo_score=pair.before_photo.quality_score or 0,
            after_photo_score=pair.after_photo.quality_score or 0,
            composite_url=f"/attached_assets/composites/{filename}",
            caption=generate_caption(pair),
            category=pair.before_photo.category,
            job_id=job_id,
            similarity_score=pair.similarity,
        ))
        pair.before_photo.mark_used()
        pair.after_photo.mark_used()
    return composites


def create_composites_for_job(job_id: str) -> List[BeforeAfterComposite]:
    photos = photo_utils.photos_for_job(job_id)
    if len(photos) < 2:
        return []
    composites = process_before_after_pairs(photos, job_id)
    return composite_utils.save_composites(composites)


def create_daily_composites(now: Optional[datetime] = None) -> int:
    """
    Build composites from the last 24 hours of photos, once per UTC day.
    Each job is processed on its own; a failing job is rolled back and logged.
    """
    now = as_utc(now) or datetime.now(timezone.utc)
    day_start = datetime.combine(now.date(), time.min, tzinfo=timezone.utc)
    with log_context(job="daily_composites", day=now.date().isoformat()):
        if composite_utils.composite_created_on_day(day_start):
            logger.info("Composites already created today, skipping")
            return 0

        recent = photo_utils.photos_since(now - timedelta(hours=24))
        jobs = {job: photos for job, photos in photo_utils.group_by_job(recent).items() if len(photos) >= 2}
        logger.info("Daily composites: %s recent photos, %s eligible jobs", len(recent), len(jobs))

        created = 0
        for job_id, photos in jobs.items():
            try:
                saved = composite_utils.save_composites(process_before_after_pairs(photos, job_id))
            except Exception:
                db.session.rollback()
                logger.exception("Daily composites failed for job %s", job_id)
                continue
            created += len(saved)
        logger.info("Daily composites created=%s", created)
        return created


def download_filename(composite: BeforeAfterComposite) -> str:
    words = re.findall(r"[A-Za-z0-9]+", composite.caption or "")[:6]
    stem = "-".join(w.lower() for w in words) or "before-after"
    return f"{stem}-{str(composite.id)[:8]}.jpg"


def render_jpeg(composite: BeforeAfterComposite) -> io.BytesIO:
    img = Image.open(io.BytesIO(load_photo_bytes(composite.composite_url))).convert("RGB")
    buffer = io.BytesIO()
    img.save(buffer, "JPEG", quality=JPEG_QUALITY)
    buffer.seek(0)
    return buffer
