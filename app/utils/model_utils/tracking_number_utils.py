from __future__ import annotations

import json
from typing import List, Optional

from app.extensions import db
from app.models.TrackingNumber import TrackingNumber
from app.utils.logging_utils import get_logger

from .base import list_instances

logger = get_logger("model_utils")

SEED_TRACKING_NUMBERS = [
    {
        "channel_key": "default",
        "channel_name": "Default/Organic",
        "display_number": "(512) 368-9159",
        "raw_number": "5123689159",
        "tel_link": "tel:+15123689159",
        "detection_rules": {"isDefault": True, "patterns": []},
        "is_default": True,
        "sort_order": 0,
    },
    {
        "channel_key": "google",
        "channel_name": "Google Ads",
        "display_number": "(512) 368-9159",
        "raw_number": "5123689159",
        "tel_link": "tel:+15123689159",
        "detection_rules": {"urlParams": ["gclid"], "utmSources": ["google"], "referrerIncludes": ["google.com"]},
        "sort_order": 1,
    },
    {
        "channel_key": "facebook",
        "channel_name": "Facebook/Instagram Ads",
        "display_number": "(512) 575-3157",
        "raw_number": "5125753157",
        "tel_link": "tel:+15125753157",
        "detection_rules": {
            "urlParams": ["fbclid"],
            "utmSources": ["facebook", "instagram", "fb", "ig"],
            "referrerIncludes": ["facebook.com", "instagram.com"],
        },
        "sort_order": 2,
    },
    {
        "channel_key": "yelp",
        "channel_name": "Yelp",
        "display_number": "(512) 893-7316",
        "raw_number": "5128937316",
        "tel_link": "tel:+15128937316",
        "detection_rules": {"utmSources": ["yelp"], "referrerIncludes": ["yelp.com"]},
        "sort_order": 3,
    },
    {
        "channel_key": "nextdoor",
        "channel_name": "Nextdoor",
        "display_number": "(512) 846-9146",
        "raw_number": "5128469146",
        "tel_link": "tel:+15128469146",
        "detection_rules": {"utmSources": ["nextdoor"], "referrerIncludes": ["nextdoor.com"]},
        "sort_order": 4,
    },
]


def list_tracking_numbers(active_only: bool = False) -> List[TrackingNumber]:
    filters = [TrackingNumber.is_active.is_(True)] if active_only else None
    return list_instances(TrackingNumber, filters=filters,
                          order_by=[TrackingNumber.sort_order.asc(), TrackingNumber.id.asc()],
                          context={"function": "list_tracking_numbers"})


def clear_other_defaults(keep: Optional[TrackingNumber]) -> None:
    """Unset ``is_default`` everywhere except ``keep``; caller commits."""
    query = TrackingNumber.query.filter(TrackingNumber.is_default.is_(True))
    if keep is not None and keep.id is not None:
        query = query.filter(TrackingNumber.id != keep.id)
    for other in query.all():
        other.is_default = False


def seed_tracking_numbers() -> List[TrackingNumber]:
    """Insert the stock channel numbers; returns ``[]`` when any number already exists."""
    if TrackingNumber.query.count() > 0:
        return []
    created = []
    for data in SEED_TRACKING_NUMBERS:
        row = dict(data)
        row["detection_rules"] = json.dumps(row["detection_rules"])
        number = TrackingNumber(is_active=True, **row)
        db.session.add(number)
        created.append(number)
    db.session.commit()
    logger.info("Seeded %s tracking numbers", len(created))
    return created
