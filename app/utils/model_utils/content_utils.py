from __future__ import annotations

from typing import List, Optional

from app.extensions import db
from app.models.Content import BlogPost, ServiceArea

from .base import first_instance, list_instances


def list_published_posts(category: Optional[str] = None) -> List[BlogPost]:
    filters = [BlogPost.published.is_(True)]
    if category:
        filters.append(BlogPost.category == category)
    return list_instances(BlogPost, filters=filters, order_by=BlogPost.publish_date.desc(),
                          context={"function": "list_published_posts"})


def blog_categories() -> List[str]:
    return sorted({post.category for post in list_published_posts()})


def get_post_by_slug(slug: str, *, include_unpublished: bool = False) -> Optional[BlogPost]:
    filters = [BlogPost.slug == slug]
    if not include_unpublished:
        filters.append(BlogPost.published.is_(True))
    return first_instance(BlogPost, filters=filters)


def list_service_areas(region: Optional[str] = None) -> List[ServiceArea]:
    filters = [ServiceArea.region == region] if region else None
    return list_instances(ServiceArea, filters=filters, order_by=ServiceArea.city_name.asc(),
                          context={"function": "list_service_areas"})


def get_service_area_by_slug(slug: str) -> Optional[ServiceArea]:
    return first_instance(ServiceArea, filters=[ServiceArea.slug == slug])


_AUSTIN_METRO = [
    ("Austin", "78701,78702,78703,78704,78705"),
    ("Cedar Park", "78613"),
    ("Leander", "78641"),
    ("Round Rock", "78664,78665,78681"),
    ("Georgetown", "78626,78628,78633"),
    ("Pflugerville", "78660"),
    ("Liberty Hill", "78642"),
    ("Buda", "78610"),
    ("Kyle", "78640"),
]
_MARBLE_FALLS = [
    ("Marble Falls", "78654"),
    ("Burnet", "78611"),
    ("Horseshoe Bay", "78657"),
    ("Kingsland", "78639"),
    ("Granite Shoals", "78654"),
    ("Bertram", "78605"),
    ("Spicewood", "78669"),
]


def _seed_area(city: str, zips: str, region: str) -> ServiceArea:
    slug = city.lower().replace(" ", "-")
    return ServiceArea(
        city_name=city,
        slug=slug,
        region=region,
        meta_description=f"Licensed plumbers serving {city}, TX. Water heaters, drains, leaks and more.",
        intro_content=f"Economy Plumbing Services is proud to serve homeowners and businesses in {city}.",
        zip_codes=zips.split(","),
    )


def seed_service_areas() -> List[ServiceArea]:
    """Insert the default service areas when the table is empty."""
    if ServiceArea.query.first() is not None:
        return []
    areas = [_seed_area(city, zips, "austin-metro") for city, zips in _AUSTIN_METRO]
    areas += [_seed_area(city, zips, "marble-falls") for city, zips in _MARBLE_FALLS]
    db.session.add_all(areas)
    db.session.commit()
    return areas
