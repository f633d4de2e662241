import time
from typing import Optional

import requests
from flask import current_app

from app.utils.logging_utils import get_logger

logger = get_logger("social")


class SocialMediaPoster:
    """
    Thin client over the Meta Graph API for the business page and its
    linked Instagram account.  Every public method returns ``None`` on any
    failure and logs the reason.
    """

    def __init__(self, config=None, sleep=time.sleep):
        cfg = config if config is not None else current_app.config
        self.access_token = cfg.get("FACEBOOK_ACCESS_TOKEN") or ""
        self.page_id = cfg.get("FACEBOOK_PAGE_ID") or ""
        self.instagram_account_id = cfg.get("INSTAGRAM_BUSINESS_ACCOUNT_ID") or None
        self.public_base_url = (cfg.get("PUBLIC_BASE_URL") or "").rstrip("/")
        self.publish_delay = cfg.get("INSTAGRAM_PUBLISH_DELAY", 5)
        self.timeout = cfg.get("SOCIAL_REQUEST_TIMEOUT", 30)
        self.graph_url = f"{cfg.get('GRAPH_API_BASE_URL', 'https://graph.facebook.com').rstrip('/')}/{cfg.get('GRAPH_API_VERSION', 'v18.0')}"
        self._sleep = sleep

    def _absolute(self, image_url: str) -> str:
        if image_url.startswith("/"):
            return f"{self.public_base_url}{image_url}"
        return image_url

    def _post(self, path: str, payload: dict, what: str) -> Optional[dict]:
        try:
            response = requests.post(f"{self.graph_url}/{path}", json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error("%s request failed: %s", what, exc)
            return None
        if not response.ok:
            logger.error("%s failed status=%s body=%s", what, response.status_code, response.text[:500])
            return None
        try:
            return response.json()
        except ValueError:
            logger.error("%s returned a non-JSON body", what)
            return None

    def get_instagram_business_account(self) -> Optional[str]:
        if self.instagram_account_id:
            return self.instagram_account_id
        if not self.access_token or not self.page_id:
            return None
        try:
            response = requests.get(
                f"{self.graph_url}/{self.page_id}",
                params={"fields": "instagram_business_account", "access_token": self.access_token},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("Instagram account lookup failed: %s", exc)
            return None
        if not response.ok:
            logger.error("Instagram account lookup failed status=%s body=%s", response.status_code, response.text[:500])
            return None
        try:
            account = (response.json().get("instagram_business_account") or {}).get("id")
        except ValueError:
            return None
        self.instagram_account_id = account or None
        return self.instagram_account_id

    def post_to_facebook(self, image_url: str, caption: str) -> Optional[str]:
        if not self.access_token or not self.page_id:
            logger.error("Facebook credentials not configured")
            return None
        data = self._post(
            f"{self.page_id}/photos",
            {"url": self._absolute(image_url), "caption": caption, "access_token": self.access_token},
            "Facebook post",
        )
        post_id = (data or {}).get("id")
        if post_id:
            logger.info("Posted to Facebook id=%s", post_id)
        return post_id

    def post_to_instagram(self, image_url: str, caption: str) -> Optional[str]:
        account_id = self.get_instagram_business_account()
        if not account_id or not self.access_token:
            logger.error("Instagram business account not configured")
            return None

        container = self._post(
            f"{account_id}/media",
            {"image_url": self._absolute(image_url), "caption": caption, "access_token": self.access_token},
            "Instagram container",
        )
        creation_id = (container or {}).get("id")
        if not creation_id:
            return None

        # Instagram needs a moment to ingest the image before publishing
        if self.publish_delay:
            self._sleep(self.publish_delay)

        published = self._post(
            f"{account_id}/media_publish",
            {"creation_id": creation_id, "access_token": self.access_token},
            "Instagram publish",
        )
        post_id = (published or {}).get("id")
        if post_id:
            logger.info("Posted to Instagram id=%s", post_id)
        return post_id

    def post_to_all(self, image_url: str, caption: str) -> dict:
        return {
            "facebook_post_id": self.post_to_facebook(image_url, caption),
            "instagram_post_id": self.post_to_instagram(image_url, caption),
        }
