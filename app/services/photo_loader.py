import os

import requests
from flask import current_app

from app.services.errors import PhotoLoadError
from app.utils.logging_utils import get_logger

logger = get_logger("photos")

_LOCAL_PREFIXES = {
    "/uploads/": "UPLOAD_FOLDER",
    "/attached_assets/": "ASSETS_FOLDER",
}


def local_path_for(photo_url: str) -> str:
    """
    Map ``/uploads/...`` and ``/attached_assets/...`` urls onto the configured
    folders.  Raises ``PhotoLoadError`` for other urls or paths that would
    escape the folder.
    """
    for prefix, config_key in _LOCAL_PREFIXES.items():
        if photo_url.startswith(prefix):
            root = os.path.realpath(current_app.config[config_key])
            candidate = os.path.realpath(os.path.join(root, photo_url[len(prefix):]))
            if os.path.commonpath([root, candidate]) != root:
                raise PhotoLoadError(photo_url, "path escapes storage folder")
            return candidate
    raise PhotoLoadError(photo_url, "unsupported photo url")


def load_photo_bytes(photo_url: str) -> bytes:
    if not photo_url:
        raise PhotoLoadError(photo_url, "empty photo url")

    if photo_url.startswith(("http://", "https://")):
        timeout = current_app.config.get("PHOTO_FETCH_TIMEOUT", 15)
        try:
            response = requests.get(photo_url, timeout=timeout)
        except requests.RequestException as exc:
            logger.warning("Photo fetch failed url=%s error=%s", photo_url, exc)
            raise PhotoLoadError(photo_url, "fetch failed") from exc
        if response.status_code != 200:
            logger.warning("Photo fetch returned %s url=%s", response.status_code, photo_url)
            raise PhotoLoadError(photo_url, f"http {response.status_code}")
        return response.content

    path = local_path_for(photo_url)
    try:
        with open(path, "rb") as fh:
            return fh.read()
    except OSError as exc:
        raise PhotoLoadError(photo_url, "file not readable") from exc
