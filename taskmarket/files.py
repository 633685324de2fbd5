"""Managed upload files: URL-to-path resolution and best-effort deletion.

Each kind of entity owns one upload area. Task images and avatars are
further split per user (``/uploads/tasks/<user id>/...``), so a user can only
ever reference, and later cause the deletion of, files in their own area.
"""

from __future__ import annotations

import logging
from pathlib import Path

from taskmarket.config import settings
from taskmarket.errors import InvalidInput

logger = logging.getLogger("taskmarket.files")

UPLOADS = "/uploads/"
AD_IMAGES = "/uploads/ads/"
TASK_IMAGES = "/uploads/tasks/"
AVATARS = "/uploads/avatars/"

MANAGED_PREFIXES = (AD_IMAGES, TASK_IMAGES, AVATARS)


def owned_prefix(area: str, owner_id: str) -> str:
    return f"{area}{owner_id}/"


def is_managed_url(url: str | None, prefix: str | None = None) -> bool:
    """True if ``url`` points into the upload area ``prefix`` (any area when omitted)."""
    if not url:
        return False
    if ".." in url.split("/"):
        return False
    return url.startswith(prefix or MANAGED_PREFIXES)


def check_uploads(urls: list[str], allowed_prefix: str) -> None:
    """Reject references to site uploads outside ``allowed_prefix``.

    External URLs and site paths outside ``/uploads/`` are left alone; they are
    never deleted.
    """
    for url in urls:
        if not url or not url.startswith(UPLOADS):
            continue
        if not is_managed_url(url, allowed_prefix):
            raise InvalidInput(f"{url} is not one of your uploads")


def resolve_managed_path(url: str) -> Path | None:
    """Map a managed URL to its file under the upload root.

    Returns None for unmanaged URLs and for paths that would escape the root.
    """
    if not is_managed_url(url):
        return None
    root = Path(settings.upload_dir).resolve()
    candidate = (root / url.lstrip("/")).resolve()
    if not candidate.is_relative_to(root):
        logger.warning("Refusing to resolve %s outside upload root", url)
        return None
    return candidate


def delete_managed_file(url: str) -> bool:
    """Remove the file behind a managed URL. Returns True if a file was removed."""
    path = resolve_managed_path(url)
    if path is None or not path.exists():
        return False
    path.unlink()
    logger.info("Deleted stored file %s", url)
    return True
