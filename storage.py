"""
storage.py
Local file storage for expense receipt images: upload, public URL, cleanup.
"""

from __future__ import annotations

import logging
import re
import time
from contextlib import contextmanager
from pathlib import Path
from urllib.parse import unquote, urlparse

import config

logger = logging.getLogger(__name__)

UPLOAD_DIR = config.UPLOAD_DIR

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


def safe_file_name(name: str) -> str:
    cleaned = _UNSAFE_CHARS.sub("_", Path(name or "").name)
    return cleaned or "file"


def expense_image_path(file_name: str, now_ms: int | None = None) -> str:
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"expenses/{stamp}-{safe_file_name(file_name)}"


def _target(path: str) -> Path:
    root = Path(UPLOAD_DIR).resolve()
    target = (root / path).resolve()
    if root != target and root not in target.parents:
        raise ValueError(f"Path escapes upload dir: {path}")
    return target


def upload(path: str, data: bytes) -> str:
    target = _target(path)
    if target.exists():
        raise FileExistsError(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)
    logger.info("Uploaded %s (%d bytes)", path, len(data))
    return path


def get_public_url(path: str) -> str:
    return _target(path).as_uri()


def resolve(url: str) -> str:
    """Local file path for a file:// URL; other URLs are returned as-is."""
    parsed = urlparse(url)
    if parsed.scheme == "file":
        return unquote(parsed.path)
    return url


def remove(path: str) -> bool:
    """Delete an uploaded file. False when it was already gone."""
    target = _target(path)
    try:
        target.unlink()
    except FileNotFoundError:
        return False
    logger.info("Removed %s", path)
    return True


def discard_url(url: str | None) -> bool:
    """Delete the file behind a public URL, if it lives in the upload dir."""
    if not url or urlparse(url).scheme != "file":
        return False
    root = Path(UPLOAD_DIR).resolve()
    local = Path(resolve(url)).resolve()
    if root not in local.parents:
        logger.warning("Not removing %s: outside upload dir", url)
        return False
    return remove(local.relative_to(root).as_posix())


@contextmanager
def staged_upload(path: str, data: bytes):
    """Upload `path` for the duration of a write; removed again if the block raises."""
    upload(path, data)
    try:
        yield path
    except Exception:
        remove(path)
        raise
