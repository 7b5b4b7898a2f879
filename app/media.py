# media.py
# Stores uploaded images/videos and classifies external media URLs.

import enum
import logging
import re
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Union
from urllib.parse import urlparse

from fastapi import UploadFile

from app.core.config import settings
from app.core.errors import ValidationError

logger = logging.getLogger(__name__)

IMAGE_URL_PATTERN = re.compile(r"\.(jpg|jpeg|png|gif|bmp|webp)$", re.IGNORECASE)


class MediaKind(str, enum.Enum):
    IMAGE = "image"
    VIDEO = "video"


# Storage bucket (sub-directory of UPLOAD_DIR) per kind
BUCKETS = {
    MediaKind.IMAGE: "images",
    MediaKind.VIDEO: "videos",
}


# --- Media source: exactly one of these per media slot ---

@dataclass(frozen=True)
class NoMedia:
    pass


@dataclass(frozen=True)
class UploadedFile:
    field: str
    upload: UploadFile


@dataclass(frozen=True)
class ExternalUrl:
    url: str


MediaSource = Union[NoMedia, UploadedFile, ExternalUrl]


@dataclass(frozen=True)
class StoredMedia:
    kind: MediaKind
    url: str


def _is_present(upload: Optional[UploadFile]) -> bool:
    # Browsers send an empty part for an untouched file input
    return upload is not None and bool(upload.filename)


def choose_media_source(
    files: Mapping[str, Optional[UploadFile]],
    external_url: Optional[str] = None,
) -> MediaSource:
    """
    Collapse the optional upload fields and URL of a form into one source.

    Supplying more than one (two files, or a file and a URL) is rejected.
    """
    uploads = [UploadedFile(field, upload) for field, upload in files.items() if _is_present(upload)]
    external_url = (external_url or "").strip()

    candidates: list[MediaSource] = list(uploads)
    if external_url:
        candidates.append(ExternalUrl(external_url))

    if len(candidates) > 1:
        raise ValidationError("Provide a single media item: one uploaded file or an external URL")
    if not candidates:
        return NoMedia()
    return candidates[0]


def classify_content_type(content_type: Optional[str]) -> MediaKind:
    content_type = (content_type or "").lower()
    if content_type.startswith("image/"):
        return MediaKind.IMAGE
    if content_type.startswith("video/"):
        return MediaKind.VIDEO
    raise ValidationError("Only image or video files are allowed!")


def is_image_url(url: str) -> bool:
    """Extension / well-known-host heuristic for external media links."""
    path = urlparse(url).path
    return bool(IMAGE_URL_PATTERN.search(path)) or "gstatic.com/images" in url


def require_http_url(url: str) -> str:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError("External media URL must be an http(s) link")
    return url


def classify_url(url: str) -> MediaKind:
    require_http_url(url)
    return MediaKind.IMAGE if is_image_url(url) else MediaKind.VIDEO


def unique_filename(directory: Path, field: str, original_name: str) -> str:
    """``<field>-<epoch millis><ext>``, bumping the timestamp on collision."""
    extension = Path(original_name).suffix
    stamp = int(time.time() * 1000)
    while (directory / f"{field}-{stamp}{extension}").exists():
        stamp += 1
    return f"{field}-{stamp}{extension}"


def store_upload(source: UploadedFile, upload_root: Optional[Path] = None) -> StoredMedia:
    kind = classify_content_type(source.upload.content_type)
    bucket = BUCKETS[kind]
    directory = Path(upload_root or settings.UPLOAD_DIR) / bucket
    directory.mkdir(parents=True, exist_ok=True)

    filename = unique_filename(directory, source.field, source.upload.filename)
    with open(directory / filename, "wb") as destination:
        shutil.copyfileobj(source.upload.file, destination)

    url = f"{settings.UPLOAD_URL_PREFIX}/{bucket}/{filename}"
    logger.debug(f"Stored {kind.value} upload at {url}")
    return StoredMedia(kind=kind, url=url)


def ingest(source: MediaSource, upload_root: Optional[Path] = None) -> Optional[StoredMedia]:
    """
    Resolve a media source to a stored reference, or None when there is none.
    """
    if isinstance(source, UploadedFile):
        return store_upload(source, upload_root)
    if isinstance(source, ExternalUrl):
        return StoredMedia(kind=classify_url(source.url), url=source.url)
    return None
