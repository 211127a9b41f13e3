# quotations/services/logos.py
"""
Logo storage for quotations.

Uploads are validated and shrunk with Pillow, then written through
default_storage (local FileSystemStorage in dev, any configured backend in
prod). The database row only keeps the storage name.
"""
import logging
import os
import uuid
from io import BytesIO

from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

LOGO_DIR = "quotations/logos/"


class LogoError(ValueError):
    pass


def _max_bytes() -> int:
    return int(getattr(settings, "LOGO_MAX_BYTES", 2 * 1024 * 1024))


def _max_dimension() -> int:
    return int(getattr(settings, "LOGO_MAX_DIMENSION", 200))


def prepare_logo(upload) -> ContentFile:
    """
    Validate an uploaded image and return it re-encoded to fit inside
    LOGO_MAX_DIMENSION x LOGO_MAX_DIMENSION (aspect ratio kept, never upscaled).

    Raises LogoError for oversized or unreadable files.
    """
    size = getattr(upload, "size", None)
    if size is not None and size > _max_bytes():
        raise LogoError(f"Logo must be {_max_bytes() // (1024 * 1024)} MB or smaller.")

    try:
        upload.seek(0)
        img = Image.open(upload)
        img.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise LogoError("Upload a valid image file.") from exc

    # PNG keeps transparency, everything else becomes JPEG
    keep_alpha = img.mode in ("RGBA", "LA", "P")
    if keep_alpha:
        img = img.convert("RGBA")
        fmt, ext = "PNG", ".png"
    else:
        if img.mode != "RGB":
            img = img.convert("RGB")
        fmt, ext = "JPEG", ".jpg"

    dim = _max_dimension()
    img.thumbnail((dim, dim))

    buffer = BytesIO()
    if fmt == "JPEG":
        img.save(buffer, format=fmt, quality=90)
    else:
        img.save(buffer, format=fmt)

    base = os.path.splitext(os.path.basename(getattr(upload, "name", "") or "logo"))[0][:40] or "logo"
    return ContentFile(buffer.getvalue(), name=f"{base}{ext}")


def store_logo(content: ContentFile) -> str:
    """Save the prepared logo and return its storage name."""
    name = f"{LOGO_DIR}{uuid.uuid4().hex}_{content.name}"
    saved = default_storage.save(name, content)
    logger.info("Stored quotation logo %s", saved)
    return saved


def release_logo(name: str) -> bool:
    """
    Best-effort delete of a stored logo. Returns False when the delete failed;
    the failure is logged, never raised.
    """
    if not name:
        return True
    try:
        default_storage.delete(name)
    except Exception:
        logger.warning("Could not release quotation logo %s", name, exc_info=True)
        return False
    logger.info("Released quotation logo %s", name)
    return True


def logo_url(name: str, request=None):
    if not name:
        return None
    try:
        url = default_storage.url(name)
    except Exception:
        url = settings.MEDIA_URL.rstrip("/") + "/" + name.lstrip("/")
    if request is not None and url.startswith("/"):
        return request.build_absolute_uri(url)
    return url


def open_logo(name: str):
    """Return the stored logo bytes, or None when it cannot be read."""
    if not name:
        return None
    try:
        with default_storage.open(name, "rb") as fh:
            return fh.read()
    except Exception:
        logger.warning("Could not read quotation logo %s", name, exc_info=True)
        return None
