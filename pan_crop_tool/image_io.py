"""
Qt-free image I/O utilities.

Opens source images (including PSD), reads dimensions without full
loading, encodes cropped output to any supported MIME type and manages the
revocable ``blob:`` URLs handed out with each export.  Safe to import in
worker threads.
"""

import io
import logging
import threading
import uuid
from pathlib import Path

from PIL import Image, ImageOps
from psd_tools import PSDImage

from pan_crop_tool.config import APP_NAME, CROP_TYPES, PNG_COMPRESS_LEVEL
from pan_crop_tool.errors import DecodeFailure, EncodeFailure
from pan_crop_tool.models import CroppedFile, ExportResult

logger = logging.getLogger(__name__)

# Allow very large images (Pillow's default limit is ~178MP)
Image.MAX_IMAGE_PIXELS = None

# Formats that cannot store an alpha channel
_OPAQUE_FORMATS = {"JPEG", "BMP"}


# =============================================================================
# Decoding
# =============================================================================
def open_image(path: Path) -> Image.Image:
    """Open and fully decode an image, using psd-tools for PSD and Pillow for the rest.

    EXIF orientation is applied so the session sees the image upright.
    Raises ``DecodeFailure`` if the file is missing or unreadable; decoders
    fed a hostile header can fail with anything from OSError to MemoryError,
    so every exception is reported the same way.
    """
    path = Path(path)
    try:
        if path.suffix.lower() == ".psd":
            img = PSDImage.open(str(path)).composite()
        else:
            with Image.open(path) as src:
                src.load()
                img = ImageOps.exif_transpose(src)
        if img is None:
            raise DecodeFailure(f"Cannot open {path.name}: no pixel data")
        if img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGBA" if "A" in img.getbands() or "transparency" in img.info else "RGB")
    except DecodeFailure:
        raise
    except Exception as exc:
        raise DecodeFailure(f"Cannot open {path.name}: {exc}") from exc

    logger.debug("Decoded %s (%dx%d, %s)", path.name, img.width, img.height, img.mode)
    return img


def get_image_size(path: Path) -> tuple[int, int]:
    """Get image dimensions without fully loading/compositing."""
    path = Path(path)
    try:
        if path.suffix.lower() == ".psd":
            psd = PSDImage.open(str(path))
            return psd.width, psd.height
        with Image.open(path) as img:
            return img.size
    except Exception as exc:
        raise DecodeFailure(f"Cannot read {path.name}: {exc}") from exc


# =============================================================================
# Encoding
# =============================================================================
def _save_options(fmt: str, quality: float) -> dict:
    """Pillow save() keyword arguments for a format and a [0, 1] quality."""
    q = max(1, min(100, round(quality * 100)))
    if fmt == "JPEG":
        # 4:4:4, no chroma subsampling
        return {"quality": q, "optimize": True, "subsampling": 0}
    if fmt == "WEBP":
        return {"quality": q}
    if fmt == "PNG":
        return {"compress_level": PNG_COMPRESS_LEVEL}
    return {}


def encode_image(image: Image.Image, crop_type: str, quality: float, file_name: str) -> ExportResult:
    """Encode *image* and wrap it as blob, named file and object URL.

    Raises ``EncodeFailure`` when the encoder fails or writes nothing.
    """
    fmt = CROP_TYPES.get(crop_type)
    if fmt is None:
        raise EncodeFailure(f"Unsupported output type {crop_type!r}")

    if fmt in _OPAQUE_FORMATS or fmt == "GIF":
        image = image.convert("RGB")

    buf = io.BytesIO()
    try:
        image.save(buf, fmt, **_save_options(fmt, quality))
    except (OSError, ValueError, KeyError) as exc:
        raise EncodeFailure(f"Encoding {crop_type} failed: {exc}") from exc

    blob = buf.getvalue()
    if not blob:
        raise EncodeFailure(f"Encoding {crop_type} produced no output")

    file = CroppedFile(name=file_name, content_type=crop_type, data=blob)
    logger.debug("Encoded %s: %d bytes as %s", file_name, len(blob), crop_type)
    return ExportResult(blob=blob, file=file, object_url=create_object_url(file))


# =============================================================================
# Object URLs
# =============================================================================
_object_urls: dict[str, CroppedFile] = {}
_object_urls_lock = threading.Lock()


def create_object_url(file: CroppedFile) -> str:
    """Register *file* and return a ``blob:`` URL that resolves to it until revoked."""
    url = f"blob:{APP_NAME}/{uuid.uuid4()}"
    with _object_urls_lock:
        _object_urls[url] = file
    return url


def resolve_object_url(url: str) -> CroppedFile | None:
    """Return the file behind *url*, or None if unknown or revoked."""
    with _object_urls_lock:
        return _object_urls.get(url)


def revoke_object_url(url: str) -> bool:
    """Release *url*.  Returns True if it was registered."""
    with _object_urls_lock:
        return _object_urls.pop(url, None) is not None


# =============================================================================
# Saving
# =============================================================================
def unique_path(out_path: Path) -> Path:
    """Return a unique path by appending -01, -02, etc. if file already exists."""
    if not out_path.exists():
        return out_path
    stem = out_path.stem
    suffix = out_path.suffix
    parent = out_path.parent
    counter = 1
    while True:
        candidate = parent / f"{stem}-{counter:02d}{suffix}"
        if not candidate.exists():
            return candidate
        counter += 1


def save_file(file: CroppedFile, directory: Path) -> Path:
    """Write *file* into *directory* without overwriting; returns the path used."""
    directory.mkdir(parents=True, exist_ok=True)
    out_path = unique_path(directory / file.name)
    out_path.write_bytes(file.data)
    logger.info("Saved %s (%d bytes)", out_path, file.size)
    return out_path
