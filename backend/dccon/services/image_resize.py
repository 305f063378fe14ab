from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO

from PIL import Image, ImageOps

from dccon.core.errors import ResizeError

RESIZABLE_FORMATS = {"png", "jpeg", "jpg", "webp"}
MIME_BY_FORMAT = {
    "png": "image/png",
    "jpeg": "image/jpeg",
    "jpg": "image/jpeg",
    "webp": "image/webp",
}


@dataclass
class ResizedImage:
    buffer: bytes
    ext: str
    mime_type: str


def can_resize(ext: str | None, mime_type: str | None) -> bool:
    if (ext or "").lower() in RESIZABLE_FORMATS:
        return True
    if not mime_type:
        return False
    return mime_type.split(";")[0].strip().lower() in MIME_BY_FORMAT.values()


def resize_contain(raw: bytes, size: int) -> ResizedImage:
    """Fit ``raw`` inside a ``size`` x ``size`` square, padding with transparency.

    Smaller sources are scaled up. The encoded format follows the decoded source
    format; JPEG cannot carry alpha so its padding is flattened to black.
    """
    try:
        with Image.open(BytesIO(raw)) as im:
            fmt = (im.format or "").lower()
            if fmt not in RESIZABLE_FORMATS:
                raise ResizeError(f"unsupported image format: {fmt or 'unknown'}")
            fitted = ImageOps.contain(im.convert("RGBA"), (size, size))
    except ResizeError:
        raise
    except Exception as exc:
        raise ResizeError(f"cannot decode image: {exc}") from exc

    canvas = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    canvas.paste(fitted, ((size - fitted.width) // 2, (size - fitted.height) // 2), fitted)

    buf = BytesIO()
    try:
        if fmt == "jpeg":
            background = Image.new("RGB", canvas.size, (0, 0, 0))
            background.paste(canvas, mask=canvas.getchannel("A"))
            background.save(buf, format="JPEG", quality=90)
        else:
            canvas.save(buf, format=fmt.upper())
    except Exception as exc:
        raise ResizeError(f"cannot encode image: {exc}") from exc

    ext = "jpg" if fmt == "jpeg" else fmt
    return ResizedImage(buffer=buf.getvalue(), ext=ext, mime_type=MIME_BY_FORMAT[fmt])
