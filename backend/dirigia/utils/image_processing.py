"""Image preprocessing utilities.

Uploads reach the extraction model as a single raster image.  PDFs are
rasterised page-by-page with PyMuPDF (only the first page is used) and
photos have their EXIF orientation applied and are downscaled so the
longest edge stays within a bound.  Pillow is the imaging backend.
"""

from __future__ import annotations

from io import BytesIO
from typing import Tuple

import fitz  # PyMuPDF for PDF rasterization
from PIL import Image, ImageOps, UnidentifiedImageError


def _apply_exif_orientation(img: Image.Image) -> Tuple[Image.Image, bool]:  # pragma: no cover - visual correctness
    """Return a new image with EXIF orientation applied if needed.

    Returns (image, applied_flag).
    """
    try:
        transposed = ImageOps.exif_transpose(img)
    except Exception:
        return img, False
    if transposed is None or transposed is img:
        return img, False
    return transposed, True


def rasterize_pdf_first_page(pdf_data: bytes, scale: float = 2.0) -> bytes:
    """Render page 1 of a PDF to PNG bytes at ``scale`` x the page size.

    Raises ``ValueError`` when the document cannot be opened or has no pages.
    """
    try:
        doc = fitz.open(stream=pdf_data, filetype="pdf")
    except Exception as exc:
        raise ValueError(f"unable to open PDF: {exc}") from exc
    try:
        if doc.page_count < 1:
            raise ValueError("PDF has no pages")
        page = doc.load_page(0)
        pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
        return pix.tobytes("png")
    finally:
        doc.close()


def preprocess_image(image_data: bytes, max_size: int = 2048) -> Tuple[bytes, str]:
    """Prepare an image for extraction.

    Applies EXIF orientation, converts to RGB and resizes the longest
    edge to ``max_size`` pixels while maintaining aspect ratio.  Colour
    is kept: stamps and highlighted fields on notices carry meaning.

    :param image_data: Raw image bytes
    :param max_size: Maximum size of the longest edge in pixels
    :returns: ``(bytes, content_type)``; PNG input stays PNG, others become JPEG
    :raises ValueError: when the bytes are not a readable image
    """
    try:
        with Image.open(BytesIO(image_data)) as img:
            fmt = (img.format or "").upper()
            img, _applied = _apply_exif_orientation(img)
            img = img.convert("RGB")
            width, height = img.size
            max_dim = max(width, height)
            if max_dim > max_size:
                scale = max_size / float(max_dim)
                img = img.resize((int(width * scale), int(height * scale)))
            buf = BytesIO()
            if fmt == "PNG":
                img.save(buf, format="PNG", optimize=True)
                return buf.getvalue(), "image/png"
            img.save(buf, format="JPEG", quality=90)
            return buf.getvalue(), "image/jpeg"
    except (UnidentifiedImageError, OSError) as exc:
        raise ValueError(f"unreadable image: {exc}") from exc
