from __future__ import annotations

import base64
import binascii
import io
import logging
import os

from PIL import Image, UnidentifiedImageError
from pdf2image import convert_from_bytes
from pdf2image.exceptions import PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError

from estimator.data import ALLOWED_IMAGE_TYPES, PDF_MIME_TYPE
from estimator.errors import PdfConversionError, UnsupportedFileError

logger = logging.getLogger(__name__)

# pdf.js scale 2.0 == 2 * 72 dpi
PDF_RENDER_DPI = 144
PDF_JPEG_QUALITY = 0.85

THUMBNAIL_WIDTH, THUMBNAIL_QUALITY = 150, 0.6
PREVIEW_WIDTH, PREVIEW_QUALITY = 800, 0.7

EXTENSION_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".pdf": PDF_MIME_TYPE,
}

MSG_PDF_CONVERSION = "PDF 轉換失敗，請確認檔案未損壞或嘗試轉存為圖片。"


def guess_mime_type(filename: str | None, declared: str | None) -> str:
    declared = (declared or "").lower()
    if declared in ALLOWED_IMAGE_TYPES or declared == PDF_MIME_TYPE:
        return declared
    ext = os.path.splitext(filename or "")[1].lower()
    return EXTENSION_TYPES.get(ext, declared)

def to_data_url(b64: str, mime_type: str) -> str:
    return f"data:{mime_type};base64,{b64}"

def _strip_data_url(data: str) -> str:
    if data.startswith("data:"):
        return data.split(",", 1)[1] if "," in data else ""
    return data

def _encode_jpeg(img: Image.Image, quality: float) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=int(round(quality * 100)))
    return buf.getvalue()

def _flatten_on_white(img: Image.Image) -> Image.Image:
    # JPEG has no alpha; transparent PNGs would otherwise turn black
    rgba = img.convert("RGBA")
    background = Image.new("RGB", rgba.size, "white")
    background.paste(rgba, mask=rgba.getchannel("A"))
    return background


def pdf_first_page_to_jpeg(data: bytes) -> bytes:
    try:
        pages = convert_from_bytes(data, dpi=PDF_RENDER_DPI, first_page=1, last_page=1)
    except (PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError, OSError, ValueError) as e:
        logger.error("PDF Processing Error: %s", e)
        raise PdfConversionError(MSG_PDF_CONVERSION) from e
    if not pages:
        raise PdfConversionError(MSG_PDF_CONVERSION)
    return _encode_jpeg(_flatten_on_white(pages[0]), PDF_JPEG_QUALITY)


def file_to_image_part(data: bytes, mime_type: str) -> tuple[str, str]:
    """
    Base64 payload + mime type to send to the model.
    PDFs are rasterized (first page) so the result is always an image.
    """
    if mime_type == PDF_MIME_TYPE:
        jpeg = pdf_first_page_to_jpeg(data)
        return base64.b64encode(jpeg).decode("ascii"), "image/jpeg"

    if mime_type not in ALLOWED_IMAGE_TYPES:
        raise UnsupportedFileError(f"不支援的檔案格式: {mime_type or '未知'} (支援 PNG, JPG, WEBP, PDF)")
    return base64.b64encode(data).decode("ascii"), mime_type


def compress_image(image: str, max_width: int, quality: float) -> str:
    """
    Downscale to max_width (aspect kept) and re-encode as a JPEG data URL.
    Returns '' when the image cannot be decoded.
    """
    try:
        raw = base64.b64decode(_strip_data_url(image), validate=True)
        with Image.open(io.BytesIO(raw)) as img:
            img.load()
            width, height = img.size
            if width > max_width:
                height = height * max_width / width
                width = max_width
            size = (max(int(width), 1), max(int(height), 1))
            flat = _flatten_on_white(img)
        if flat.size != size:
            flat = flat.resize(size, Image.Resampling.LANCZOS)
        return to_data_url(base64.b64encode(_encode_jpeg(flat, quality)).decode("ascii"), "image/jpeg")
    except (
        binascii.Error, UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError
    ) as e:
        logger.warning("Failed to compress image for history: %s", e)
        return ""

def make_thumbnail(image: str) -> str:
    return compress_image(image, THUMBNAIL_WIDTH, THUMBNAIL_QUALITY)

def make_preview(image: str) -> str:
    return compress_image(image, PREVIEW_WIDTH, PREVIEW_QUALITY)
