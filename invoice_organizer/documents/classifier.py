"""Upload format classification.

Decides whether an upload is a PDF (paginated document) or a raster image,
and which media type to declare when an image is sent to the model.
"""

from pathlib import PurePath

PDF_MEDIA_TYPE = "application/pdf"
DEFAULT_IMAGE_MEDIA_TYPE = "image/jpeg"

IMAGE_MEDIA_TYPES: dict[str, str] = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}


def is_pdf(file_name: str | None, content_type: str | None = None) -> bool:
    """Check whether an upload is a PDF.

    Args:
        file_name: Original file name
        content_type: Declared MIME type, if any

    Returns:
        True for PDFs (by MIME type or ``.pdf`` suffix in any case), False otherwise
    """
    if content_type == PDF_MEDIA_TYPE:
        return True
    return file_name is not None and file_name.lower().endswith(".pdf")


def image_media_type(file_name: str | None, content_type: str | None = None) -> str:
    """Pick the media type declared for an image payload.

    The file extension wins over the declared content type, which wins over
    the JPEG default.

    Args:
        file_name: Original file name
        content_type: Declared MIME type, if any

    Returns:
        MIME type string such as ``image/png``
    """
    suffix = PurePath(file_name or "").suffix.lower().lstrip(".")
    if suffix in IMAGE_MEDIA_TYPES:
        return IMAGE_MEDIA_TYPES[suffix]
    return content_type or DEFAULT_IMAGE_MEDIA_TYPE


def is_supported_upload(file_name: str | None, content_type: str | None) -> bool:
    """Check whether an upload is accepted at all (any image type or PDF)."""
    if is_pdf(file_name, content_type):
        return True
    return content_type is not None and content_type.startswith("image/")
