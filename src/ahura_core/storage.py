"""Object storage URL helpers.

Clients upload attachment bytes straight to object storage; this service
only validates the metadata and stores the public URL.
"""
import logging

from .config import get_settings
from .errors import InvariantViolationError

logger = logging.getLogger("ahura-core.storage")

MAX_ATTACHMENT_BYTES = 25 * 1024 * 1024

IMAGE_MIME_TYPES = {"image/png", "image/jpeg", "image/webp", "image/gif", "image/svg+xml"}
ATTACHMENT_MIME_TYPES = IMAGE_MIME_TYPES | {
    "application/pdf",
    "text/plain",
    "application/zip",
    "application/x-zip-compressed",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def public_object_url(key: str) -> str:
    """Public URL of an object key under the configured storage base URL."""
    base_url = get_settings().storage_public_base_url.rstrip("/")
    return f"{base_url}/{key.lstrip('/')}"


def validate_attachment(mime_type: str, file_size: int) -> None:
    """
    Check attachment metadata against the upload rules.

    Raises:
        InvariantViolationError: If the type is not allowed or the file is too big
    """
    if mime_type not in ATTACHMENT_MIME_TYPES:
        logger.warning(f"Rejected attachment with mime type {mime_type}")
        raise InvariantViolationError("File type is not supported for attachments")
    if file_size > MAX_ATTACHMENT_BYTES:
        logger.warning(f"Rejected attachment of {file_size} bytes")
        raise InvariantViolationError("Attachment file size must be 25MB or less")
