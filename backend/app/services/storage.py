"""
Supabase Storage access for uploaded course resources.

Files live in the course-resources bucket under
<course_id>/<content hash>/<safe filename>.
"""

import hashlib
import logging
import re

from supabase import Client

logger = logging.getLogger(__name__)

BUCKET_NAME = "course-resources"

_UNSAFE_PATH_RE = re.compile(r"[^a-zA-Z0-9._-]")


def resource_storage_path(course_id: int, filename: str, data: bytes) -> str:
    content_hash = hashlib.md5(data).hexdigest()[:12]  # First 12 chars
    safe_name = _UNSAFE_PATH_RE.sub("_", filename or "file") or "file"
    return f"{course_id}/{content_hash}/{safe_name}"


def upload_resource_file(
    supabase: Client,
    course_id: int,
    filename: str,
    data: bytes,
    content_type: str,
) -> str:
    """
    Upload resource bytes (upsert mode).

    Returns:
        Storage path inside the bucket
    """
    path = resource_storage_path(course_id, filename, data)
    try:
        supabase.storage.from_(BUCKET_NAME).upload(
            path=path,
            file=data,
            file_options={"content-type": content_type, "upsert": "true"},
        )
        logger.debug(f"Uploaded resource to storage: {path}")
    except Exception as e:
        logger.error(f"Storage upload failed for {path}: {e}", extra={"course_id": course_id})
        raise
    return path


def download_resource_file(supabase: Client, path: str) -> bytes:
    """Download resource bytes from the bucket."""
    return supabase.storage.from_(BUCKET_NAME).download(path)
