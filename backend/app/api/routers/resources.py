"""
Course resource API routes.

Upload stores the file and its extracted text, then hands indexing to the
Celery worker. Status reports how much of the course is searchable.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from supabase import Client

from app.celery_app.indexing import index_course_resource
from app.dependencies import (
    get_course_service,
    get_file_search_service,
    get_resource_service,
    get_service_db,
)
from app.exceptions import ValidationError
from app.schemas.resources import IndexingStatusResponse, ResourceResponse
from app.services.ai.file_search import FileSearchStoreService
from app.services.db.courses import CourseService
from app.services.db.resources import ResourceService
from app.services.storage import upload_resource_file
from app.services.text_extraction import (
    effective_mime_type,
    extract_text,
    safe_display_name,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/courses", tags=["resources"])


@router.post("/{course_id}/resources", response_model=ResourceResponse)
async def upload_resource(
    course_id: int,
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    courses: CourseService = Depends(get_course_service),
    file_search: FileSearchStoreService = Depends(get_file_search_service),
    service_db: Client = Depends(get_service_db),
):
    """
    Upload a course document.

    The document becomes searchable once the indexing task completes
    (see GET /courses/{course_id}/resources/status).
    """
    course = courses.get_course(course_id)

    data = await file.read()
    if not data:
        raise ValidationError("Uploaded file is empty")

    filename = file.filename or "upload"
    mime_type = effective_mime_type(filename, file.content_type)
    extracted = extract_text(data, filename, file.content_type)
    if extracted is None:
        logger.info(f"No text extracted from {filename}", extra={"course_id": course_id})

    path = upload_resource_file(service_db, course_id, filename, data, mime_type)
    resource = ResourceService(service_db).create_resource(
        course_id=course_id,
        title=title if title and title.strip() else filename,
        original_filename=filename,
        content_type=file.content_type,
        size_bytes=len(data),
        extracted_text=extracted,
        storage_path=path,
    )

    store_id = await file_search.ensure_store_for_course(course)
    task = index_course_resource.apply_async(
        kwargs={
            "resource_id": resource.id,
            "store_id": store_id,
            "display_name": safe_display_name(resource.display_name),
            "mime_type": mime_type,
        },
        queue="indexing",
    )
    logger.info(
        f"Scheduled indexing of resource {resource.id} ({mime_type}), task={task.id}",
        extra={"course_id": course_id},
    )

    return ResourceResponse(
        id=resource.id,
        course_id=course_id,
        title=resource.title,
        original_filename=resource.original_filename,
        content_type=resource.content_type,
        uploaded_at=resource.uploaded_at,
        indexed=resource.indexed,
        indexing_task_id=task.id,
    )


@router.get("/{course_id}/resources/status", response_model=IndexingStatusResponse)
async def resources_status(
    course_id: int,
    courses: CourseService = Depends(get_course_service),
    resources: ResourceService = Depends(get_resource_service),
):
    """Document-search readiness of a course."""
    courses.get_course(course_id)
    return IndexingStatusResponse(**resources.readiness(course_id))
