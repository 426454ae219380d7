"""
Course resource models.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class ResourceResponse(BaseModel):
    """Uploaded resource"""
    id: int
    course_id: int
    title: Optional[str] = None
    original_filename: Optional[str] = None
    content_type: Optional[str] = None
    uploaded_at: Optional[datetime] = None
    indexed: bool = Field(False, description="Searchable through document search")
    indexing_task_id: Optional[str] = Field(None, description="Celery task scheduled for indexing")


class IndexingStatusResponse(BaseModel):
    """Document-search readiness of a course"""
    indexed: bool = Field(..., description="True when every resource is searchable")
    pending: int = Field(..., ge=0)
    total: int = Field(..., ge=0)
