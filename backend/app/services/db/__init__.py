"""Database service modules."""

from .courses import CourseService
from .threads import ThreadService
from .resources import ResourceService

__all__ = [
    "CourseService",
    "ThreadService",
    "ResourceService",
]
