"""
Course Q&A request/response models.
"""

from typing import List, Optional
from pydantic import BaseModel, Field


class CourseChatRequest(BaseModel):
    """Chat-style question about a course"""
    message: str = Field(..., min_length=1, max_length=4000, description="Student question")


class CourseChatResponse(BaseModel):
    """Attributed answer"""
    answer: str = Field(..., description="Answer text including the Sources footer")
    citations: List[str] = Field(default_factory=list, description="Resolved course resource names")
    context_thread_ids: List[int] = Field(
        default_factory=list, description="Forum threads given to the model"
    )
    duplicate_of: Optional[int] = Field(None, description="Earlier thread asking the same question")


class LlmReplyResponse(BaseModel):
    """Model-generated forum reply awaiting review"""
    reply_id: Optional[int] = None
    post_id: int
    body: str
    llm_generated: bool = True
    reviewed: bool = False
