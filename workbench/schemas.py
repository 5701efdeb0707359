"""
Pydantic schemas for the workbench FastAPI backend.

Field names follow the JSON the browser frontend already speaks (camelCase).
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class UserResponse(BaseModel):
    id: str
    subjectId: str
    displayName: Optional[str] = None
    email: Optional[str] = None
    maxTypingSpeed: float = 0
    averageTypingSpeed: int = 0


class TypingTestRequest(BaseModel):
    wpm: float = Field(..., ge=0, le=1000)
    accuracy: float = Field(..., ge=0, le=100)
    mistakes: int = Field(..., ge=0)
    duration: float = Field(..., gt=0, le=24 * 3600)


class TypingTestResponse(BaseModel):
    id: str
    userId: str
    wpm: float
    accuracy: float
    mistakes: int
    duration: float
    timestamp: datetime


class TypingSubmitResponse(BaseModel):
    sample: TypingTestResponse
    maxSpeed: float
    avgSpeed: int


class TypingStatsResponse(BaseModel):
    lastTest: Optional[TypingTestResponse] = None
    maxTypingSpeed: float
    averageTypingSpeed: int
    allTests: list[TypingTestResponse]


class TodoCreateRequest(BaseModel):
    task: str = Field(..., min_length=1, max_length=1024)
    completed: bool = False


class TodoUpdateRequest(BaseModel):
    completed: bool


class TodoResponse(BaseModel):
    id: str
    userId: str
    task: str
    completed: bool
    createdAt: datetime


class DeleteResponse(BaseModel):
    success: Literal[True]


class CalculationRequest(BaseModel):
    expression: str = Field(..., min_length=1, max_length=512)
    result: str = Field(..., max_length=512)


class CalculationResponse(BaseModel):
    id: str
    userId: str
    expression: str
    result: str
    timestamp: datetime


class HealthResponse(BaseModel):
    ok: bool
