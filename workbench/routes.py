"""
HTTP routes for the workbench API.

Every handler here is protected and checks the caller itself through
``SessionContext.require_user``. New protected routes must do the same.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from workbench.db import DbClient
from workbench.dependencies import get_db_client, get_session_context
from workbench.schemas import (
    CalculationRequest,
    CalculationResponse,
    DeleteResponse,
    TodoCreateRequest,
    TodoResponse,
    TodoUpdateRequest,
    TypingStatsResponse,
    TypingSubmitResponse,
    TypingTestRequest,
    TypingTestResponse,
)
from workbench.session_context import SessionContext
from workbench.typing_stats import (
    TypingTestInput,
    get_typing_stats,
    submit_typing_test,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/typing-test", response_model=TypingSubmitResponse)
def submit_typing_test_route(
    payload: TypingTestRequest,
    ctx: SessionContext = Depends(get_session_context),
    db: DbClient = Depends(get_db_client),
):
    """
    Store a typing test for the caller and return the refreshed statistics.
    """
    user = ctx.require_user()
    result = submit_typing_test(
        db,
        user,
        TypingTestInput(
            wpm=payload.wpm,
            accuracy=payload.accuracy,
            mistakes=payload.mistakes,
            duration=payload.duration,
        ),
    )
    return TypingSubmitResponse(
        sample=TypingTestResponse(**result.sample.as_dict()),
        maxSpeed=result.max_speed,
        avgSpeed=result.avg_speed,
    )


@router.get("/typing-test/stats", response_model=TypingStatsResponse)
def typing_test_stats(
    ctx: SessionContext = Depends(get_session_context),
    db: DbClient = Depends(get_db_client),
):
    user = ctx.require_user()
    stats = get_typing_stats(db, user)
    tests = [TypingTestResponse(**t.as_dict()) for t in stats.all_tests]
    return TypingStatsResponse(
        lastTest=tests[0] if tests else None,
        maxTypingSpeed=stats.max_typing_speed,
        averageTypingSpeed=stats.average_typing_speed,
        allTests=tests,
    )


@router.post("/todos", response_model=TodoResponse)
def create_todo(
    payload: TodoCreateRequest,
    ctx: SessionContext = Depends(get_session_context),
    db: DbClient = Depends(get_db_client),
):
    user = ctx.require_user()
    todo = db.create_todo(user.user_id, payload.task, payload.completed)
    return TodoResponse(**todo.as_dict())


@router.get("/todos", response_model=list[TodoResponse])
def list_todos(
    ctx: SessionContext = Depends(get_session_context),
    db: DbClient = Depends(get_db_client),
):
    user = ctx.require_user()
    return [TodoResponse(**t.as_dict()) for t in db.list_todos(user.user_id)]


@router.put("/todos/{todo_id}", response_model=TodoResponse)
def update_todo(
    todo_id: str,
    payload: TodoUpdateRequest,
    ctx: SessionContext = Depends(get_session_context),
    db: DbClient = Depends(get_db_client),
):
    user = ctx.require_user()
    todo = db.update_todo(user.user_id, todo_id, completed=payload.completed)
    if not todo:
        raise HTTPException(status_code=404, detail="Todo not found")
    return TodoResponse(**todo.as_dict())


@router.delete("/todos/{todo_id}", response_model=DeleteResponse)
def delete_todo(
    todo_id: str,
    ctx: SessionContext = Depends(get_session_context),
    db: DbClient = Depends(get_db_client),
):
    user = ctx.require_user()
    if not db.delete_todo(user.user_id, todo_id):
        raise HTTPException(status_code=404, detail="Todo not found")
    return DeleteResponse(success=True)


@router.post("/calculator", response_model=CalculationResponse)
def add_calculation(
    payload: CalculationRequest,
    ctx: SessionContext = Depends(get_session_context),
    db: DbClient = Depends(get_db_client),
):
    user = ctx.require_user()
    entry = db.add_calculation(user.user_id, payload.expression, payload.result)
    return CalculationResponse(**entry.as_dict())


@router.get("/calculator/last", response_model=Optional[CalculationResponse])
def last_calculation(
    ctx: SessionContext = Depends(get_session_context),
    db: DbClient = Depends(get_db_client),
):
    user = ctx.require_user()
    entry = db.last_calculation(user.user_id)
    if not entry:
        return None
    return CalculationResponse(**entry.as_dict())


@router.get("/calculator/history", response_model=list[CalculationResponse])
def calculation_history(
    ctx: SessionContext = Depends(get_session_context),
    db: DbClient = Depends(get_db_client),
):
    user = ctx.require_user()
    return [
        CalculationResponse(**c.as_dict()) for c in db.list_calculations(user.user_id)
    ]
