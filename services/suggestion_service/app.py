"""
FastAPI service for task suggestions.

Serves the heuristic suggestions from planner_server.suggestions over HTTP.
Clients send the task being planned plus their current task list, so the
service keeps no state of its own.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, HTTPException

from planner_server.recurrence import parse_timestamp
from planner_server.suggestions import generate_suggestions
from services.shared.models import (
    SuggestionRequest,
    SuggestionResponse,
    suggestion_to_model,
    task_from_model,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize resources on startup and cleanup on shutdown."""
    yield


app = FastAPI(
    title="Suggestion Service",
    description="REST API for heuristic study and scheduling suggestions",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health_check():
    """Health check endpoint for container orchestration."""
    return {"status": "healthy", "service": "suggestion-service"}


@app.post("/suggestions", response_model=SuggestionResponse)
async def suggest(request: SuggestionRequest) -> SuggestionResponse:
    """
    Generate ranked suggestions for a task being planned.

    ``now`` defaults to the server clock; pass it to get repeatable results.
    """
    try:
        now = parse_timestamp(request.now) if request.now else datetime.now()
        tasks = [task_from_model(task) for task in request.tasks]
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid suggestion request: {e}")

    try:
        suggestions = generate_suggestions(
            now,
            tasks,
            title=request.title,
            subject=request.subject,
            task_type=request.task_type,
            recent_study_minutes=request.recent_study_minutes,
            enable_break_reminders=request.enable_break_reminders,
            limit=request.limit,
        )
        return SuggestionResponse(suggestions=[suggestion_to_model(s) for s in suggestions])
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error generating suggestions: {str(e)}")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8005)
