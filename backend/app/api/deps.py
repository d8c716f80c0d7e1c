"""FastAPI dependencies resolving the process-wide resources."""

from typing import Annotated

from fastapi import Depends, Request

from backend.app.db.repositories import ConversationStore, DocumentRegistry
from backend.app.orchestration.turn import TurnOrchestrator
from backend.app.resources import AppResources


def get_resources(request: Request) -> AppResources:
    """Resources installed on app.state by the lifespan handler."""
    return request.app.state.resources


def get_orchestrator(
    resources: Annotated[AppResources, Depends(get_resources)],
) -> TurnOrchestrator:
    return resources.orchestrator


def get_conversations(
    resources: Annotated[AppResources, Depends(get_resources)],
) -> ConversationStore:
    return resources.conversations


def get_documents(
    resources: Annotated[AppResources, Depends(get_resources)],
) -> DocumentRegistry:
    return resources.documents
