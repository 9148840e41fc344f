"""FastAPI dependencies."""

from fastapi import Request

from src.container import Container
from src.engine.negotiation import NegotiationService


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_service(request: Request) -> NegotiationService:
    return request.app.state.container.service
