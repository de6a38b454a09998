from fastapi import Request

from app.container import ServiceContainer


def get_container(request: Request) -> ServiceContainer:
    """The container opened by the application lifespan."""
    return request.app.state.container
