"""API dependencies for FastAPI endpoints."""

from collections.abc import Callable

from fastapi import Request

from arena_server.context import AppContext


def get_context(request: Request) -> AppContext:
    """FastAPI dependency returning the application context."""
    return request.app.state.context


def service[T](service_type: type[T]) -> Callable[[Request], T]:
    """FastAPI dependency that provides a service by type.

    Services are looked up in the service registry of the application
    context attached to ``app.state.context``.

    Args:
        service_type: The type of service to retrieve from the registry

    Returns:
        A callable that returns the requested service instance

    Example:
        ```python
        @router.get("/endpoint")
        def endpoint(matches: MatchService = Depends(service(MatchService))):
            return matches.list_matches()
        ```
    """

    def get_service(request: Request) -> T:
        return get_context(request).services.get(service_type)

    return get_service
