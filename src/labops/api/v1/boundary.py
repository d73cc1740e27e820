# src/labops/api/v1/boundary.py
"""
Async error boundary for route handlers.

Exceptions raised inside an `async def` handler normally travel up to Starlette's
server-error middleware when nothing more specific is registered. The two tools here
keep them on the regular handled channel instead:

- `async_handler(fn)`: decorator for a single coroutine handler; unknown exceptions
  are classified and re-raised as taxonomy errors (original kept as `__cause__`).
  Inside an app built by `create_app` the app's own classifier is used
  (`bind_app_classifier`).
- `ErrorBoundaryRoute`: an APIRoute subclass that answers ANY exception escaping the
  endpoint (dependencies included) through `global_error_handler`.

    router = APIRouter(route_class=ErrorBoundaryRoute)

    @router.get("/samples/{id}")
    @async_handler
    async def get_sample(id: str):
        ...
"""

import functools
import inspect
from typing import Any, Awaitable, Callable

from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.routing import APIRoute
from starlette.exceptions import HTTPException as StarletteHTTPException

from labops.exceptions.base import TaxonomyError
from labops.exceptions.classifier import bind_classifier, classify

from .error_handlers import global_error_handler


async def bind_app_classifier(request: Request) -> None:
    """
    App-wide dependency: `classify()` in route code uses the classifier of the app
    serving the request (its DB backend and exposure policy), not the settings default.

    The binding lives in the request task's context and ends with it.
    """
    bind_classifier(getattr(request.app.state, "classifier", None))


# Errors the registered exception handlers already understand; passed through untouched.
PASSTHROUGH = (TaxonomyError, StarletteHTTPException, RequestValidationError)


def async_handler(fn: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
    """
    Wrap a coroutine route handler so every failure reaches the error handlers
    as a taxonomy error.

    The wrapped function keeps the original signature, so FastAPI still resolves
    its parameters and dependencies.
    """
    if not inspect.iscoroutinefunction(fn):
        raise TypeError(f"async_handler expects an async function, got {fn!r}")

    @functools.wraps(fn)
    async def wrapper(*args, **kwargs):
        try:
            return await fn(*args, **kwargs)
        except PASSTHROUGH:
            raise
        except Exception as exc:
            raise classify(exc) from exc

    return wrapper


class ErrorBoundaryRoute(APIRoute):
    """Route class that formats every endpoint failure through the global handler."""

    def get_route_handler(self) -> Callable[[Request], Awaitable[Response]]:
        original_handler = super().get_route_handler()

        async def boundary_handler(request: Request) -> Response:
            try:
                return await original_handler(request)
            except Exception as exc:
                return await global_error_handler(request, exc)

        return boundary_handler


__all__ = ["async_handler", "bind_app_classifier", "ErrorBoundaryRoute", "PASSTHROUGH"]


r"""
---------------------------------------------------------
Which one should I use?
---------------------------------------------------------
| Situation                                           | Tool                 |
| --------------------------------------------------- | -------------------- |
| One handler calls an SDK that raises its own errors | @async_handler       |
| A whole router should never leak a raw exception    | ErrorBoundaryRoute   |
| Plain TaxonomyError raised on purpose               | nothing (handled)    |

`async_handler` must sit BELOW the router decorator so FastAPI registers the wrapper:
```
@router.get("/x")      # registers wrapper
@async_handler         # wraps the coroutine
async def x(): ...
```
"""
