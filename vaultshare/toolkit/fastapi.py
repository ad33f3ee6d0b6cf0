"""
FastAPI glue between the service layer and the outside world: the identity
of the acting user, and the translation of service failures into
responses.

Identity is established by a collaborator in front of this service (for
instance an authenticating proxy), which passes the user's opaque id in a
header. The name of the header is `request.app.state.settings.user_id_header`
(`X-User-ID` by default). It is trusted as given.

To use the dependency:

```
from vaultshare.toolkit.fastapi import ActorDependency

@router.get("/endpoint")
async def endpoint(actor_id: ActorDependency):
    ...
```

and call `add_exception_handlers` on your app at startup so that
`ServiceError`s become JSON error responses instead of 500s.
"""

from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from structlog import get_logger

from vaultshare.core.errors import Internal, ServiceError

DEFAULT_USER_ID_HEADER = "X-User-ID"


async def handle_actor(request: Request) -> str:
    """
    The id of the user performing the request. Raises a 401 if the identity
    header is missing or blank.
    """
    settings = getattr(request.app.state, "settings", None)
    header = getattr(settings, "user_id_header", DEFAULT_USER_ID_HEADER)

    actor_id = request.headers.get(header, "").strip()

    if not actor_id:
        get_logger().debug("tk.fastapi.actor.missing", header=header)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User ID not provided in headers",
        )

    return actor_id


def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """
    Turns a `ServiceError` into a JSON response with the status of its kind.
    """
    content = {"detail": exc.detail}

    if isinstance(exc, Internal) and exc.step is not None:
        content["step"] = exc.step

    log = get_logger()
    log = log.bind(
        url=str(request.url),
        error_type=type(exc).__name__,
        status_code=exc.status_code,
        detail=exc.detail,
    )

    if exc.status_code >= 500:
        log.error("tk.fastapi.service_error")
    else:
        log.debug("tk.fastapi.service_error")

    return JSONResponse(status_code=exc.status_code, content=content)


def add_exception_handlers(app: FastAPI) -> FastAPI:
    """
    Adds the exception handler mapping service failures onto responses.
    """
    app.add_exception_handler(ServiceError, service_error_handler)
    return app


ActorDependency = Annotated[str, Depends(handle_actor)]
