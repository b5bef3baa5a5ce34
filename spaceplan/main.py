"""Spaceplan diagnosis API.

Every error leaves the service as ErrorResponse JSON. Routes raise domain
errors and the handlers below map them:

- FlowNotFoundError -> 404 ``flow_not_found``
- WrongStepError -> 409 ``wrong_step`` (``detail`` carries the current step)
- RequestValidationError -> 422 ``validation_error``
- anything else -> 500 ``internal_error``, retryable
"""

import time
import uuid

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from spaceplan.api.routes import flows, health
from spaceplan.api.routes.flows import FlowNotFoundError
from spaceplan.logging import configure_logging
from spaceplan.models.contracts import ErrorResponse
from spaceplan.workflows.flow import WrongStepError

configure_logging()

logger = structlog.get_logger()

app = FastAPI(
    title="Spaceplan Diagnosis API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url=None,
)


def _error_response(request: Request, status: int, body: ErrorResponse) -> JSONResponse:
    response = JSONResponse(status_code=status, content=body.model_dump())
    # the 500 handler runs outside the middleware, so set the header here too
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        response.headers["X-Request-ID"] = request_id
    return response


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """Bind request_id, method and path into the log context for the request."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id, method=request.method, path=request.url.path
    )
    started = time.perf_counter()
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    logger.debug(
        "request_finished",
        status=response.status_code,
        duration_ms=round((time.perf_counter() - started) * 1000, 1),
    )
    return response


@app.exception_handler(FlowNotFoundError)
async def flow_not_found_handler(request: Request, exc: FlowNotFoundError) -> JSONResponse:
    return _error_response(
        request,
        404,
        ErrorResponse(error="flow_not_found", message="Flow not found", retryable=False),
    )


@app.exception_handler(WrongStepError)
async def wrong_step_handler(request: Request, exc: WrongStepError) -> JSONResponse:
    logger.info("flow_wrong_step", action=exc.action, step=exc.step)
    return _error_response(
        request,
        409,
        ErrorResponse(error="wrong_step", message=str(exc), retryable=False, detail=exc.step),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Flatten pydantic errors to ``field: message`` pairs; the body prefix is dropped."""
    problems = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"] if part != "body") or "body"
        problems.append(f"{field}: {err['msg']}")
    return _error_response(
        request,
        422,
        ErrorResponse(error="validation_error", message="; ".join(problems), retryable=False),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    return _error_response(
        request,
        500,
        ErrorResponse(
            error="internal_error", message="An unexpected error occurred", retryable=True
        ),
    )


app.include_router(health.router)
app.include_router(flows.router, prefix="/api/v1")
