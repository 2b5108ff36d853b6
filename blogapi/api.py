"""FastAPI application that serves every operation in the contract registry."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Optional

import yaml
from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__, schemas
from .config import Settings, load_settings
from .contract import REGISTRY, ContractRegistry, OperationSpec
from .database import Database
from .errors import ApiProblem, BadRequestError, UnclassifiedServerError
from .handlers import HANDLERS, Handler

logger = logging.getLogger("blogapi.api")

API_TITLE = "Blog API"


def error_response(problem: ApiProblem, headers: Optional[Mapping[str, str]] = None) -> JSONResponse:
    body = schemas.ErrorResponse(message=problem.message, code=problem.code)
    return JSONResponse(
        status_code=problem.status_code,
        content=schemas.ERROR_RESPONSE.dump(body),
        headers=dict(headers) if headers else None,
    )


async def _read_json_body(request: Request) -> Any:
    raw = await request.body()
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise BadRequestError("Request body must be valid JSON", code="validation_error") from exc


def _log_problem(operation: OperationSpec, request: Request, problem: ApiProblem) -> None:
    if problem.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, problem.message)
    else:
        logger.info(
            "%s %s rejected with %s (%s): %s",
            request.method,
            request.url.path,
            problem.status_code,
            operation.alias,
            problem.message,
        )


def _build_endpoint(operation: OperationSpec, handler: Handler, database: Database):
    async def endpoint(request: Request) -> Response:
        try:
            body = None
            if operation.body_parameter is not None:
                body = await _read_json_body(request)
            call = operation.parse_request(request.path_params, request.query_params, body)
            payload = await handler(database, call)
            content = operation.render_response(payload)
        except ApiProblem as exc:
            _log_problem(operation, request, exc)
            return error_response(exc)
        except Exception:
            logger.exception("Unhandled error while serving %s %s", request.method, request.url.path)
            return error_response(UnclassifiedServerError())

        if content is None:
            return Response(status_code=operation.response.status)
        return JSONResponse(status_code=operation.response.status, content=content)

    endpoint.__name__ = operation.alias
    return endpoint


def create_app(
    *,
    database: Database | None = None,
    settings: Settings | None = None,
    registry: ContractRegistry = REGISTRY,
    handlers: Mapping[str, Handler] = HANDLERS,
    initialize_database: bool = True,
) -> FastAPI:
    """Build the ASGI application for ``registry``.

    Each registry operation is bound to the handler sharing its alias.
    """

    if settings is None:
        settings = load_settings()
    if database is None:
        database = Database(settings.database_path)
    if initialize_database:
        database.initialize()

    missing = [operation.alias for operation in registry if operation.alias not in handlers]
    if missing:
        raise ValueError(f"No handler registered for: {', '.join(sorted(missing))}")

    app = FastAPI(
        title=API_TITLE,
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.database = database
    app.state.registry = registry

    contract_document = registry.openapi(title=API_TITLE, version=__version__)

    for operation in registry:
        app.add_api_route(
            operation.path,
            _build_endpoint(operation, handlers[operation.alias], database),
            methods=[operation.method],
            name=operation.alias,
            include_in_schema=False,
        )

    @app.get("/health")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/openapi.json", include_in_schema=False)
    async def contract_json() -> JSONResponse:
        return JSONResponse(contract_document)

    @app.get("/openapi.yaml", include_in_schema=False)
    async def contract_yaml() -> Response:
        return Response(
            yaml.safe_dump(contract_document, sort_keys=False),
            media_type="application/yaml",
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = "not_found" if exc.status_code == status.HTTP_404_NOT_FOUND else None
        problem = ApiProblem(str(exc.detail), code=code)
        problem.status_code = exc.status_code
        return error_response(problem, headers=getattr(exc, "headers", None))

    logger.info("Registered %d operations from the contract registry", len(registry))
    return app


__all__ = ["create_app", "error_response"]
