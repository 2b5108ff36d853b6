"""Typed HTTP clients built from the contract registry.

Every call returns an :class:`ApiSuccess`, an :class:`ApiError` for an error
status declared by the operation, or an :class:`UnclassifiedError` for any other
status. Only transport failures and responses that break the contract raise.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Generic, List, Mapping, Optional, Tuple, TypeVar, Union
from uuid import UUID

import httpx
from pydantic import BaseModel

from .contract import REGISTRY, ContractRegistry, OperationSpec
from .errors import ResponseContractError, TransportError
from .schemas import (
    CreatePostRequest,
    CreateUserRequest,
    ErrorResponse,
    Post,
    UpdatePostRequest,
    UpdateUserRequest,
    User,
)

T = TypeVar("T")

DEFAULT_BASE_URL = "http://localhost:3000"


@dataclass(frozen=True)
class ApiSuccess(Generic[T]):
    status_code: int
    data: T
    ok: ClassVar[bool] = True


@dataclass(frozen=True)
class ApiError:
    """A declared error response, parsed as :class:`ErrorResponse`."""

    status_code: int
    error: ErrorResponse
    ok: ClassVar[bool] = False


@dataclass(frozen=True)
class UnclassifiedError:
    """A status code the operation does not declare, with the raw body."""

    status_code: int
    body: str
    ok: ClassVar[bool] = False


ApiResult = Union[ApiSuccess[T], ApiError, UnclassifiedError]

Body = Union[BaseModel, Mapping[str, Any]]
Identifier = Union[UUID, str]


@dataclass(frozen=True)
class PreparedRequest:
    method: str
    url: str
    params: Dict[str, str] = field(default_factory=dict)
    json: Any = None


def _normalize_base_url(base_url: str) -> str:
    cleaned = (base_url or "").strip()
    if not cleaned:
        raise ValueError("API base URL must not be empty")
    return cleaned.rstrip("/")


def _encode_query_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def prepare_request(
    operation: OperationSpec,
    path: Optional[Mapping[str, Any]] = None,
    query: Optional[Mapping[str, Any]] = None,
    body: Optional[Body] = None,
) -> PreparedRequest:
    """Build the method, path, query string and JSON body for ``operation``.

    Model bodies are serialised with their wire aliases; plain mappings are
    sent unchanged and left for the server to validate.
    """

    url = operation.expand_path(path or {})

    params: Dict[str, str] = {}
    supplied = query or {}
    for param in operation.query_parameters:
        value = supplied.get(param.name)
        if value is not None:
            params[param.name] = _encode_query_value(value)

    payload: Any = None
    body_param = operation.body_parameter
    if body_param is not None:
        if isinstance(body, BaseModel):
            payload = body_param.schema.dump(body)
        elif body is not None:
            payload = dict(body)

    return PreparedRequest(method=operation.method, url=url, params=params, json=payload)


def parse_response(operation: OperationSpec, status_code: int, text: str) -> ApiResult[Any]:
    """Interpret a response according to the schema declared for its status."""

    spec = operation.response_for(status_code)
    if spec is None:
        return UnclassifiedError(status_code=status_code, body=text)

    is_success = spec is operation.response
    if spec.schema is None:
        return ApiSuccess(status_code=status_code, data=None)

    try:
        data = json.loads(text)
    except ValueError as exc:
        raise ResponseContractError(
            f"{operation.alias} returned a body that is not valid JSON (status {status_code})",
            status_code=status_code,
            body=text,
        ) from exc

    value, violations = spec.schema.collect(data)
    if violations:
        details = "; ".join(str(item) for item in violations)
        raise ResponseContractError(
            f"{operation.alias} returned a body that does not match {spec.schema.name}: {details}",
            status_code=status_code,
            body=text,
        )

    if is_success:
        return ApiSuccess(status_code=status_code, data=value)
    return ApiError(status_code=status_code, error=value)


class _ClientBase:
    def __init__(self, registry: ContractRegistry) -> None:
        self._registry = registry

    @property
    def registry(self) -> ContractRegistry:
        return self._registry

    def _prepare(
        self,
        alias: str,
        path: Optional[Mapping[str, Any]],
        query: Optional[Mapping[str, Any]],
        body: Optional[Body],
    ) -> Tuple[OperationSpec, PreparedRequest]:
        operation = self._registry.get(alias)
        return operation, prepare_request(operation, path, query, body)


class ApiClient(_ClientBase):
    """Synchronous client for the blog API."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        client: httpx.Client | None = None,
        timeout: float = 30.0,
        headers: Optional[Mapping[str, str]] = None,
        registry: ContractRegistry = REGISTRY,
    ) -> None:
        super().__init__(registry)
        if client is None:
            client = httpx.Client(
                base_url=_normalize_base_url(base_url),
                timeout=timeout,
                headers=dict(headers) if headers else None,
            )
            self._owns_client = True
        else:
            self._owns_client = False
        self._client = client

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def call(
        self,
        alias: str,
        *,
        path: Optional[Mapping[str, Any]] = None,
        query: Optional[Mapping[str, Any]] = None,
        body: Optional[Body] = None,
    ) -> ApiResult[Any]:
        operation, prepared = self._prepare(alias, path, query, body)
        try:
            response = self._client.request(
                prepared.method,
                prepared.url,
                params=prepared.params or None,
                json=prepared.json,
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"{prepared.method} {prepared.url} failed: {exc}") from exc
        return parse_response(operation, response.status_code, response.text)

    def get_posts(self, *, published: Optional[bool] = None) -> ApiResult[List[Post]]:
        return self.call("getPosts", query={"published": published})

    def create_post(self, body: Union[CreatePostRequest, Mapping[str, Any]]) -> ApiResult[Post]:
        return self.call("createPost", body=body)

    def get_post_by_id(self, post_id: Identifier) -> ApiResult[Post]:
        return self.call("getPostById", path={"id": post_id})

    def update_post(
        self,
        post_id: Identifier,
        body: Union[UpdatePostRequest, Mapping[str, Any]],
    ) -> ApiResult[Post]:
        return self.call("updatePost", path={"id": post_id}, body=body)

    def delete_post(self, post_id: Identifier) -> ApiResult[None]:
        return self.call("deletePost", path={"id": post_id})

    def get_users(self) -> ApiResult[List[User]]:
        return self.call("getUsers")

    def create_user(self, body: Union[CreateUserRequest, Mapping[str, Any]]) -> ApiResult[User]:
        return self.call("createUser", body=body)

    def get_user_by_id(self, user_id: Identifier) -> ApiResult[User]:
        return self.call("getUserById", path={"id": user_id})

    def update_user(
        self,
        user_id: Identifier,
        body: Union[UpdateUserRequest, Mapping[str, Any]],
    ) -> ApiResult[User]:
        return self.call("updateUser", path={"id": user_id}, body=body)

    def delete_user(self, user_id: Identifier) -> ApiResult[None]:
        return self.call("deleteUser", path={"id": user_id})

    def get_user_posts(self, user_id: Identifier) -> ApiResult[List[Post]]:
        return self.call("getUserPosts", path={"userId": user_id})


class AsyncApiClient(_ClientBase):
    """Asynchronous client for the blog API."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        headers: Optional[Mapping[str, str]] = None,
        registry: ContractRegistry = REGISTRY,
    ) -> None:
        super().__init__(registry)
        if client is None:
            client = httpx.AsyncClient(
                base_url=_normalize_base_url(base_url),
                timeout=timeout,
                headers=dict(headers) if headers else None,
            )
            self._owns_client = True
        else:
            self._owns_client = False
        self._client = client

    async def __aenter__(self) -> "AsyncApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def call(
        self,
        alias: str,
        *,
        path: Optional[Mapping[str, Any]] = None,
        query: Optional[Mapping[str, Any]] = None,
        body: Optional[Body] = None,
    ) -> ApiResult[Any]:
        operation, prepared = self._prepare(alias, path, query, body)
        try:
            response = await self._client.request(
                prepared.method,
                prepared.url,
                params=prepared.params or None,
                json=prepared.json,
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"{prepared.method} {prepared.url} failed: {exc}") from exc
        return parse_response(operation, response.status_code, response.text)

    async def get_posts(self, *, published: Optional[bool] = None) -> ApiResult[List[Post]]:
        return await self.call("getPosts", query={"published": published})

    async def create_post(self, body: Union[CreatePostRequest, Mapping[str, Any]]) -> ApiResult[Post]:
        return await self.call("createPost", body=body)

    async def get_post_by_id(self, post_id: Identifier) -> ApiResult[Post]:
        return await self.call("getPostById", path={"id": post_id})

    async def update_post(
        self,
        post_id: Identifier,
        body: Union[UpdatePostRequest, Mapping[str, Any]],
    ) -> ApiResult[Post]:
        return await self.call("updatePost", path={"id": post_id}, body=body)

    async def delete_post(self, post_id: Identifier) -> ApiResult[None]:
        return await self.call("deletePost", path={"id": post_id})

    async def get_users(self) -> ApiResult[List[User]]:
        return await self.call("getUsers")

    async def create_user(self, body: Union[CreateUserRequest, Mapping[str, Any]]) -> ApiResult[User]:
        return await self.call("createUser", body=body)

    async def get_user_by_id(self, user_id: Identifier) -> ApiResult[User]:
        return await self.call("getUserById", path={"id": user_id})

    async def update_user(
        self,
        user_id: Identifier,
        body: Union[UpdateUserRequest, Mapping[str, Any]],
    ) -> ApiResult[User]:
        return await self.call("updateUser", path={"id": user_id}, body=body)

    async def delete_user(self, user_id: Identifier) -> ApiResult[None]:
        return await self.call("deleteUser", path={"id": user_id})

    async def get_user_posts(self, user_id: Identifier) -> ApiResult[List[Post]]:
        return await self.call("getUserPosts", path={"userId": user_id})


__all__ = [
    "ApiClient",
    "ApiError",
    "ApiResult",
    "ApiSuccess",
    "AsyncApiClient",
    "PreparedRequest",
    "UnclassifiedError",
    "parse_response",
    "prepare_request",
]
