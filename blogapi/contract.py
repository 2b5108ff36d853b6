"""Contract registry describing every operation exposed by the blog API.

The registry is the single description consulted by the HTTP application to
validate requests and responses and by the client to build calls. It is built
once at import time and never mutated afterwards.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple
from urllib.parse import quote

from . import schemas
from .errors import FieldViolation, SchemaValidationError, UnclassifiedServerError
from .schemas import Schema

logger = logging.getLogger("blogapi.contract")

PATH = "path"
QUERY = "query"
BODY = "body"

REF_TEMPLATE = "#/components/schemas/{model}"

_PLACEHOLDER = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")
_COLON_PLACEHOLDER = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")


def normalize_path_template(template: str) -> str:
    """Convert ``/users/:id`` style templates to ``/users/{id}``."""

    return _COLON_PLACEHOLDER.sub(r"{\1}", template.strip())


@dataclass(frozen=True)
class ParameterSpec:
    name: str
    location: str
    schema: Schema
    required: bool = True


@dataclass(frozen=True)
class ResponseSpec:
    status: int
    description: str
    schema: Optional[Schema] = None


@dataclass(frozen=True)
class OperationInput:
    """Validated inputs for one operation call."""

    path: Mapping[str, Any] = field(default_factory=dict)
    query: Mapping[str, Any] = field(default_factory=dict)
    body: Any = None


@dataclass(frozen=True)
class OperationSpec:
    alias: str
    method: str
    path: str
    summary: str
    tag: str
    response: ResponseSpec
    parameters: Tuple[ParameterSpec, ...] = ()
    errors: Tuple[ResponseSpec, ...] = ()

    @property
    def key(self) -> Tuple[str, str]:
        return self.method, self.path

    @property
    def path_parameters(self) -> Tuple[ParameterSpec, ...]:
        return tuple(param for param in self.parameters if param.location == PATH)

    @property
    def query_parameters(self) -> Tuple[ParameterSpec, ...]:
        return tuple(param for param in self.parameters if param.location == QUERY)

    @property
    def body_parameter(self) -> Optional[ParameterSpec]:
        for param in self.parameters:
            if param.location == BODY:
                return param
        return None

    def response_for(self, status: int) -> Optional[ResponseSpec]:
        """Return the declared response for ``status``, success or error."""

        if status == self.response.status:
            return self.response
        for error in self.errors:
            if error.status == status:
                return error
        return None

    def parse_request(
        self,
        path_params: Mapping[str, Any],
        query_params: Mapping[str, Any],
        body: Any = None,
    ) -> OperationInput:
        """Validate raw request inputs, reporting every violation at once."""

        violations: List[FieldViolation] = []
        path_values: Dict[str, Any] = {}
        query_values: Dict[str, Any] = {}

        for param in self.path_parameters:
            value, problems = param.schema.collect(path_params.get(param.name), f"{PATH}.{param.name}")
            path_values[param.name] = value
            violations.extend(problems)

        for param in self.query_parameters:
            raw = query_params.get(param.name)
            if raw is None and not param.required:
                query_values[param.name] = None
                continue
            value, problems = param.schema.collect(raw, f"{QUERY}.{param.name}")
            query_values[param.name] = value
            violations.extend(problems)

        body_value = None
        body_param = self.body_parameter
        if body_param is not None:
            body_value, problems = body_param.schema.collect(body, BODY)
            violations.extend(problems)

        if violations:
            raise SchemaValidationError(violations)

        return OperationInput(path=path_values, query=query_values, body=body_value)

    def render_response(self, payload: Any) -> Any:
        """Serialise ``payload`` and check it against the success schema."""

        schema = self.response.schema
        if schema is None:
            return None
        data = schema.dump(payload)
        _, problems = schema.collect(data)
        if problems:
            logger.error(
                "Response for %s violates %s: %s",
                self.alias,
                schema.name,
                "; ".join(str(problem) for problem in problems),
            )
            raise UnclassifiedServerError()
        return data

    def expand_path(self, params: Mapping[str, Any]) -> str:
        """Substitute path parameters into the template by name."""

        def _replace(match: "re.Match[str]") -> str:
            name = match.group(1)
            if name not in params or params[name] is None:
                raise KeyError(f"Missing path parameter '{name}' for {self.alias}")
            return quote(str(params[name]), safe="")

        return _PLACEHOLDER.sub(_replace, self.path)

    def openapi_operation(self, components: Dict[str, Any]) -> Dict[str, Any]:
        operation: Dict[str, Any] = {
            "operationId": self.alias,
            "summary": self.summary,
            "tags": [self.tag],
        }

        parameters = [
            {
                "name": param.name,
                "in": param.location,
                "required": param.required,
                "schema": _schema_object(param.schema, components),
            }
            for param in self.parameters
            if param.location in (PATH, QUERY)
        ]
        if parameters:
            operation["parameters"] = parameters

        body_param = self.body_parameter
        if body_param is not None:
            operation["requestBody"] = {
                "required": True,
                "content": {"application/json": {"schema": _schema_object(body_param.schema, components)}},
            }

        responses: Dict[str, Any] = {}
        for spec in (self.response, *self.errors):
            entry: Dict[str, Any] = {"description": spec.description}
            if spec.schema is not None:
                entry["content"] = {"application/json": {"schema": _schema_object(spec.schema, components)}}
            responses[str(spec.status)] = entry
        operation["responses"] = responses
        return operation


def _schema_object(schema: Schema, components: Dict[str, Any]) -> Dict[str, Any]:
    document = schema.json_schema(REF_TEMPLATE)
    for name, definition in document.pop("$defs", {}).items():
        components.setdefault(name, definition)
    if schema.is_model:
        name = schema.annotation.__name__
        components.setdefault(name, document)
        return {"$ref": REF_TEMPLATE.format(model=name)}
    return document


class ContractRegistry:
    """Read-only mapping of (method, path template) to :class:`OperationSpec`."""

    def __init__(self, operations: Iterable[OperationSpec]) -> None:
        by_key: Dict[Tuple[str, str], OperationSpec] = {}
        by_alias: Dict[str, OperationSpec] = {}
        for operation in operations:
            if operation.key in by_key:
                raise ValueError(f"Duplicate operation {operation.method} {operation.path}")
            if operation.alias in by_alias:
                raise ValueError(f"Duplicate operation alias '{operation.alias}'")
            by_key[operation.key] = operation
            by_alias[operation.alias] = operation
        if not by_key:
            raise ValueError("Contract registry must contain at least one operation")
        self._operations: Mapping[Tuple[str, str], OperationSpec] = MappingProxyType(by_key)
        self._aliases: Mapping[str, OperationSpec] = MappingProxyType(by_alias)

    def __iter__(self) -> Iterator[OperationSpec]:
        return iter(self._operations.values())

    def __len__(self) -> int:
        return len(self._operations)

    def lookup(self, method: str, path_template: str) -> OperationSpec:
        key = (method.strip().upper(), normalize_path_template(path_template))
        try:
            return self._operations[key]
        except KeyError as exc:
            raise KeyError(f"Unknown operation {key[0]} {key[1]}") from exc

    def get(self, alias: str) -> OperationSpec:
        try:
            return self._aliases[alias]
        except KeyError as exc:
            raise KeyError(f"Unknown operation '{alias}'") from exc

    def openapi(self, *, title: str = "Blog API", version: str = "1.0.0") -> Dict[str, Any]:
        """Render the registry as an OpenAPI 3.1 document."""

        components: Dict[str, Any] = {}
        paths: Dict[str, Dict[str, Any]] = {}
        for operation in self:
            item = paths.setdefault(operation.path, {})
            item[operation.method.lower()] = operation.openapi_operation(components)
        return {
            "openapi": "3.1.0",
            "info": {"title": title, "version": version},
            "paths": paths,
            "components": {"schemas": dict(sorted(components.items()))},
        }


def _id_parameter(name: str = "id") -> ParameterSpec:
    return ParameterSpec(name=name, location=PATH, schema=schemas.UUID_PARAMETER)


def _body(schema: Schema) -> ParameterSpec:
    return ParameterSpec(name="body", location=BODY, schema=schema)


_INVALID_REQUEST = "Invalid request"


def build_registry() -> ContractRegistry:
    """Construct the registry of every user and post operation."""

    error = schemas.ERROR_RESPONSE

    def bad_request(description: str = _INVALID_REQUEST) -> ResponseSpec:
        return ResponseSpec(400, description, error)

    def not_found(resource: str) -> ResponseSpec:
        return ResponseSpec(404, f"{resource} not found", error)

    operations = [
        OperationSpec(
            alias="getPosts",
            method="GET",
            path="/posts",
            summary="List posts, optionally filtered by publication state",
            tag="posts",
            parameters=(
                ParameterSpec(name="published", location=QUERY, schema=schemas.PUBLISHED_FILTER, required=False),
            ),
            response=ResponseSpec(200, "Posts ordered newest first", schemas.POST_LIST),
            errors=(bad_request("Invalid query parameters"),),
        ),
        OperationSpec(
            alias="createPost",
            method="POST",
            path="/posts",
            summary="Create a post",
            tag="posts",
            parameters=(_body(schemas.CREATE_POST_REQUEST),),
            response=ResponseSpec(201, "Post created", schemas.POST),
            errors=(bad_request("Invalid request body"),),
        ),
        OperationSpec(
            alias="getPostById",
            method="GET",
            path="/posts/{id}",
            summary="Fetch a post",
            tag="posts",
            parameters=(_id_parameter(),),
            response=ResponseSpec(200, "The post", schemas.POST),
            errors=(bad_request(), not_found("Post")),
        ),
        OperationSpec(
            alias="updatePost",
            method="PUT",
            path="/posts/{id}",
            summary="Update the supplied fields of a post",
            tag="posts",
            parameters=(_id_parameter(), _body(schemas.UPDATE_POST_REQUEST)),
            response=ResponseSpec(200, "The updated post", schemas.POST),
            errors=(bad_request(), not_found("Post")),
        ),
        OperationSpec(
            alias="deletePost",
            method="DELETE",
            path="/posts/{id}",
            summary="Delete a post",
            tag="posts",
            parameters=(_id_parameter(),),
            response=ResponseSpec(204, "Post deleted"),
            errors=(bad_request(), not_found("Post")),
        ),
        OperationSpec(
            alias="getUsers",
            method="GET",
            path="/users",
            summary="List users",
            tag="users",
            response=ResponseSpec(200, "Users ordered newest first", schemas.USER_LIST),
        ),
        OperationSpec(
            alias="createUser",
            method="POST",
            path="/users",
            summary="Create a user",
            tag="users",
            parameters=(_body(schemas.CREATE_USER_REQUEST),),
            response=ResponseSpec(201, "User created", schemas.USER),
            errors=(bad_request("Invalid request body"),),
        ),
        OperationSpec(
            alias="getUserById",
            method="GET",
            path="/users/{id}",
            summary="Fetch a user",
            tag="users",
            parameters=(_id_parameter(),),
            response=ResponseSpec(200, "The user", schemas.USER),
            errors=(bad_request(), not_found("User")),
        ),
        OperationSpec(
            alias="updateUser",
            method="PUT",
            path="/users/{id}",
            summary="Update the supplied fields of a user",
            tag="users",
            parameters=(_id_parameter(), _body(schemas.UPDATE_USER_REQUEST)),
            response=ResponseSpec(200, "The updated user", schemas.USER),
            errors=(bad_request(), not_found("User")),
        ),
        OperationSpec(
            alias="deleteUser",
            method="DELETE",
            path="/users/{id}",
            summary="Delete a user and their posts",
            tag="users",
            parameters=(_id_parameter(),),
            response=ResponseSpec(204, "User deleted"),
            errors=(bad_request(), not_found("User")),
        ),
        OperationSpec(
            alias="getUserPosts",
            method="GET",
            path="/users/{userId}/posts",
            summary="List the posts written by a user",
            tag="users",
            parameters=(_id_parameter("userId"),),
            response=ResponseSpec(200, "Posts ordered newest first", schemas.POST_LIST),
            errors=(bad_request(),),
        ),
    ]
    return ContractRegistry(operations)


REGISTRY = build_registry()


__all__ = [
    "BODY",
    "ContractRegistry",
    "OperationInput",
    "OperationSpec",
    "PATH",
    "ParameterSpec",
    "QUERY",
    "REGISTRY",
    "ResponseSpec",
    "build_registry",
    "normalize_path_template",
]
