"""Wire schemas for users, posts and errors.

Every model accepts unknown extra fields and keeps them on the validated value.
Field names travel as camelCase on the wire and are snake_case in Python.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional, Tuple
from uuid import UUID

from email_validator import EmailNotValidError, validate_email
from pydantic import (
    AfterValidator,
    AwareDatetime,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    StrictBool,
    StringConstraints,
    TypeAdapter,
    ValidationError,
    WithJsonSchema,
    field_validator,
)
from pydantic.alias_generators import to_camel

from .errors import FieldViolation, SchemaValidationError

_UUID_PATTERN = re.compile(r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}")
_TIMESTAMP_PATTERN = re.compile(
    r"[0-9]{4}-[0-9]{2}-[0-9]{2}T[0-9]{2}:[0-9]{2}:[0-9]{2}(\.[0-9]+)?(Z|[+-][0-9]{2}:[0-9]{2})"
)


def _check_uuid_syntax(value: object) -> object:
    if isinstance(value, str) and not _UUID_PATTERN.fullmatch(value):
        raise ValueError("must be a valid UUID")
    return value


def _check_timestamp_syntax(value: object) -> object:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and _TIMESTAMP_PATTERN.fullmatch(value):
        return value
    raise ValueError("must be an ISO-8601 datetime string with an offset")


def _check_email(value: str) -> str:
    # Stored verbatim: inputs the validator would rewrite are rejected.
    if value != value.strip() or "<" in value or ">" in value:
        raise ValueError("value is not a valid email address")
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValueError(f"value is not a valid email address: {exc}") from exc
    return value


def _parse_query_bool(value: object) -> object:
    if value is None or isinstance(value, bool):
        return value
    if value == "true":
        return True
    if value == "false":
        return False
    raise ValueError("must be 'true' or 'false'")


def _reject_null(value: object) -> object:
    if value is None:
        raise ValueError("must not be null")
    return value


Uuid = Annotated[UUID, BeforeValidator(_check_uuid_syntax)]
Timestamp = Annotated[AwareDatetime, BeforeValidator(_check_timestamp_syntax)]
Email = Annotated[
    str,
    AfterValidator(_check_email),
    WithJsonSchema({"type": "string", "format": "email"}),
]
Name = Annotated[str, StringConstraints(min_length=1, max_length=100)]
Title = Annotated[str, StringConstraints(min_length=1, max_length=200)]
PublishedFilter = Annotated[
    Optional[bool],
    BeforeValidator(_parse_query_bool),
    WithJsonSchema({"type": "boolean"}),
]


class WireModel(BaseModel):
    # Python code may build models by field name; wire payloads are only
    # read by alias, see Schema.collect.
    model_config = ConfigDict(
        extra="allow",
        alias_generator=to_camel,
        validate_by_alias=True,
        validate_by_name=True,
    )


class User(WireModel):
    id: Uuid
    email: Email
    name: Name
    created_at: Timestamp
    updated_at: Timestamp


class CreateUserRequest(WireModel):
    email: Email
    name: Name


class UpdateUserRequest(WireModel):
    """Partial update: only the fields that were supplied are applied."""

    email: Optional[Email] = None
    name: Optional[Name] = None

    @field_validator("email", "name", mode="before")
    @classmethod
    def _present_fields_not_null(cls, value: object) -> object:
        return _reject_null(value)

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(include=set(type(self).model_fields), exclude_unset=True)


class Post(WireModel):
    id: Uuid
    title: Title
    content: str
    published: StrictBool
    author_id: Uuid
    created_at: Timestamp
    updated_at: Timestamp


class CreatePostRequest(WireModel):
    title: Title
    content: str
    published: StrictBool = False
    author_id: Uuid


class UpdatePostRequest(WireModel):
    """Partial update: only the fields that were supplied are applied."""

    title: Optional[Title] = None
    content: Optional[str] = None
    published: Optional[StrictBool] = None

    @field_validator("title", "content", "published", mode="before")
    @classmethod
    def _present_fields_not_null(cls, value: object) -> object:
        return _reject_null(value)

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(include=set(type(self).model_fields), exclude_unset=True)


class ErrorResponse(WireModel):
    message: str
    code: Optional[str] = None


def _location_of(prefix: Optional[str], loc: Tuple[Any, ...]) -> str:
    parts = [str(part) for part in loc]
    if prefix:
        parts.insert(0, prefix)
    return ".".join(parts) or "value"


class Schema:
    """A named validator compiled once from a type annotation."""

    def __init__(self, name: str, annotation: Any) -> None:
        self.name = name
        self.annotation = annotation
        self._adapter: TypeAdapter[Any] = TypeAdapter(annotation)

    def __repr__(self) -> str:
        return f"Schema({self.name!r})"

    @property
    def is_model(self) -> bool:
        return isinstance(self.annotation, type) and issubclass(self.annotation, BaseModel)

    def collect(self, value: Any, location: Optional[str] = None) -> Tuple[Any, List[FieldViolation]]:
        """Validate ``value`` and return it with every violation found."""

        try:
            return self._adapter.validate_python(value, by_alias=True, by_name=False), []
        except ValidationError as exc:
            violations = [
                FieldViolation(_location_of(location, tuple(error["loc"])), error["msg"])
                for error in exc.errors(include_url=False)
            ]
            return None, violations

    def validate(self, value: Any, location: Optional[str] = None) -> Any:
        validated, violations = self.collect(value, location)
        if violations:
            raise SchemaValidationError(violations, prefix=f"Invalid {self.name}")
        return validated

    def dump(self, value: Any) -> Any:
        return self._adapter.dump_python(value, mode="json", by_alias=True, exclude_none=True)

    def json_schema(self, ref_template: str) -> Dict[str, Any]:
        return self._adapter.json_schema(by_alias=True, ref_template=ref_template)


def validate(schema: Schema, value: Any) -> Any:
    """Validate ``value`` against ``schema``, raising :class:`SchemaValidationError`."""

    return schema.validate(value)


USER = Schema("User", User)
USER_LIST = Schema("UserList", List[User])
CREATE_USER_REQUEST = Schema("CreateUserRequest", CreateUserRequest)
UPDATE_USER_REQUEST = Schema("UpdateUserRequest", UpdateUserRequest)
POST = Schema("Post", Post)
POST_LIST = Schema("PostList", List[Post])
CREATE_POST_REQUEST = Schema("CreatePostRequest", CreatePostRequest)
UPDATE_POST_REQUEST = Schema("UpdatePostRequest", UpdatePostRequest)
ERROR_RESPONSE = Schema("ErrorResponse", ErrorResponse)
UUID_PARAMETER = Schema("uuid", Uuid)
PUBLISHED_FILTER = Schema("published", PublishedFilter)


__all__ = [
    "CREATE_POST_REQUEST",
    "CREATE_USER_REQUEST",
    "CreatePostRequest",
    "CreateUserRequest",
    "ERROR_RESPONSE",
    "Email",
    "ErrorResponse",
    "POST",
    "POST_LIST",
    "PUBLISHED_FILTER",
    "Post",
    "Schema",
    "UPDATE_POST_REQUEST",
    "UPDATE_USER_REQUEST",
    "USER",
    "USER_LIST",
    "UUID_PARAMETER",
    "UpdatePostRequest",
    "UpdateUserRequest",
    "User",
    "Uuid",
    "WireModel",
    "validate",
]
