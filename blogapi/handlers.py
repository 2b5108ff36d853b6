"""Endpoint handlers for user and post operations.

Each handler receives inputs already validated against the contract registry,
calls the database and returns the payload described by the operation's
success response. Failures are raised as :class:`~blogapi.errors.ApiProblem`.
"""

from __future__ import annotations

import functools
import logging
from types import MappingProxyType
from typing import Any, Awaitable, Callable, List, Mapping, Optional, TypeVar

import anyio

from . import schemas
from .contract import OperationInput
from .database import Database, DuplicateEmailError, UnknownAuthorError
from .errors import BadRequestError, NotFoundError
from .models import PostRecord, UserRecord

logger = logging.getLogger("blogapi.handlers")

T = TypeVar("T")

Handler = Callable[[Database, OperationInput], Awaitable[Any]]


async def _run(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    return await anyio.to_thread.run_sync(functools.partial(func, *args, **kwargs))


def user_to_schema(user: UserRecord) -> schemas.User:
    return schemas.User(
        id=user.id,
        email=user.email,
        name=user.name,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def post_to_schema(post: PostRecord) -> schemas.Post:
    return schemas.Post(
        id=post.id,
        title=post.title,
        content=post.content,
        published=post.published,
        author_id=post.author_id,
        created_at=post.created_at,
        updated_at=post.updated_at,
    )


def _require(record: Optional[T], resource: str) -> T:
    if record is None:
        raise NotFoundError(resource)
    return record


# ----------------------------------------------------------------------
# Posts
# ----------------------------------------------------------------------
async def list_posts(database: Database, call: OperationInput) -> List[schemas.Post]:
    posts = await _run(database.list_posts, published=call.query.get("published"))
    return [post_to_schema(post) for post in posts]


async def create_post(database: Database, call: OperationInput) -> schemas.Post:
    payload: schemas.CreatePostRequest = call.body
    try:
        post = await _run(
            database.create_post,
            title=payload.title,
            content=payload.content,
            published=payload.published,
            author_id=str(payload.author_id),
        )
    except UnknownAuthorError as exc:
        raise BadRequestError(str(exc), code="invalid_reference") from exc
    logger.info("Created post %s for user %s", post.id, post.author_id)
    return post_to_schema(post)


async def get_post(database: Database, call: OperationInput) -> schemas.Post:
    post = await _run(database.get_post, str(call.path["id"]))
    return post_to_schema(_require(post, "Post"))


async def update_post(database: Database, call: OperationInput) -> schemas.Post:
    payload: schemas.UpdatePostRequest = call.body
    post = await _run(database.update_post, str(call.path["id"]), **payload.changes())
    return post_to_schema(_require(post, "Post"))


async def delete_post(database: Database, call: OperationInput) -> None:
    post_id = str(call.path["id"])
    deleted = await _run(database.delete_post, post_id)
    if not deleted:
        raise NotFoundError("Post")
    logger.info("Deleted post %s", post_id)


# ----------------------------------------------------------------------
# Users
# ----------------------------------------------------------------------
async def list_users(database: Database, call: OperationInput) -> List[schemas.User]:
    users = await _run(database.list_users)
    return [user_to_schema(user) for user in users]


async def create_user(database: Database, call: OperationInput) -> schemas.User:
    payload: schemas.CreateUserRequest = call.body
    try:
        user = await _run(database.create_user, email=payload.email, name=payload.name)
    except DuplicateEmailError as exc:
        raise BadRequestError(str(exc), code="conflict") from exc
    logger.info("Created user %s", user.id)
    return user_to_schema(user)


async def get_user(database: Database, call: OperationInput) -> schemas.User:
    user = await _run(database.get_user, str(call.path["id"]))
    return user_to_schema(_require(user, "User"))


async def update_user(database: Database, call: OperationInput) -> schemas.User:
    payload: schemas.UpdateUserRequest = call.body
    try:
        user = await _run(database.update_user, str(call.path["id"]), **payload.changes())
    except DuplicateEmailError as exc:
        raise BadRequestError(str(exc), code="conflict") from exc
    return user_to_schema(_require(user, "User"))


async def delete_user(database: Database, call: OperationInput) -> None:
    user_id = str(call.path["id"])
    deleted = await _run(database.delete_user, user_id)
    if not deleted:
        raise NotFoundError("User")
    logger.info("Deleted user %s and their posts", user_id)


async def list_user_posts(database: Database, call: OperationInput) -> List[schemas.Post]:
    posts = await _run(database.list_posts, author_id=str(call.path["userId"]))
    return [post_to_schema(post) for post in posts]


HANDLERS: Mapping[str, Handler] = MappingProxyType(
    {
        "getPosts": list_posts,
        "createPost": create_post,
        "getPostById": get_post,
        "updatePost": update_post,
        "deletePost": delete_post,
        "getUsers": list_users,
        "createUser": create_user,
        "getUserById": get_user,
        "updateUser": update_user,
        "deleteUser": delete_user,
        "getUserPosts": list_user_posts,
    }
)


__all__ = ["HANDLERS", "Handler", "post_to_schema", "user_to_schema"]
