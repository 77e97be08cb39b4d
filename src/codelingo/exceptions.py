"""codelingo exception classes and RFC 9457 problem types.

Connection-scoped failures (bad payloads, missing rooms, permission and store
failures) are described by ``ProblemType`` subclasses and raised as
``ProblemException``:

    >>> raise RoomNotFound.exception(f"Room {room_id} not found")

HTTP routes turn them into ``application/problem+json`` responses; Socket.IO
handlers emit them back to the offending connection as an ``error`` event.

``TranslationFailed`` is different: it never reaches a user as a hard error,
the translation adapter recovers from it by substituting the original text.
"""

import re
from typing import Any, ClassVar

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

PROBLEM_BASE_URI = "/v1/problems"


class CodelingoError(Exception):
    """Base exception for all codelingo errors."""


class ProblemDetail(BaseModel):
    """RFC 9457 problem detail body."""

    type: str
    title: str
    status: int
    detail: str | None = None
    instance: str | None = None


class ProblemException(CodelingoError):
    """Exception carrying a ``ProblemDetail`` for the caller."""

    def __init__(
        self, problem: ProblemDetail, headers: dict[str, str] | None = None
    ) -> None:
        super().__init__(problem.detail or problem.title)
        self.problem = problem
        self.headers = headers

    @property
    def status(self) -> int:
        return self.problem.status


PROBLEM_TYPES: dict[str, type["ProblemType"]] = {}


def _kebab(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "-", name).lower()


class ProblemType:
    """Base class for registered problem types.

    Subclasses declare ``title`` and ``status``; the docstring doubles as the
    human readable documentation served under ``/v1/problems/{id}``.
    """

    title: ClassVar[str]
    status: ClassVar[int]

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        PROBLEM_TYPES[cls.problem_id()] = cls

    @classmethod
    def problem_id(cls) -> str:
        return _kebab(cls.__name__)

    @classmethod
    def type_uri(cls) -> str:
        return f"{PROBLEM_BASE_URI}/{cls.problem_id()}"

    @classmethod
    def create(
        cls, detail: str | None = None, instance: str | None = None
    ) -> ProblemDetail:
        return ProblemDetail(
            type=cls.type_uri(),
            title=cls.title,
            status=cls.status,
            detail=detail,
            instance=instance,
        )

    @classmethod
    def exception(
        cls,
        detail: str | None = None,
        *,
        instance: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> ProblemException:
        return ProblemException(cls.create(detail, instance), headers=headers)

    @classmethod
    def matches(cls, exc: BaseException) -> bool:
        """Return True if *exc* is a ProblemException of this type."""
        return isinstance(exc, ProblemException) and exc.problem.type == cls.type_uri()


class InvalidRequest(ProblemType):
    """The request or event payload is malformed or misses required fields.

    No side effects were performed. Fix the payload before retrying.
    """

    title = "Bad Request"
    status = 400


class Forbidden(ProblemType):
    """The connection is not allowed to perform this operation.

    Starting a session is reserved for the room creator.
    """

    title = "Forbidden"
    status = 403


class RoomNotFound(ProblemType):
    """The referenced room does not exist. No mutation was attempted."""

    title = "Not Found"
    status = 404


class StoreUnavailable(ProblemType):
    """The durable room store could not be reached.

    Room-critical operations (join, code persistence) are aborted instead of
    proceeding with stale in-memory state.
    """

    title = "Service Unavailable"
    status = 503


class TranslationFailed(CodelingoError):
    """Raised by translation providers on error or timeout.

    Carries the original text so callers can fall back to it.
    """

    def __init__(self, original_text: str, reason: str | None = None) -> None:
        super().__init__(reason or "translation failed")
        self.original_text = original_text
        self.reason = reason or "translation failed"


def problem_responses(*problem_types: type[ProblemType]) -> dict[int | str, Any]:
    """Build a FastAPI ``responses`` mapping for OpenAPI documentation.

    Problem types sharing a status code are merged into one entry.
    """
    grouped: dict[int, list[type[ProblemType]]] = {}
    for problem_type in problem_types:
        grouped.setdefault(problem_type.status, []).append(problem_type)

    responses: dict[int | str, Any] = {}
    for status, types in grouped.items():
        description = "; ".join(
            f"{t.problem_id()}: {(t.__doc__ or t.title).strip().splitlines()[0]}"
            for t in types
        )
        responses[status] = {
            "model": ProblemDetail,
            "description": description,
            "content": {"application/problem+json": {}},
        }
    return responses


async def problem_exception_handler(
    _request: Request, exc: ProblemException
) -> JSONResponse:
    """Render a ProblemException as ``application/problem+json``."""
    return JSONResponse(
        status_code=exc.problem.status,
        content=exc.problem.model_dump(exclude_none=True),
        media_type="application/problem+json",
        headers=exc.headers,
    )
