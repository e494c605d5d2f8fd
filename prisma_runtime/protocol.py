"""Wire types of the query engine protocol and the engine interface."""

from __future__ import annotations

import base64
import datetime
import decimal
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

UPDATE_NOT_FOUND_MESSAGE = (
    "Error occurred during query execution: InterpretationError(\"Error for binding '0'\", "
    'Some(QueryGraphBuilderError(RecordNotFound("Record to update not found."))))'
)
DELETE_NOT_FOUND_MESSAGE = (
    "Error occurred during query execution: InterpretationError(\"Error for binding '0'\", "
    'Some(QueryGraphBuilderError(RecordNotFound("Record to delete does not exist."))))'
)
NOT_FOUND_MESSAGES = frozenset({UPDATE_NOT_FOUND_MESSAGE, DELETE_NOT_FOUND_MESSAGE})


class NotFoundError(LookupError):
    """Raised when a record to update or delete does not exist."""

    def __init__(self, message: str = "not found") -> None:
        super().__init__(message)


@dataclass
class GQLError:
    """An error reported by the query engine."""

    message: str = ""
    path: list[str] = field(default_factory=list)
    extensions: dict[str, Any] = field(default_factory=dict)

    def raw_message(self) -> str:
        """Return the message on a single line."""
        return self.message.replace("\n", " ")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GQLError:
        """Build an error from its JSON form; the engine uses "error" and "query" keys."""
        if not isinstance(data, dict):
            raise ValueError(f"expected an error object, got {data!r}")
        return cls(
            message=data.get("error") or "",
            path=list(data.get("path") or []),
            extensions=dict(data.get("query") or {}),
        )


def _errors_from(raw: Any) -> list[GQLError] | None:
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise ValueError(f"expected a list of errors, got {raw!r}")
    return [GQLError.from_dict(item) for item in raw]


@dataclass
class GQLResponse:
    """A single query response: the result value and any errors."""

    result: Any = None
    errors: list[GQLError] | None = None
    extensions: dict[str, Any] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GQLResponse:
        """Build a response from its decoded JSON form."""
        if not isinstance(data, dict):
            raise ValueError(f"expected a response object, got {data!r}")
        payload = data.get("data")
        result = payload.get("result") if isinstance(payload, dict) else None
        extensions = data.get("extensions")
        return cls(
            result=result,
            errors=_errors_from(data.get("errors")),
            extensions=dict(extensions) if extensions is not None else None,
        )


@dataclass
class GQLBatchResponse:
    """The response to a batch of queries."""

    errors: list[GQLError] | None = None
    result: list[GQLResponse] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GQLBatchResponse:
        """Build a batch response from its decoded JSON form."""
        if not isinstance(data, dict):
            raise ValueError(f"expected a batch response object, got {data!r}")
        return cls(
            errors=_errors_from(data.get("errors")),
            result=[GQLResponse.from_dict(item) for item in data.get("batchResult") or []],
        )


@dataclass
class GQLRequest:
    """A single query with its variables."""

    query: str
    variables: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form of the request."""
        return {"query": self.query, "variables": dict(self.variables)}


@dataclass
class GQLBatchRequest:
    """Several queries sent together, optionally as one transaction."""

    batch: list[GQLRequest] = field(default_factory=list)
    transaction: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form of the batch."""
        return {"batch": [item.to_dict() for item in self.batch], "transaction": self.transaction}


def _json_default(value: Any) -> Any:
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, (datetime.datetime, datetime.date)):
        return value.isoformat()
    if isinstance(value, decimal.Decimal):
        return str(value)
    raise TypeError(f"cannot encode {type(value).__name__} as JSON")


class Engine(ABC):
    """A way of sending queries to Prisma; usable as a context manager."""

    name: str = ""

    @abstractmethod
    def connect(self) -> None:
        """Make the engine ready to take queries."""

    @abstractmethod
    def disconnect(self) -> None:
        """Release the engine."""

    @abstractmethod
    def do(self, payload: Any) -> Any:
        """Send a single query and return its result value."""

    @abstractmethod
    def batch(self, payload: Any) -> Any:
        """Send a batch of queries and return the decoded response body."""

    def __enter__(self) -> Engine:
        self.connect()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.disconnect()

    @staticmethod
    def _encode(payload: Any) -> bytes:
        return json.dumps(payload, default=_json_default, separators=(",", ":")).encode("utf-8")

    @staticmethod
    def _result_of(response: GQLResponse) -> Any:
        if response.errors:
            message = response.errors[0].raw_message()
            if message in NOT_FOUND_MESSAGES:
                raise NotFoundError()
            raise RuntimeError(f"pql error: {message}")
        return response.result