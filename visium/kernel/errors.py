from __future__ import annotations

import re
from typing import Any


_ERROR_CODE_RE = re.compile(r"^[a-z][a-z0-9_]*(\.[a-z][a-z0-9_]*)*$")


class VisiumError(Exception):
    """Base typed error for the objective graph core.

    Subclasses set `code`, `status_code` and `default_message` as class
    attributes; a raise site may override the code and message and attach
    `meta` (offending field, ids) for the routing layer to expose.
    """

    code = "internal.error"
    status_code = 500
    default_message = "Internal error"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> None:
        code = code or type(self).code
        if not _ERROR_CODE_RE.fullmatch(code):
            raise ValueError(f"Invalid error code, expected dotted lowercase tokens: {code!r}")
        self.message = message or self.default_message
        super().__init__(self.message)
        self.code = code
        self.meta = dict(meta or {})

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class NotFoundError(VisiumError):
    code = "resource.not_found"
    status_code = 404
    default_message = "Not found"


class ConflictError(VisiumError):
    code = "resource.conflict"
    status_code = 409
    default_message = "Already exists"


class ValidationError(VisiumError):
    """Input rejected before any storage call; `field` names the culprit."""

    code = "request.validation_error"
    status_code = 422
    default_message = "Validation error"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        field: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> None:
        payload = dict(meta or {})
        if field is not None:
            payload.setdefault("field", field)
        super().__init__(message, code=code, meta=payload)

    @property
    def field(self) -> str | None:
        return self.meta.get("field")


class StorageError(VisiumError):
    """Transient storage failure; the unit of work was rolled back and may be retried."""

    code = "storage.unavailable"
    status_code = 503
    default_message = "Storage unavailable"
