"""Idempotent "ensure" for remote resources.

Every resource the installer manages (board, status field, options, labels) is
resolved the same way: look it up by exact name in its parent scope, create it
only when the lookup succeeded and found nothing, and fall back to a second
lookup if the create call fails or returns nothing (another run may have
created it in the meantime). Whatever happens, the caller gets a `Resolution`
saying whether the resource was found, created, or could not be resolved, and
why.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_LOOKUP_ATTEMPTS = 2


class ResolutionKind(str, Enum):
    FOUND = "found"
    CREATED = "created"
    FAILED = "failed"


class ResolutionFailed(RuntimeError):
    """Raised by `Resolution.require()` when a resource could not be resolved."""

    def __init__(self, resource: str, reason: str) -> None:
        super().__init__(f"Could not resolve {resource}: {reason}")
        self.resource = resource
        self.reason = reason


@dataclass(frozen=True, slots=True)
class Resolution(Generic[T]):
    resource: str
    kind: ResolutionKind
    value: T | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.kind is not ResolutionKind.FAILED and self.value is not None

    def require(self) -> T:
        if not self.ok or self.value is None:
            raise ResolutionFailed(self.resource, self.reason or "no value")
        return self.value

    def with_value(self, value: T) -> Resolution[T]:
        return Resolution(resource=self.resource, kind=self.kind, value=value, reason=self.reason)

    @classmethod
    def found(cls, resource: str, value: T) -> Resolution[T]:
        return cls(resource=resource, kind=ResolutionKind.FOUND, value=value)

    @classmethod
    def created(cls, resource: str, value: T) -> Resolution[T]:
        return cls(resource=resource, kind=ResolutionKind.CREATED, value=value)

    @classmethod
    def failed(cls, resource: str, reason: str) -> Resolution[T]:
        return cls(resource=resource, kind=ResolutionKind.FAILED, reason=reason)


def _describe(exc: Exception) -> str:
    text = str(exc).strip()
    return f"{type(exc).__name__}: {text}" if text else type(exc).__name__


def ensure_resource(
    *,
    resource: str,
    lookup: Callable[[], T | None],
    create: Callable[[], T | None],
) -> Resolution[T]:
    """Resolve a named resource without ever creating a duplicate.

    Args:
        resource: Human-readable description used in logs and failure reasons,
            e.g. ``"option 'TD archived'"``.
        lookup: Returns the existing resource matched by exact name, or None.
        create: Creates the resource and returns it.

    Create runs only after a lookup that succeeded and matched nothing. A
    lookup that raises is retried once; if it raises again the resource is
    reported as failed without attempting a create.

    Returns:
        A `Resolution` of kind found, created, or failed. Never raises for API
        errors; they become the failure reason.
    """

    # A lookup that raised says nothing about existence; creating then could
    # duplicate a board, since Projects V2 titles are not unique.
    lookup_error: str | None = None
    existing: T | None = None
    for attempt in range(1, _LOOKUP_ATTEMPTS + 1):
        try:
            existing = lookup()
        except Exception as e:
            lookup_error = _describe(e)
            logger.warning(
                "Lookup failed",
                extra={"resource": resource, "attempt": attempt, "error": lookup_error},
            )
            continue
        lookup_error = None
        break
    if lookup_error is not None:
        reason = f"lookup failed, not creating: {lookup_error}"
        logger.error(
            "Resource could not be resolved", extra={"resource": resource, "reason": reason}
        )
        return Resolution.failed(resource, reason)
    if existing is not None:
        logger.debug("Resource found", extra={"resource": resource})
        return Resolution.found(resource, existing)

    create_error: str | None = None
    try:
        created = create()
    except Exception as e:
        create_error = _describe(e)
        created = None
    if created is not None:
        logger.info("Resource created", extra={"resource": resource})
        return Resolution.created(resource, created)

    # Create failed or came back empty: most often the resource already exists
    # (conflict), but permission and transport errors land here too.
    logger.warning(
        "Create did not return a resource; falling back to lookup",
        extra={"resource": resource, "error": create_error},
    )
    try:
        existing = lookup()
    except Exception as e:
        lookup_error = _describe(e)
        existing = None
    if existing is not None:
        return Resolution.found(resource, existing)

    reasons = [r for r in (create_error, lookup_error) if r]
    reason = "; ".join(reasons) if reasons else "create returned nothing and lookup found no match"
    logger.error("Resource could not be resolved", extra={"resource": resource, "reason": reason})
    return Resolution.failed(resource, reason)
