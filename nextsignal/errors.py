"""Error taxonomy for NextSignal.

Every error that can cross a callable boundary is a NextSignalError carrying a
``kind`` tag. AI-service failures never appear here: they are recovered inside
the component that made the call.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class NextSignalError(Exception):
    """Base class for errors surfaced to boundary callers.

    Args:
        message: Human-readable description.
        details: Extra JSON-serializable fields merged into to_dict().
    """

    kind: str = "internal"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})

    def to_dict(self) -> Dict[str, Any]:
        """Structured error payload: ``{"kind", "message", ...details}``."""
        payload: Dict[str, Any] = {"kind": self.kind, "message": self.message}
        payload.update(self.details)
        return payload


class InvalidInputError(NextSignalError):
    """Request rejected before any AI or store call was made."""

    kind = "invalid-argument"


class InvalidCoordinateError(InvalidInputError):
    """Latitude or longitude outside WGS84 bounds."""

    def __init__(self, lat: float, lng: float) -> None:
        super().__init__(
            f"Invalid coordinate (lat={lat}, lng={lng}): |lat| must be <= 90 and |lng| <= 180",
            {"lat": lat, "lng": lng},
        )


class UnauthenticatedError(NextSignalError):
    kind = "unauthenticated"


class NotFoundError(NextSignalError):
    kind = "not-found"


class StoreError(NextSignalError):
    """A read or write against the document store failed."""

    kind = "store-unavailable"


class PersistenceError(StoreError):
    """Event persistence stopped part-way through a fusion run.

    Events persisted before the failing write remain valid and are listed in
    ``persisted_events``.
    """

    kind = "partial-persist"

    def __init__(
        self,
        message: str,
        persisted_events: List[Any],
        failed_event_id: str,
        report_count: int = 0,
    ) -> None:
        self.persisted_events = list(persisted_events)
        self.failed_event_id = failed_event_id
        self.report_count = report_count
        super().__init__(
            message,
            {
                "persistedEvents": [e.to_dict() for e in self.persisted_events],
                "persistedCount": len(self.persisted_events),
                "failedEventId": failed_event_id,
                "reportCount": report_count,
            },
        )


class SchemaError(ValueError):
    """An AI response parsed as JSON but did not match the expected shape."""
