"""Wire payload models and their conversion into domain records."""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError

from venuebook.domain.errors import TransportError
from venuebook.domain.models import (
    MISSING_DEPARTMENT,
    MISSING_REJECTION_REASON,
    MISSING_REQUESTER,
    MISSING_VENUE,
    Booking,
    BookingStatus,
    Department,
    Requester,
    Venue,
    parse_instant,
)
from venuebook.utils.logger import get_logger


logger = get_logger(__name__)

Identifier = Union[int, str]


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class VenuePayload(_Payload):
    id: Identifier
    name: str
    location: Optional[str] = None
    capacity: Optional[int] = None

    def to_domain(self) -> Venue:
        return Venue(
            id=str(self.id),
            name=self.name,
            location=self.location,
            capacity=self.capacity,
        )


class DepartmentPayload(_Payload):
    id: Identifier
    name: str
    code: Optional[str] = None

    def to_domain(self) -> Department:
        return Department(id=str(self.id), name=self.name, code=self.code)


class RequesterPayload(_Payload):
    id: Identifier
    username: Optional[str] = None
    email: Optional[str] = None

    def to_domain(self) -> Requester:
        return Requester(
            id=str(self.id),
            username=self.username or "",
            email=self.email or "",
        )


class BookingPayload(_Payload):
    """Booking as sent by the service.

    Timestamps stay raw strings here so one bad value only degrades its own
    record instead of failing the whole response.
    """

    id: Identifier
    status: BookingStatus
    event_name: Optional[str] = None
    description: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    rejection_reason: Optional[str] = None
    venue: Optional[VenuePayload] = None
    department: Optional[DepartmentPayload] = None
    requester: Optional[RequesterPayload] = None
    poster_images: list[str] = Field(default_factory=list)

    def _rejection_reason(self) -> Optional[str]:
        if self.status is not BookingStatus.REJECTED:
            return None
        reason = (self.rejection_reason or "").strip()
        if not reason:
            logger.warning("Data quality: booking %s is rejected without a reason", self.id)
            return MISSING_REJECTION_REASON
        return reason

    def to_domain(self) -> Booking:
        return Booking(
            id=str(self.id),
            event_name=self.event_name,
            description=self.description,
            start_time=parse_instant(self.start_time),
            end_time=parse_instant(self.end_time),
            status=self.status,
            rejection_reason=self._rejection_reason(),
            venue=self.venue.to_domain() if self.venue else MISSING_VENUE,
            department=self.department.to_domain() if self.department else MISSING_DEPARTMENT,
            requester=self.requester.to_domain() if self.requester else MISSING_REQUESTER,
            poster_images=tuple(self.poster_images),
        )

    def merge_into(self, local: Booking) -> Booking:
        """Apply server-confirmed fields on top of a locally known record.

        Fields the server omitted (or sent as null relations) keep their local
        value. The local id never changes.
        """
        sent = self.model_fields_set
        changes: dict[str, Any] = {
            "status": self.status,
            "rejection_reason": self._rejection_reason(),
        }
        if "event_name" in sent:
            changes["event_name"] = self.event_name
        if "description" in sent:
            changes["description"] = self.description
        if "start_time" in sent:
            changes["start_time"] = parse_instant(self.start_time)
        if "end_time" in sent:
            changes["end_time"] = parse_instant(self.end_time)
        if "poster_images" in sent:
            changes["poster_images"] = tuple(self.poster_images)
        if self.venue is not None:
            changes["venue"] = self.venue.to_domain()
        if self.department is not None:
            changes["department"] = self.department.to_domain()
        if self.requester is not None:
            changes["requester"] = self.requester.to_domain()
        return replace(local, **changes)


def decode(model: type[_Payload], raw: Any) -> Any:
    try:
        return model.model_validate(raw)
    except PydanticValidationError as exc:
        raise TransportError(f"Received invalid {model.__name__} data.") from exc


def decode_list(model: type[_Payload], body: Any, key: str) -> list[Any]:
    if not isinstance(body, dict) or not isinstance(body.get(key), list):
        raise TransportError(f"Received invalid data format for {key}.")
    return [decode(model, item) for item in body[key]]
