"""
Trips Module

This module handles trip and participant operations for the travel planner.

Features:
    - Create/update/delete trips
    - Invite and remove participants by email
    - List the trips a participant belongs to
    - Mark a trip as settled (admin only)

Data Model:
    Trip stored at: trips/{trip_id}
    Fields (camelCase, shared with the mobile client):
        - name: string (at least 3 characters)
        - startDate / endDate: string (DD-MM-YYYY)
        - startingPoint: string
        - destinations: list of strings (at least one)
        - participants: list of emails (at least one)
        - adminId: string
        - status: "planning" or "completed"
        - isSettled: bool
        - photosLink: string or None

Functions:
    create_trip: Create a new trip.
    get_trip: Get a trip by ID.
    get_trips_for_participant: Get all trips an email participates in.
    update_trip: Update trip details (admin only).
    add_participant: Invite a participant by email.
    remove_participant: Remove a participant.
    mark_trip_settled: Mark all trip debts as paid (admin only).
    delete_trip: Delete a trip and its expenses (admin only).
"""

import logging
import uuid
from datetime import date
from typing import Optional

from google.cloud.firestore_v1.base_query import FieldFilter

from config.firebase_config import get_db
from exceptions import (
    InvalidTripError,
    NotTripAdminError,
    TripAlreadySettledError,
    TripNotFoundError,
)
from utils import format_trip_date, is_valid_email, parse_trip_date

logger = logging.getLogger("travel_planner.trips")

STATUS_PLANNING = "planning"
STATUS_COMPLETED = "completed"


class Trip:
    """
    Represents a trip.

    Attributes:
        trip_id (str): Document ID.
        name (str): Trip name.
        start_date (str): First day (DD-MM-YYYY).
        end_date (str): Last day (DD-MM-YYYY).
        starting_point (str): Where the trip starts.
        destinations (list[str]): Places visited.
        participants (list[str]): Participant emails.
        admin_id (str): ID of the user who manages the trip.
        status (str): "planning" or "completed".
        is_settled (bool): Whether all debts were marked as paid.
        photos_link (str | None): Shared album link.
    """

    def __init__(
        self,
        trip_id: Optional[str],
        name: str,
        start_date: str,
        end_date: str,
        starting_point: str,
        destinations: list[str],
        participants: list[str],
        admin_id: str,
        status: str = STATUS_PLANNING,
        is_settled: bool = False,
        photos_link: Optional[str] = None
    ):
        self.trip_id = trip_id
        self.name = name
        self.start_date = start_date
        self.end_date = end_date
        self.starting_point = starting_point
        self.destinations = destinations
        self.participants = participants
        self.admin_id = admin_id
        self.status = status
        self.is_settled = is_settled
        self.photos_link = photos_link

    def to_dict(self) -> dict:
        """Convert trip to dictionary for Firestore storage."""
        return {
            "name": self.name,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "startingPoint": self.starting_point,
            "destinations": list(self.destinations),
            "participants": list(self.participants),
            "adminId": self.admin_id,
            "status": self.status,
            "isSettled": self.is_settled,
            "photosLink": self.photos_link
        }

    @classmethod
    def from_dict(cls, data: dict, trip_id: Optional[str] = None) -> "Trip":
        """Create a Trip instance from a Firestore document."""
        return cls(
            trip_id=trip_id,
            name=data.get("name"),
            start_date=data.get("startDate"),
            end_date=data.get("endDate"),
            starting_point=data.get("startingPoint"),
            destinations=list(data.get("destinations") or []),
            participants=list(data.get("participants") or []),
            admin_id=data.get("adminId"),
            status=data.get("status", STATUS_PLANNING),
            is_settled=bool(data.get("isSettled", False)),
            photos_link=data.get("photosLink")
        )

    def __repr__(self) -> str:
        """Return string representation of trip."""
        return f"Trip(id='{self.trip_id}', name='{self.name}', participants={len(self.participants)})"


def _generate_trip_id() -> str:
    """Generate a unique trip ID (trip_{short_uuid})."""
    return f"trip_{uuid.uuid4().hex[:8]}"


def _trip_ref(db, trip_id: str):
    return db.collection("trips").document(trip_id)


def _validate_non_empty_string(value: str, field_name: str) -> bool:
    """
    Validate that a string is non-empty.

    Raises:
        ValueError: If string is empty or not a string.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} must be a non-empty string")
    return True


def _clean_emails(emails: list[str]) -> list[str]:
    """
    Trim, drop blanks and de-duplicate participant emails.

    Raises:
        InvalidTripError: If no email remains or any email is invalid.
    """
    cleaned = [e.strip() for e in emails or [] if isinstance(e, str) and e.strip()]
    if not cleaned:
        raise InvalidTripError("At least one participant is required")

    invalid = [e for e in cleaned if not is_valid_email(e)]
    if invalid:
        raise InvalidTripError(f"All participant emails must be valid, got: {', '.join(invalid)}")

    return list(dict.fromkeys(cleaned))


def _validate_trip_details(
    name: str,
    start_date: str,
    end_date: str,
    starting_point: str,
    destinations: list[str],
    allow_past_start: bool
) -> tuple[list[str], str, str]:
    """
    Validate the descriptive trip fields.

    Returns:
        tuple: Trimmed, non-empty destinations and the start and end dates
            re-formatted as zero-padded DD-MM-YYYY.

    Raises:
        InvalidTripError: If any field is invalid.
    """
    if not isinstance(name, str) or len(name.strip()) < 3:
        raise InvalidTripError("Trip name must be at least 3 characters")

    if not isinstance(starting_point, str) or not starting_point.strip():
        raise InvalidTripError("Starting point is required")

    cleaned = [d.strip() for d in destinations or [] if isinstance(d, str) and d.strip()]
    if not cleaned:
        raise InvalidTripError("At least one destination is required")

    try:
        start = parse_trip_date(start_date)
        end = parse_trip_date(end_date)
    except ValueError as e:
        raise InvalidTripError(str(e))

    if start > end:
        raise InvalidTripError("End date must be after start date")
    if not allow_past_start and start < date.today():
        raise InvalidTripError("Start date cannot be in the past")

    return cleaned, format_trip_date(start), format_trip_date(end)


def _require_admin(trip: "Trip", requested_by: str) -> None:
    if trip.admin_id != requested_by:
        raise NotTripAdminError(f"Only the trip admin can do this for trip {trip.trip_id}")


def create_trip(
    name: str,
    start_date: str,
    end_date: str,
    starting_point: str,
    destinations: list[str],
    participants: list[str],
    admin_id: str
) -> Trip:
    """
    Create a new trip.

    Args:
        name: Trip name (at least 3 characters).
        start_date: First day (DD-MM-YYYY, not in the past).
        end_date: Last day (DD-MM-YYYY, not before start_date).
        starting_point: Where the trip starts.
        destinations: At least one destination.
        participants: At least one valid participant email.
        admin_id: ID of the user creating the trip.

    Returns:
        Trip: The created trip with status "planning".

    Raises:
        InvalidTripError: If input validation fails.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(admin_id, "admin_id")
    cleaned_destinations, start_date, end_date = _validate_trip_details(
        name, start_date, end_date, starting_point, destinations, allow_past_start=False
    )
    emails = _clean_emails(participants)

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    trip = Trip(
        trip_id=_generate_trip_id(),
        name=name.strip(),
        start_date=start_date,
        end_date=end_date,
        starting_point=starting_point.strip(),
        destinations=cleaned_destinations,
        participants=emails,
        admin_id=admin_id
    )

    _trip_ref(db, trip.trip_id).set(trip.to_dict())
    logger.info(f"Trip created: {trip.name} ({trip.trip_id}) by {admin_id}")

    return trip


def get_trip(trip_id: str) -> Trip:
    """
    Get a trip by ID.

    Raises:
        TripNotFoundError: If the trip does not exist.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(trip_id, "trip_id")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    doc = _trip_ref(db, trip_id).get()
    if not doc.exists:
        raise TripNotFoundError(f"Trip {trip_id} not found")

    return Trip.from_dict(doc.to_dict(), trip_id=doc.id)


def get_trips_for_participant(email: str) -> list[Trip]:
    """
    Get all trips an email participates in, ordered by start date.

    Raises:
        ValueError: If email is invalid.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(email, "email")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    docs = db.collection("trips") \
             .where(filter=FieldFilter("participants", "array_contains", email.strip())) \
             .stream()

    trips = [Trip.from_dict(doc.to_dict(), trip_id=doc.id) for doc in docs]
    trips.sort(key=lambda t: parse_trip_date(t.start_date))
    return trips


def update_trip(
    trip_id: str,
    requested_by: str,
    name: str,
    start_date: str,
    end_date: str,
    starting_point: str,
    destinations: list[str],
    participants: list[str],
    photos_link: Optional[str] = None
) -> Trip:
    """
    Update trip details.

    Same rules as create_trip, except the start date may already have passed.

    Raises:
        TripNotFoundError: If the trip does not exist.
        NotTripAdminError: If requested_by is not the trip admin.
        InvalidTripError: If input validation fails.
    """
    trip = get_trip(trip_id)
    _require_admin(trip, requested_by)

    trip.destinations, start_date, end_date = _validate_trip_details(
        name, start_date, end_date, starting_point, destinations, allow_past_start=True
    )
    trip.participants = _clean_emails(participants)
    trip.name = name.strip()
    trip.start_date = start_date
    trip.end_date = end_date
    trip.starting_point = starting_point.strip()
    trip.photos_link = photos_link.strip() if photos_link else None

    db = get_db()
    _trip_ref(db, trip_id).update(trip.to_dict())
    logger.info(f"Trip updated: {trip_id}")

    return trip


def add_participant(trip_id: str, email: str) -> Trip:
    """
    Invite a participant to a trip by email.

    Inviting an existing participant is a no-op.

    Raises:
        InvalidTripError: If the email is invalid.
        TripNotFoundError: If the trip does not exist.
    """
    if not is_valid_email(email):
        raise InvalidTripError(f"Invalid participant email: {email}")
    email = email.strip()

    trip = get_trip(trip_id)
    if email in trip.participants:
        return trip

    trip.participants.append(email)

    db = get_db()
    _trip_ref(db, trip_id).update({"participants": trip.participants})
    logger.info(f"Participant invited: {email} to trip {trip_id}")

    return trip


def remove_participant(trip_id: str, email: str) -> Trip:
    """
    Remove a participant from a trip.

    Expenses that reference the participant are left untouched; balances
    keep tracking them as implicit participants.

    Raises:
        TripNotFoundError: If the trip does not exist.
        InvalidTripError: If the email is not a participant or is the last one.
    """
    trip = get_trip(trip_id)

    if email not in trip.participants:
        raise InvalidTripError(f"{email} is not a participant of trip {trip_id}")
    if len(trip.participants) == 1:
        raise InvalidTripError("A trip must keep at least one participant")

    trip.participants.remove(email)

    db = get_db()
    _trip_ref(db, trip_id).update({"participants": trip.participants})
    logger.info(f"Participant removed: {email} from trip {trip_id}")

    return trip


def mark_trip_settled(trip_id: str, requested_by: str) -> Trip:
    """
    Mark a trip as settled, meaning all debts have been paid.

    Only flips the trip flags; balances are not touched.

    Raises:
        TripNotFoundError: If the trip does not exist.
        NotTripAdminError: If requested_by is not the trip admin.
        TripAlreadySettledError: If the trip is already settled.
    """
    trip = get_trip(trip_id)
    _require_admin(trip, requested_by)

    if trip.is_settled:
        raise TripAlreadySettledError(f"Trip {trip_id} is already settled")

    trip.is_settled = True
    trip.status = STATUS_COMPLETED

    db = get_db()
    _trip_ref(db, trip_id).update({"isSettled": True, "status": STATUS_COMPLETED})
    logger.info(f"Trip settled: {trip_id} by {requested_by}")

    return trip


def delete_trip(trip_id: str, requested_by: str) -> None:
    """
    Delete a trip together with its expenses.

    Raises:
        TripNotFoundError: If the trip does not exist.
        NotTripAdminError: If requested_by is not the trip admin.
    """
    trip = get_trip(trip_id)
    _require_admin(trip, requested_by)

    db = get_db()
    trip_ref = _trip_ref(db, trip_id)
    for doc in trip_ref.collection("expenses").stream():
        doc.reference.delete()
    trip_ref.delete()

    logger.info(f"Trip deleted: {trip_id} by {requested_by}")
