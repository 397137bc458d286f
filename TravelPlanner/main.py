"""
TravelPlanner - FastAPI Web Backend

This module serves as the main entry point for the travel planner's
trip ledger API.

Features:
    - RESTful API for managing trips, participants, and expenses
    - Integration with Firebase Firestore backend
    - Balance and settlement calculations
    - Analytics and transparency reports

Endpoints:
    POST   /trips                                    - Create a new trip
    GET    /trips/{trip_id}                          - Get a trip
    PUT    /trips/{trip_id}                          - Update a trip (admin)
    DELETE /trips/{trip_id}                          - Delete a trip (admin)
    GET    /participants/{email}/trips               - Trips of a participant
    POST   /trips/{trip_id}/participants             - Invite a participant
    DELETE /trips/{trip_id}/participants/{email}     - Remove a participant
    POST   /trips/{trip_id}/expenses                 - Add expense to trip
    GET    /trips/{trip_id}/expenses                 - List expenses
    PUT    /trips/{trip_id}/expenses/{expense_id}    - Edit an expense
    DELETE /trips/{trip_id}/expenses/{expense_id}    - Delete an expense
    GET    /trips/{trip_id}/balances                 - Calculate and persist results
    GET    /trips/{trip_id}/summary                  - Get stored results
    POST   /trips/{trip_id}/settle                   - Mark trip as settled (admin)

Usage:
    uvicorn main:app --reload
"""

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from analytics import generate_analytics
from config.settings import configure_logging
from exceptions import (
    ExpenseNotFoundError,
    NotTripAdminError,
    TripAlreadySettledError,
    TripNotFoundError,
)
from expenses import (
    Expense,
    add_expense,
    delete_expense,
    get_expenses,
    update_expense,
)
from firebase_store import (
    load_results,
    save_analytics,
    save_balances,
    save_explanations,
    save_settlements,
)
from settlement import simplify_debts
from splitter import calculate_balance_breakdown
from trips import (
    Trip,
    add_participant,
    create_trip,
    delete_trip,
    get_trip,
    get_trips_for_participant,
    mark_trip_settled,
    remove_participant,
    update_trip,
)
from utils import explain_all_participants, round_currency

configure_logging()
logger = logging.getLogger("travel_planner.api")

TRIP_DATE_PATTERN = r"^\d{2}-\d{2}-\d{4}$"
EXPENSE_DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


# =============================================================================
# Pydantic Models for Request/Response Validation
# =============================================================================

class TripCreate(BaseModel):
    """Request model for creating a new trip."""
    name: str = Field(..., min_length=3, description="Trip name")
    start_date: str = Field(..., pattern=TRIP_DATE_PATTERN, description="Start date (DD-MM-YYYY)")
    end_date: str = Field(..., pattern=TRIP_DATE_PATTERN, description="End date (DD-MM-YYYY)")
    starting_point: str = Field(..., min_length=1, description="Where the trip starts")
    destinations: list[str] = Field(..., min_length=1, description="Destinations")
    participants: list[str] = Field(..., min_length=1, description="Participant emails")
    admin_id: str = Field(..., min_length=1, description="ID of the creating user")


class TripUpdate(BaseModel):
    """Request model for updating a trip."""
    requested_by: str = Field(..., min_length=1, description="ID of the requesting user")
    name: str = Field(..., min_length=3)
    start_date: str = Field(..., pattern=TRIP_DATE_PATTERN)
    end_date: str = Field(..., pattern=TRIP_DATE_PATTERN)
    starting_point: str = Field(..., min_length=1)
    destinations: list[str] = Field(..., min_length=1)
    participants: list[str] = Field(..., min_length=1)
    photos_link: Optional[str] = None


class TripResponse(BaseModel):
    """Response model for trip data."""
    trip_id: str
    name: str
    start_date: str
    end_date: str
    starting_point: str
    destinations: list[str]
    participants: list[str]
    admin_id: str
    status: str
    is_settled: bool
    photos_link: Optional[str]


class ParticipantInvite(BaseModel):
    """Request model for inviting a participant."""
    email: str = Field(..., min_length=3, description="Participant email")


class ExpenseCreate(BaseModel):
    """Request model for adding or editing an expense."""
    amount: float = Field(..., gt=0, description="Expense amount (must be > 0)")
    paid_by: str = Field(..., min_length=1, description="Email of payer")
    split_among: list[str] = Field(..., min_length=1, description="Emails sharing the cost")
    date: str = Field(..., pattern=EXPENSE_DATE_PATTERN, description="Expense date (YYYY-MM-DD)")
    description: str = Field("", description="What the expense was for")
    created_by: Optional[str] = Field(None, description="Email of the recording user")


class ExpenseResponse(BaseModel):
    """Response model for expense data."""
    expense_id: str
    amount: float
    paid_by: str
    split_among: list[str]
    date: str
    description: str
    created_by: Optional[str]


class SettleRequest(BaseModel):
    """Request model for settling a trip."""
    requested_by: str = Field(..., min_length=1, description="ID of the requesting user")


class BalancesResponse(BaseModel):
    """Response model for calculation results."""
    balances: dict
    settlements: list
    analytics: dict
    warnings: list
    explanations: list


class SummaryResponse(BaseModel):
    """Response model for stored summary."""
    balances: dict
    settlements: list
    analytics: dict
    explanations: list


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Travel Planner",
    description="Trips, shared expenses and who-pays-whom for group travel",
    version="1.0.0"
)


# =============================================================================
# Helper Functions
# =============================================================================

def _to_http_exception(e: Exception) -> HTTPException:
    """Map a service exception to the HTTP error returned to clients."""
    if isinstance(e, HTTPException):
        return e
    if isinstance(e, (TripNotFoundError, ExpenseNotFoundError)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, NotTripAdminError):
        return HTTPException(status_code=403, detail=str(e))
    if isinstance(e, TripAlreadySettledError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, ValueError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, RuntimeError):
        return HTTPException(status_code=503, detail=str(e))
    logger.exception("Unhandled error")
    return HTTPException(status_code=500, detail=str(e))


def _trip_response(trip: Trip) -> TripResponse:
    return TripResponse(
        trip_id=trip.trip_id,
        name=trip.name,
        start_date=trip.start_date,
        end_date=trip.end_date,
        starting_point=trip.starting_point,
        destinations=trip.destinations,
        participants=trip.participants,
        admin_id=trip.admin_id,
        status=trip.status,
        is_settled=trip.is_settled,
        photos_link=trip.photos_link
    )


def _expense_response(expense: Expense) -> ExpenseResponse:
    return ExpenseResponse(
        expense_id=expense.expense_id,
        amount=round_currency(expense.amount),
        paid_by=expense.paid_by,
        split_among=expense.split_among,
        date=expense.date,
        description=expense.description or "",
        created_by=expense.created_by
    )


# =============================================================================
# Trip Endpoints
# =============================================================================

@app.post("/trips", response_model=TripResponse, status_code=201)
async def create_new_trip(trip_data: TripCreate):
    """Create a new trip with its initial participants."""
    try:
        trip = create_trip(
            name=trip_data.name,
            start_date=trip_data.start_date,
            end_date=trip_data.end_date,
            starting_point=trip_data.starting_point,
            destinations=trip_data.destinations,
            participants=trip_data.participants,
            admin_id=trip_data.admin_id
        )
        return _trip_response(trip)
    except Exception as e:
        raise _to_http_exception(e)


@app.get("/trips/{trip_id}", response_model=TripResponse)
async def read_trip(trip_id: str):
    """Get a trip."""
    try:
        return _trip_response(get_trip(trip_id))
    except Exception as e:
        raise _to_http_exception(e)


@app.put("/trips/{trip_id}", response_model=TripResponse)
async def edit_trip(trip_id: str, trip_data: TripUpdate):
    """Update a trip's details. Only the trip admin may do this."""
    try:
        trip = update_trip(
            trip_id=trip_id,
            requested_by=trip_data.requested_by,
            name=trip_data.name,
            start_date=trip_data.start_date,
            end_date=trip_data.end_date,
            starting_point=trip_data.starting_point,
            destinations=trip_data.destinations,
            participants=trip_data.participants,
            photos_link=trip_data.photos_link
        )
        return _trip_response(trip)
    except Exception as e:
        raise _to_http_exception(e)


@app.delete("/trips/{trip_id}", status_code=204)
async def remove_trip(trip_id: str, requested_by: str):
    """Delete a trip and its expenses. Only the trip admin may do this."""
    try:
        delete_trip(trip_id, requested_by)
    except Exception as e:
        raise _to_http_exception(e)


@app.get("/participants/{email}/trips", response_model=list[TripResponse])
async def list_participant_trips(email: str):
    """List the trips an email participates in, by start date."""
    try:
        return [_trip_response(t) for t in get_trips_for_participant(email)]
    except Exception as e:
        raise _to_http_exception(e)


@app.post("/trips/{trip_id}/participants", response_model=TripResponse, status_code=201)
async def invite_participant(trip_id: str, invite: ParticipantInvite):
    """Invite a participant to a trip by email."""
    try:
        return _trip_response(add_participant(trip_id, invite.email))
    except Exception as e:
        raise _to_http_exception(e)


@app.delete("/trips/{trip_id}/participants/{email}", response_model=TripResponse)
async def uninvite_participant(trip_id: str, email: str):
    """Remove a participant from a trip."""
    try:
        return _trip_response(remove_participant(trip_id, email))
    except Exception as e:
        raise _to_http_exception(e)


# =============================================================================
# Expense Endpoints
# =============================================================================

@app.post("/trips/{trip_id}/expenses", response_model=ExpenseResponse, status_code=201)
async def add_trip_expense(trip_id: str, expense_data: ExpenseCreate):
    """
    Add an expense to a trip.

    Request flow:
        1. Validate input using Pydantic model
        2. Call add_expense() from expenses.py (checks participants)
        3. Return created expense data
    """
    try:
        expense = add_expense(
            trip_id=trip_id,
            amount=expense_data.amount,
            paid_by=expense_data.paid_by,
            split_among=expense_data.split_among,
            date=expense_data.date,
            description=expense_data.description,
            created_by=expense_data.created_by
        )
        return _expense_response(expense)
    except Exception as e:
        raise _to_http_exception(e)


@app.get("/trips/{trip_id}/expenses", response_model=list[ExpenseResponse])
async def list_trip_expenses(trip_id: str):
    """List a trip's expenses, newest first."""
    try:
        get_trip(trip_id)
        return [_expense_response(e) for e in get_expenses(trip_id)]
    except Exception as e:
        raise _to_http_exception(e)


@app.put("/trips/{trip_id}/expenses/{expense_id}", response_model=ExpenseResponse)
async def edit_trip_expense(trip_id: str, expense_id: str, expense_data: ExpenseCreate):
    """Replace the details of an expense."""
    try:
        expense = update_expense(
            trip_id=trip_id,
            expense_id=expense_id,
            amount=expense_data.amount,
            paid_by=expense_data.paid_by,
            split_among=expense_data.split_among,
            date=expense_data.date,
            description=expense_data.description
        )
        return _expense_response(expense)
    except Exception as e:
        raise _to_http_exception(e)


@app.delete("/trips/{trip_id}/expenses/{expense_id}", status_code=204)
async def delete_trip_expense(trip_id: str, expense_id: str):
    """Delete an expense."""
    try:
        delete_expense(trip_id, expense_id)
    except Exception as e:
        raise _to_http_exception(e)


# =============================================================================
# Balance & Settlement Endpoints
# =============================================================================

@app.get("/trips/{trip_id}/balances", response_model=BalancesResponse)
async def calculate_trip_balances(trip_id: str):
    """
    Calculate and persist all results for a trip.

    Request flow:
        1. Fetch the trip's participants from Firestore
        2. Fetch expenses from Firestore
        3. Calculate balances (splitter.py)
        4. Simplify debts into transfers (settlement.py)
        5. Generate analytics (analytics.py)
        6. Generate explanations (utils.py)
        7. Persist all results to Firestore (firebase_store.py)
        8. Return complete results
    """
    try:
        trip = get_trip(trip_id)
        expenses = get_expenses(trip_id)

        breakdown = calculate_balance_breakdown(trip.participants, expenses)
        transfers = simplify_debts({
            participant_id: entry["net_balance"]
            for participant_id, entry in breakdown.items()
        })

        analytics_result = generate_analytics(trip.participants, expenses)
        explanations = explain_all_participants(expenses, breakdown)

        save_balances(trip_id, breakdown)
        save_settlements(trip_id, transfers)
        save_analytics(trip_id, analytics_result["analytics"])
        save_explanations(trip_id, explanations)

        return BalancesResponse(
            balances={
                participant_id: {
                    key: round_currency(value) for key, value in entry.items()
                }
                for participant_id, entry in breakdown.items()
            },
            settlements=[t.to_dict() for t in transfers],
            analytics=analytics_result["analytics"],
            warnings=analytics_result["warnings"],
            explanations=explanations
        )
    except Exception as e:
        raise _to_http_exception(e)


@app.get("/trips/{trip_id}/summary", response_model=SummaryResponse)
async def get_trip_summary(trip_id: str):
    """Get the results stored by the last balance calculation."""
    try:
        results = load_results(trip_id)
        if not results["balances"] and not results["settlements"] and not results["analytics"]:
            raise HTTPException(
                status_code=404,
                detail="No results found. Call /trips/{trip_id}/balances first."
            )
        return SummaryResponse(**results)
    except Exception as e:
        raise _to_http_exception(e)


@app.post("/trips/{trip_id}/settle", response_model=TripResponse)
async def settle_trip(trip_id: str, settle: SettleRequest):
    """Mark a trip as settled. Only the trip admin may do this."""
    try:
        return _trip_response(mark_trip_settled(trip_id, settle.requested_by))
    except Exception as e:
        raise _to_http_exception(e)


# =============================================================================
# Health Check Endpoint
# =============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint to verify API is running."""
    return {"status": "healthy", "service": "Travel Planner"}


# =============================================================================
# Run with: python main.py
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=True)
