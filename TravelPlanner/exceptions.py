"""
Domain-specific exceptions for the travel planner.

These exceptions represent business rule violations and should be
caught in the API layer and converted to appropriate HTTP responses.
"""


class TravelPlannerError(Exception):
    """Base exception for all travel planner service errors."""
    pass


class TripNotFoundError(TravelPlannerError):
    """Raised when a trip document does not exist."""
    pass


class ExpenseNotFoundError(TravelPlannerError):
    """Raised when an expense document does not exist."""
    pass


class InvalidTripError(TravelPlannerError, ValueError):
    """Raised when trip details fail validation."""
    pass


class InvalidExpenseError(TravelPlannerError, ValueError):
    """Raised when an expense fails validation at ingestion."""
    pass


class NotTripAdminError(TravelPlannerError):
    """Raised when a non-admin attempts an admin-only trip action."""
    pass


class TripAlreadySettledError(TravelPlannerError):
    """Raised when settling a trip that is already marked as settled."""
    pass
