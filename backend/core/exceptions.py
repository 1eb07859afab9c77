"""
Domain exceptions for usage metering and subscription lifecycle.

Routes translate these into HTTP responses; services raise them and never
return error codes.
"""


class MeteringError(Exception):
    """Base exception for the metering engine."""

    pass


class MeteringValidationError(MeteringError):
    """Request values rejected before any state is touched."""

    pass


class InvalidPlanError(MeteringValidationError):
    """Plan identifier is not in the plan catalog."""

    def __init__(self, plan_type: str):
        super().__init__(f"Invalid plan type: {plan_type}")
        self.plan_type = plan_type


class InvalidAmountError(MeteringValidationError):
    """Credit amount is not a usable integer for the operation."""

    pass


class SubscriptionConflictError(MeteringError):
    """The user already holds an active pro subscription."""

    pass


class StorageError(MeteringError):
    """A store write failed; the caller may retry."""

    pass


class UsageRecordingError(StorageError):
    """Consumption could not be recorded and must not be treated as success."""

    pass
