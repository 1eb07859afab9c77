"""Entitlement value object."""

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class Entitlement:
    """Permission-and-quota view for one user at one point in time."""

    can_generate: bool
    current_usage: int
    limit: int
    plan_type: str
    # Set when storage failed and the view is a fail-closed default
    degraded: bool = False

    @property
    def remaining(self) -> int:
        return max(self.limit - self.current_usage, 0)

    @property
    def limit_message(self) -> str | None:
        """User-facing explanation when generation is blocked."""
        if self.degraded:
            return "Usage could not be verified right now. Please try again shortly."
        if self.can_generate:
            return None
        return (
            f"Usage limit reached. You've used {self.current_usage}/{self.limit} "
            "credits this period."
        )

    def to_dict(self) -> dict:
        return asdict(self)
