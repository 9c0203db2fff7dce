import time
from typing import Optional

from flask import current_app, request

from errors import DeadlineExceeded, ValidationError

MIN_TIMEOUT_MS = 1
MAX_TIMEOUT_MS = 60000


class Deadline:
    """Wall-clock budget for a read path.

    Checked between phases (source fetches, counts, sorting); a single SQL
    statement is never interrupted.
    """

    def __init__(self, timeout_ms: int):
        self.timeout_ms = int(timeout_ms)
        self._expires_at = time.monotonic() + self.timeout_ms / 1000.0

    def remaining(self) -> float:
        """Seconds left, never negative."""
        return max(0.0, self._expires_at - time.monotonic())

    def expired(self) -> bool:
        return time.monotonic() >= self._expires_at

    def check(self, operation: str) -> None:
        if self.expired():
            raise DeadlineExceeded(operation, self.timeout_ms)

    @classmethod
    def from_request(cls, default_ms: Optional[int] = None) -> "Deadline":
        raw = request.args.get("timeout_ms") or request.headers.get("X-Request-Timeout-Ms")
        if raw is None or str(raw).strip() == "":
            return cls(default_ms or current_app.config["READ_TIMEOUT_MS"])
        try:
            value = int(str(raw).strip())
        except ValueError:
            raise ValidationError("must be an integer", field="timeout_ms", value=raw) from None
        if value < MIN_TIMEOUT_MS or value > MAX_TIMEOUT_MS:
            raise ValidationError(
                f"must be between {MIN_TIMEOUT_MS} and {MAX_TIMEOUT_MS}", field="timeout_ms", value=raw
            )
        return cls(value)
