from __future__ import annotations


class FlippinError(RuntimeError):
    """Base for errors surfaced to API callers.

    ``code`` is a stable machine-readable identifier; ``status`` is the HTTP
    status the route layer renders it with.
    """

    code = "FLIPPIN_ERROR"
    status = 500

    def __init__(self, message: str = "", *, code: str | None = None, details: dict | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code
        if code:
            self.code = code
        self.details = dict(details or {})

    def to_dict(self) -> dict:
        payload = {
            "ok": False,
            "error": self.code,
            "message": self.message,
            "status": int(self.status),
        }
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(FlippinError):
    code = "VALIDATION_ERROR"
    status = 400


class NotFoundError(FlippinError):
    code = "NOT_FOUND"
    status = 404


class ForbiddenError(FlippinError):
    code = "FORBIDDEN"
    status = 403


class StateConflictError(FlippinError):
    code = "STATE_CONFLICT"
    status = 409


class InvalidTransition(StateConflictError):
    code = "INVALID_TRANSITION"

    def __init__(self, current: str, target: str, *, subject: str = "transaction"):
        super().__init__(
            f"invalid_{subject}_transition {current}->{target}",
            details={"from": current, "to": target},
        )
        self.current = current
        self.target = target


class PaymentRailError(FlippinError):
    code = "PAYMENT_FAILED"
    status = 402
