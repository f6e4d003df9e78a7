"""Domain error taxonomy.

Services raise these; ``register_error_handlers`` turns them into JSON
responses carrying the violated rule as ``detail`` and the class name as
``error``. Each kind owns its HTTP status; the named rules below inherit it.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from foodorder.schemas.common import ErrorOut

logger = logging.getLogger(__name__)


class DomainError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# ── Kinds ───────────────────────────────────────────────────────────────────
class NotFound(DomainError):
    status_code = 404

class InvalidInput(DomainError):
    status_code = 400

class Unauthorized(DomainError):
    status_code = 403

class InvalidStateTransition(DomainError):
    status_code = 400

class BusinessRuleViolation(DomainError):
    status_code = 400

class Conflict(DomainError):
    status_code = 400

class DownstreamFailure(DomainError):
    status_code = 500


# ── Pricing ─────────────────────────────────────────────────────────────────
class InvalidOrderAmount(InvalidInput):
    pass

# ── Coupons ─────────────────────────────────────────────────────────────────
class CouponInactive(BusinessRuleViolation):
    pass

class CouponExpired(BusinessRuleViolation):
    pass

class CouponNotApplicable(BusinessRuleViolation):
    pass

class BelowMinimumOrder(BusinessRuleViolation):
    pass

class UsageLimitExceeded(BusinessRuleViolation):
    pass

class DuplicateActiveCouponType(BusinessRuleViolation):
    pass

class DuplicateCouponCode(BusinessRuleViolation):
    pass

class CouponAlreadyApplied(Conflict):
    pass

class NoCouponApplied(Conflict):
    pass

# ── Orders / delivery ───────────────────────────────────────────────────────
class UnauthorizedTransition(Unauthorized):
    pass

class OrderNotAssignable(InvalidStateTransition):
    pass

class InvalidDeliveryPerson(InvalidInput):
    pass

class ConcurrentModification(Conflict):
    pass

# ── Payments ────────────────────────────────────────────────────────────────
class UnauthorizedPaymentUpdate(Unauthorized):
    pass

class FieldNotPermitted(Unauthorized):
    pass

class PaymentAlreadyExists(Conflict):
    pass


async def _domain_error_handler(request: Request, exc: DomainError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorOut(detail=exc.message, error=type(exc).__name__).model_dump(),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, _domain_error_handler)
