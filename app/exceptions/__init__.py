"""Custom exceptions for the storefront application."""

class StorefrontError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv

class BusinessLogicError(StorefrontError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)

class NotFoundError(StorefrontError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

class UnauthorizedError(StorefrontError):
    """Raised when a user lacks permission for an action."""
    def __init__(self, message="Unauthorized access", status_code=403):
        super().__init__(message, status_code)


class ValidationError(BusinessLogicError):
    """Checkout input rejected before any backend call."""
    def __init__(self, field_errors, message="Please correct the highlighted fields."):
        self.field_errors = dict(field_errors)
        super().__init__(message, status_code=422, payload={'errors': self.field_errors})


class CouponError(BusinessLogicError):
    """Base class for coupon rejections shown inline on the coupon field."""
    code = 'coupon_error'

    def __init__(self, message):
        super().__init__(message, status_code=400, payload={'code': self.code})

class InvalidCodeError(CouponError):
    code = 'invalid_code'

    def __init__(self, message="Invalid coupon code"):
        super().__init__(message)

class ExpiredCouponError(CouponError):
    code = 'expired'

    def __init__(self, message="This coupon has expired"):
        super().__init__(message)

class UsageLimitReachedError(CouponError):
    code = 'usage_limit_reached'

    def __init__(self, message="This coupon has reached its usage limit"):
        super().__init__(message)

class MinimumNotMetError(CouponError):
    code = 'minimum_not_met'

    def __init__(self, minimum):
        self.minimum = minimum
        super().__init__(f"Minimum order amount of {minimum:.2f} required for this coupon")


class PersistenceFailure(StorefrontError):
    """The backend rejected a call or could not be reached."""
    def __init__(self, message="Backend request failed", detail=None):
        self.detail = detail
        payload = {'detail': detail} if detail else None
        super().__init__(message, 502, payload)


class InvalidTransitionError(BusinessLogicError):
    """Raised when an order status change is not allowed."""
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move order from '{current}' to '{target}'", status_code=409)
