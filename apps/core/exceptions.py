"""
Domain exceptions raised by the service layer.

They subclass ValueError so callers that only care about "invalid operation"
can keep catching ValueError; the API exception handler turns them into 400s.
"""


class BusinessError(ValueError):
    code = 'business_rule'
    status_code = 400


class InsufficientStockError(BusinessError):
    code = 'insufficient_stock'


class InvalidTransitionError(BusinessError):
    code = 'invalid_transition'


class CouponError(BusinessError):
    code = 'invalid_coupon'


class CreditError(BusinessError):
    code = 'credit_error'


class PlanLimitError(BusinessError):
    code = 'plan_limit'
    status_code = 403
