"""Custom exceptions for the Better Being storefront API."""

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

class InvalidRequestError(BusinessLogicError):
    """Raised when request input is missing or malformed."""
    def __init__(self, message="Invalid request", errors=None):
        payload = {'errors': errors} if errors else None
        super().__init__(message, payload=payload)

class NotFoundError(StorefrontError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

class EmptyCartError(BusinessLogicError):
    def __init__(self):
        super().__init__('Cart is empty')

class InsufficientStockError(BusinessLogicError):
    """Raised when an operation fails due to lack of stock."""
    def __init__(self, product_name, required=None, available=None):
        self.product_name = product_name
        self.required = required
        self.available = available
        payload = {'product': product_name}
        if required is not None and available is not None:
            payload.update({'required': int(required), 'available': int(available)})
        super().__init__(f'Insufficient stock for {product_name}', payload=payload)

class ProductNotFoundError(BusinessLogicError):
    """Raised when an order line references a product that does not exist."""
    def __init__(self, product_id):
        self.product_id = product_id
        super().__init__(f'Product not found: {product_id}')

class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id=None):
        self.order_id = order_id
        super().__init__('Order not found')

class CartItemNotFoundError(NotFoundError):
    def __init__(self, cart_item_id=None):
        self.cart_item_id = cart_item_id
        super().__init__('Cart item not found')

class OrderNotCancellableError(BusinessLogicError):
    """Raised when cancelling an order that already shipped or ended."""
    def __init__(self, order_number, status):
        self.status = status
        super().__init__('Order cannot be cancelled', payload={'orderNumber': order_number, 'orderStatus': status})

class InvalidOrderStatusError(BusinessLogicError):
    def __init__(self, status):
        super().__init__('Invalid status', payload={'orderStatus': status})

class InvalidStatusTransitionError(BusinessLogicError):
    """Raised when a status change is not allowed from the current status."""
    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(
            f'Cannot change order status from {current} to {requested}',
            payload={'from': current, 'to': requested}
        )

class InsufficientPointsError(BusinessLogicError):
    def __init__(self, requested, available):
        super().__init__(
            'Insufficient loyalty points',
            payload={'requested': requested, 'available': available}
        )

class AuthenticationError(StorefrontError):
    """Raised when the bearer token is missing or invalid."""
    def __init__(self, message="Not authorized"):
        super().__init__(message, 401)

class UnauthorizedError(StorefrontError):
    """Raised when a user lacks permission for an action."""
    def __init__(self, message="Unauthorized access"):
        super().__init__(message, 403)

class PersistenceError(StorefrontError):
    """Raised when the database fails underneath a service transaction."""
    def __init__(self, message="Database error", detail=None):
        self.detail = detail
        super().__init__(message, 500)
