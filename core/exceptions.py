"""Domain errors and the project-wide DRF exception handler.

Every error leaving the API is rendered as ``{"success": false, "message": ...}``;
the HTTP status carries the error category.
"""

import logging

from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ServiceError(APIException):
    """Base class for errors raised by the service layer."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Request could not be processed.'
    default_code = 'service_error'


# 1. Not found (404)
class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Resource not found.'
    default_code = 'not_found'


class UserNotFound(NotFound):
    default_detail = 'User not found.'
    default_code = 'user_not_found'


class ProductNotFound(NotFound):
    default_detail = 'Product not found.'
    default_code = 'product_not_found'


class VariantNotFound(NotFound):
    default_detail = 'Variant not found.'
    default_code = 'variant_not_found'


class OrderNotFound(NotFound):
    default_detail = 'Order not found.'
    default_code = 'order_not_found'


# 2. Caller must correct the input (400)
class CartEmpty(ServiceError):
    default_detail = 'Cart is empty.'
    default_code = 'cart_empty'


class InvalidDistrict(ServiceError):
    default_detail = 'Invalid district.'
    default_code = 'invalid_district'


class InvalidPromoCode(ServiceError):
    default_detail = 'Invalid or expired promo code.'
    default_code = 'invalid_promo_code'


class InsufficientStock(ServiceError):
    default_detail = 'Insufficient stock.'
    default_code = 'insufficient_stock'

    def __init__(self, name, requested, available):
        self.item_name = name
        self.requested = requested
        self.available = available
        super().__init__(
            f'Insufficient stock for "{name}". Available: {available}, Requested: {requested}'
        )


class MissingVendorAddress(ServiceError):
    default_detail = 'Vendor has no valid address.'
    default_code = 'missing_vendor_address'


class InvalidSignature(ServiceError):
    default_detail = 'Invalid payment signature.'
    default_code = 'invalid_signature'


# 3. State conflicts (409)
class InvalidStatusTransition(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Invalid status transition.'
    default_code = 'invalid_status_transition'


class AlreadyInWishlist(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Product is already in the wishlist.'
    default_code = 'already_in_wishlist'


# 4. External services (503)
class PaymentGatewayError(ServiceError):
    """Gateway call failed; the order (if any) stays PENDING and retryable."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'Payment initiation failed.'
    default_code = 'payment_gateway_error'

    def __init__(self, detail=None, order_id=None):
        self.order_id = order_id
        super().__init__(detail)


def _first_message(detail):
    """Flatten DRF's nested error detail into a single human-readable line."""
    if isinstance(detail, dict):
        for key, value in detail.items():
            msg = _first_message(value)
            if key in ('detail', 'non_field_errors'):
                return msg
            return f'{key}: {msg}'
        return 'Invalid request.'
    if isinstance(detail, (list, tuple)):
        return _first_message(detail[0]) if detail else 'Invalid request.'
    return str(detail)


def api_exception_handler(exc, context):
    """Render errors as ``{success: false, message}`` and hide internals on 500."""
    response = exception_handler(exc, context)

    if response is None:
        view = context.get('view')
        logger.exception(f'Unhandled error in {view.__class__.__name__ if view else "unknown view"}')
        return Response(
            {'success': False, 'message': 'Internal server error'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    body = {'success': False, 'message': _first_message(response.data)}
    if isinstance(exc, ValidationError):
        body['errors'] = response.data
    if isinstance(exc, PaymentGatewayError) and exc.order_id is not None:
        body['orderId'] = exc.order_id
    response.data = body
    return response
