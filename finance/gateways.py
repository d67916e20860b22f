"""
Payment gateway clients.

Three online gateways are supported, each with its own signature scheme:

- ONLINE_PAYMENT: generic checkout API. Signature is the SHA-256 hex digest of
  the payload's sorted ``key=value`` pairs joined by ``&`` plus ``&secretKey=<secret>``.
- ESEWA: form-post gateway. Signature is the base64 HMAC-SHA256 of the
  ``signed_field_names`` rendered as ``name=value`` joined by commas.
- NPS: process-id gateway. Signature is the hex HMAC-SHA512 of the payload
  values concatenated in sorted key order.

Settings are read from ``settings.PAYMENT_GATEWAYS``. Every outbound call goes
through ``requests`` with the configured timeout and never runs inside a DB
transaction.
"""

import base64
import hashlib
import hmac
import json
import logging
import secrets
import time
import uuid
from dataclasses import dataclass, field
from typing import ClassVar, Dict, Optional

import requests
from django.conf import settings
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from core.exceptions import InvalidSignature, PaymentGatewayError
from orders.models import PaymentMethod

logger = logging.getLogger(__name__)


# 1. Payment method variants
@dataclass(frozen=True)
class CashOnDelivery:
    method: ClassVar[str] = PaymentMethod.CASH_ON_DELIVERY


@dataclass(frozen=True)
class OnlinePayment:
    method: ClassVar[str] = PaymentMethod.ONLINE_PAYMENT


@dataclass(frozen=True)
class EsewaPayment:
    method: ClassVar[str] = PaymentMethod.ESEWA


@dataclass(frozen=True)
class NpsPayment:
    method: ClassVar[str] = PaymentMethod.NPS
    instrument_code: str = ''


def payment_variant(method: str, instrument_code: Optional[str] = None):
    """Build the payment variant for a method name."""
    if method == PaymentMethod.CASH_ON_DELIVERY:
        return CashOnDelivery()
    if method == PaymentMethod.ONLINE_PAYMENT:
        return OnlinePayment()
    if method == PaymentMethod.ESEWA:
        return EsewaPayment()
    if method == PaymentMethod.NPS:
        return NpsPayment(instrument_code=instrument_code or '')
    raise ValueError(f'Unknown payment method: {method}')


@dataclass
class PaymentRedirect:
    """Where to send the customer to complete payment."""

    gateway: str
    url: str
    transaction_id: str
    form_data: Dict[str, str] = field(default_factory=dict)

    def as_dict(self):
        data = {'gateway': self.gateway, 'redirectUrl': self.url, 'transactionId': self.transaction_id}
        if self.form_data:
            data['formData'] = self.form_data
        return data


# 2. Signature schemes
def sha256_signature(payload: Dict, secret: str) -> str:
    signature_string = '&'.join(f'{key}={payload[key]}' for key in sorted(payload)) + f'&secretKey={secret}'
    return hashlib.sha256(signature_string.encode('utf-8')).hexdigest()


def hmac_sha256_base64(message: str, secret: str) -> str:
    digest = hmac.new(secret.encode('utf-8'), message.encode('utf-8'), hashlib.sha256).digest()
    return base64.b64encode(digest).decode('ascii')


def hmac_sha512_signature(payload: Dict, secret: str) -> str:
    message = ''.join(str(payload[key]) for key in sorted(payload))
    return hmac.new(secret.encode('utf-8'), message.encode('utf-8'), hashlib.sha512).hexdigest()


def _matches(expected: str, received) -> bool:
    return bool(received) and hmac.compare_digest(str(expected), str(received))


def _amount(value) -> str:
    return f'{value:.2f}' if value is not None else ''


# 3. Gateway clients
class BaseGateway:
    method: ClassVar[str] = ''
    settings_key: ClassVar[str] = ''

    def __init__(self, config: Optional[Dict] = None, timeout: Optional[float] = None):
        gateways = getattr(settings, 'PAYMENT_GATEWAYS', {})
        self.config = config if config is not None else gateways.get(self.settings_key, {})
        self.timeout = timeout if timeout is not None else gateways.get('TIMEOUT', 15)
        self.secret_key = self.config.get('SECRET_KEY', '')

    def _post(self, url: str, order_id=None, **kwargs) -> requests.Response:
        try:
            response = requests.post(url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response
        except requests.exceptions.Timeout:
            logger.error(f'{self.method} gateway timeout: {url}')
            raise PaymentGatewayError('Payment gateway timed out. Please try again.', order_id=order_id)
        except requests.exceptions.RequestException as e:
            logger.error(f'{self.method} gateway error: {str(e)}')
            raise PaymentGatewayError(f'Payment initiation failed: {str(e)}', order_id=order_id)

    def _json(self, response: requests.Response, order_id=None) -> Dict:
        try:
            return response.json()
        except ValueError:
            logger.error(f'{self.method} gateway returned a non-JSON body')
            raise PaymentGatewayError('Payment gateway returned an invalid response.', order_id=order_id)

    def initiate(self, order, payment=None) -> PaymentRedirect:
        raise NotImplementedError


class OnlinePaymentGateway(BaseGateway):
    method = PaymentMethod.ONLINE_PAYMENT
    settings_key = 'ONLINE_PAYMENT'

    def sign(self, payload: Dict) -> str:
        return sha256_signature(payload, self.secret_key)

    def initiate(self, order, payment=None) -> PaymentRedirect:
        frontend = settings.FRONTEND_URL
        payload = {
            'merchantId': self.config.get('MERCHANT_ID', ''),
            'accessCode': self.config.get('ACCESS_CODE', ''),
            'amount': _amount(order.total_price),
            'currency': 'NPR',
            'orderId': str(order.id),
            'returnUrl': f'{frontend}/order/payment-success?orderId={order.id}',
            'cancelUrl': f'{frontend}/order/payment-cancel?orderId={order.id}',
            'customerEmail': order.customer.email,
            'customerName': order.customer.username,
            'paymentMethod': self.method,
            'timestamp': timezone.now().isoformat(),
        }
        payload['signature'] = self.sign(payload)

        logger.info(f'Initiating online payment for order {order.id}')
        response = self._post(
            f"{self.config.get('BASE_URL', '').rstrip('/')}/transactions/Checkout",
            order_id=order.id,
            json=payload,
            auth=(self.config.get('API_USERNAME', ''), self.config.get('API_PASSWORD', '')),
        )
        data = self._json(response, order_id=order.id)
        if not data.get('redirectUrl') or not data.get('transactionId'):
            logger.error(f'Online payment response missing redirectUrl/transactionId for order {order.id}')
            raise PaymentGatewayError('Failed to initiate payment: missing redirectUrl or transactionId', order_id=order.id)

        return PaymentRedirect(gateway=self.method, url=data['redirectUrl'], transaction_id=str(data['transactionId']))

    def verify(self, transaction_id: str, order_id, data: Dict) -> bool:
        """Check the landing-page signature; returns True when the status is SUCCESS."""
        missing = [name for name in ('status', 'amount', 'timestamp', 'signature') if not data.get(name)]
        if missing:
            raise ValidationError({name: ['This query parameter is required.'] for name in missing})
        payload = {
            'merchantId': self.config.get('MERCHANT_ID', ''),
            'transactionId': transaction_id,
            'orderId': str(order_id),
            'status': data.get('status'),
            'amount': data.get('amount'),
            'timestamp': data.get('timestamp'),
        }
        if not _matches(self.sign(payload), data.get('signature')):
            logger.warning(f'Online payment signature mismatch for order {order_id}')
            raise InvalidSignature()
        return data.get('status') == 'SUCCESS'


class EsewaGateway(BaseGateway):
    method = PaymentMethod.ESEWA
    settings_key = 'ESEWA'
    signed_field_names = 'total_amount,transaction_uuid,product_code'

    def sign(self, fields: Dict, signed_field_names: str) -> str:
        message = ','.join(f'{name}={fields.get(name, "")}' for name in signed_field_names.split(','))
        return hmac_sha256_base64(message, self.secret_key)

    def initiate(self, order, payment=None) -> PaymentRedirect:
        frontend = settings.FRONTEND_URL
        transaction_uuid = str(uuid.uuid4())
        total = _amount(order.total_price)
        product_code = self.config.get('MERCHANT_CODE', '')
        form = {
            'amount': total,
            'tax_amount': '0',
            'product_service_charge': '0',
            'product_delivery_charge': '0',
            'total_amount': total,
            'transaction_uuid': transaction_uuid,
            'product_code': product_code,
            'success_url': f'{frontend}/order/esewa-payment-success?oid={order.id}',
            'failure_url': f'{frontend}/order/esewa-payment-failure?oid={order.id}',
            'signed_field_names': self.signed_field_names,
        }
        form['signature'] = self.sign(form, self.signed_field_names)

        logger.info(f'Initiating eSewa payment for order {order.id} ({transaction_uuid})')
        response = self._post(self.config.get('PAYMENT_URL', ''), order_id=order.id, data=form)
        return PaymentRedirect(gateway=self.method, url=response.url, transaction_id=transaction_uuid, form_data=form)

    def decode(self, token: str) -> Dict:
        """Decode and verify the base64 JSON token eSewa appends to the success URL."""
        try:
            data = json.loads(base64.b64decode(token).decode('utf-8'))
        except (ValueError, TypeError):
            raise InvalidSignature('Malformed eSewa response.')
        if not isinstance(data, dict):
            raise InvalidSignature('Malformed eSewa response.')

        names = data.get('signed_field_names') or ''
        if not names or not _matches(self.sign(data, names), data.get('signature')):
            logger.warning(f"eSewa signature mismatch for transaction {data.get('transaction_uuid')}")
            raise InvalidSignature()
        return data


class NpsGateway(BaseGateway):
    method = PaymentMethod.NPS
    settings_key = 'NPS'

    def sign(self, payload: Dict) -> str:
        return hmac_sha512_signature(payload, self.secret_key)

    def _auth_header(self) -> str:
        credentials = f"{self.config.get('API_USERNAME', '')}:{self.config.get('API_PASSWORD', '')}"
        return 'Basic ' + base64.b64encode(credentials.encode('utf-8')).decode('ascii')

    @staticmethod
    def new_merchant_txn_id() -> str:
        return f'TXN_{int(time.time() * 1000)}_{secrets.token_hex(4)}'

    def initiate(self, order, payment=None) -> PaymentRedirect:
        merchant_txn_id = self.new_merchant_txn_id()
        merchant = {
            'MerchantId': self.config.get('MERCHANT_ID', ''),
            'MerchantName': self.config.get('MERCHANT_NAME', ''),
        }
        process_data = {**merchant, 'Amount': _amount(order.total_price), 'MerchantTxnId': merchant_txn_id}
        process_data['Signature'] = self.sign(process_data)

        logger.info(f'Requesting NPS process id for order {order.id} ({merchant_txn_id})')
        response = self._post(
            f"{self.config.get('BASE_URL', '').rstrip('/')}/GetProcessId",
            order_id=order.id,
            json=process_data,
            headers={'Authorization': self._auth_header(), 'Content-Type': 'application/json'},
        )
        body = self._json(response, order_id=order.id)
        if str(body.get('code')) != '0':
            logger.error(f'NPS process id request failed for order {order.id}: {body}')
            raise PaymentGatewayError('Failed to get process ID', order_id=order.id)

        instrument_code = getattr(payment, 'instrument_code', '') or order.instrument_code or ''
        form = {
            **merchant,
            'Amount': process_data['Amount'],
            'MerchantTxnId': merchant_txn_id,
            'ProcessId': (body.get('data') or {}).get('ProcessId', ''),
            'InstrumentCode': instrument_code,
            'TransactionRemarks': f'Order #{order.id}',
            'ResponseUrl': f'{settings.FRONTEND_URL}/order/payment-response',
        }
        form['Signature'] = self.sign(form)
        gateway_url = self.config.get('GATEWAY_URL', '').rstrip('/')
        return PaymentRedirect(gateway=self.method, url=f'{gateway_url}/Payment/Index', transaction_id=merchant_txn_id, form_data=form)

    def verify(self, params: Dict) -> None:
        """Verify a webhook notification; the signature covers every other parameter."""
        payload = {k: v for k, v in params.items() if k != 'Signature'}
        if not _matches(self.sign(payload), params.get('Signature')):
            logger.warning(f"NPS notification signature mismatch for {params.get('MerchantTxnId')}")
            raise InvalidSignature()


GATEWAY_CLASSES = {
    PaymentMethod.ONLINE_PAYMENT: OnlinePaymentGateway,
    PaymentMethod.ESEWA: EsewaGateway,
    PaymentMethod.NPS: NpsGateway,
}


def default_gateways() -> Dict[str, BaseGateway]:
    """Instantiate one client per online payment method from current settings."""
    return {method: cls() for method, cls in GATEWAY_CLASSES.items()}
