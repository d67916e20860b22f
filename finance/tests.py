"""Finance app tests: gateway clients, webhooks and reconciliation."""

import base64
import json
from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from accounts.models import District, VendorProfile
from core.exceptions import InsufficientStock, InvalidSignature, OrderNotFound
from finance.gateways import (
	EsewaGateway, NpsGateway, NpsPayment, hmac_sha512_signature, payment_variant, sha256_signature,
)
from finance.models import Transaction
from finance.reconciliation import PaymentReconciler
from orders.models import Order, OrderItem, OrderStatus, PaymentMethod, PaymentStatus
from orders.services import OrderService
from products.models import Product

GATEWAYS = {
	'TIMEOUT': 5,
	'ONLINE_PAYMENT': {'BASE_URL': 'https://pay.test/api', 'MERCHANT_ID': 'M-1', 'SECRET_KEY': 'online-secret'},
	'ESEWA': {'PAYMENT_URL': 'https://esewa.test/form', 'MERCHANT_CODE': 'EPAYTEST', 'SECRET_KEY': 'esewa-secret'},
	'NPS': {
		'BASE_URL': 'https://nps.test',
		'GATEWAY_URL': 'https://gateway.nps.test',
		'MERCHANT_ID': '7',
		'MERCHANT_NAME': 'shop',
		'API_USERNAME': 'user',
		'API_PASSWORD': 'pass',
		'SECRET_KEY': 'nps-secret',
	},
}


class SignatureTests(TestCase):
	def test_sha256_signature_sorts_keys(self):
		a = sha256_signature({'b': '2', 'a': '1'}, 'secret')
		b = sha256_signature({'a': '1', 'b': '2'}, 'secret')
		self.assertEqual(a, b)
		self.assertNotEqual(a, sha256_signature({'a': '1', 'b': '2'}, 'other'))

	def test_hmac_sha512_uses_values_in_key_order(self):
		self.assertEqual(
			hmac_sha512_signature({'MerchantId': '7', 'Amount': '10.00'}, 'k'),
			hmac_sha512_signature({'Amount': '10.00', 'MerchantId': '7'}, 'k'),
		)
		self.assertEqual(len(hmac_sha512_signature({'a': 1}, 'k')), 128)

	def test_payment_variants(self):
		self.assertEqual(payment_variant('NPS', 'CARD'), NpsPayment(instrument_code='CARD'))
		self.assertEqual(payment_variant('ESEWA').method, PaymentMethod.ESEWA)
		with self.assertRaises(ValueError):
			payment_variant('BARTER')

	def test_esewa_token_round_trip_and_tampering(self):
		gateway = EsewaGateway(config=GATEWAYS['ESEWA'])
		data = {
			'transaction_code': '000AB',
			'status': 'COMPLETE',
			'total_amount': '1100.0',
			'transaction_uuid': 'uuid-1',
			'product_code': 'EPAYTEST',
			'signed_field_names': 'transaction_code,status,total_amount,transaction_uuid,product_code,signed_field_names',
		}
		data['signature'] = gateway.sign(data, data['signed_field_names'])
		token = base64.b64encode(json.dumps(data).encode('utf-8')).decode('ascii')
		self.assertEqual(gateway.decode(token)['transaction_uuid'], 'uuid-1')

		data['total_amount'] = '1.0'
		tampered = base64.b64encode(json.dumps(data).encode('utf-8')).decode('ascii')
		with self.assertRaises(InvalidSignature):
			gateway.decode(tampered)
		with self.assertRaises(InvalidSignature):
			gateway.decode('not-base64!')


class PaymentFixturesMixin:
	@classmethod
	def setUpTestData(cls):
		User = get_user_model()
		District.objects.create(name='Lalitpur')
		kathmandu = District.objects.create(name='Kathmandu')
		cls.customer = User.objects.create_user(username='pay_customer', email='pay_customer@example.com', password='12345678')
		cls.seller = User.objects.create_user(username='pay_seller', email='pay_seller@example.com', password='12345678', user_type='seller')
		VendorProfile.objects.create(user=cls.seller, store_name='Store', district=kathmandu, is_approved=True, is_verified=True)
		cls.product = Product.objects.create(seller=cls.seller, name='Rice', base_price=Decimal('500.00'), stock=5)

	def setUp(self):
		self.client = APIClient()

	def make_order(self, method, txn_id, qty=2):
		order = Order.objects.create(
			customer=self.customer,
			total_price=Decimal('1100.00'),
			shipping_fee=Decimal('100.00'),
			payment_method=method,
			m_transaction_id=txn_id,
		)
		OrderItem.objects.create(order=order, product=self.product, vendor=self.seller, quantity=qty, price=Decimal('500.00'))
		return order


@override_settings(ALLOWED_HOSTS=['testserver', 'localhost', '127.0.0.1'], PAYMENT_GATEWAYS=GATEWAYS)
class NpsNotificationTests(PaymentFixturesMixin, TestCase):
	def signed(self, **params):
		params['Signature'] = hmac_sha512_signature(params, 'nps-secret')
		return params

	def test_success_notification_is_applied_once(self):
		order = self.make_order(PaymentMethod.NPS, 'TXN_1')
		params = self.signed(MerchantTxnId='TXN_1', GatewayTxnId='G-1', Status='Success')

		res = self.client.get('/api/payments/notification/', params)
		self.assertEqual(res.status_code, 200, res.content)
		self.assertEqual(res.data['outcome'], 'PAID')
		order.refresh_from_db()
		self.assertEqual(order.payment_status, PaymentStatus.PAID)
		self.assertEqual(order.status, OrderStatus.CONFIRMED)
		self.product.refresh_from_db()
		self.assertEqual(self.product.stock, 3)

		res = self.client.get('/api/payments/notification/', params)
		self.assertEqual(res.status_code, 200)
		self.assertEqual(res.data['outcome'], 'NOOP')
		self.product.refresh_from_db()
		self.assertEqual(self.product.stock, 3)
		self.assertEqual(Transaction.objects.filter(merchant_txn_id='TXN_1', kind=Transaction.KIND_CALLBACK).count(), 2)

	def test_bad_signature_changes_nothing(self):
		order = self.make_order(PaymentMethod.NPS, 'TXN_1')
		params = self.signed(MerchantTxnId='TXN_1', GatewayTxnId='G-1', Status='Success')
		params['Status'] = 'SUCCESS'

		res = self.client.get('/api/payments/notification/', params)
		self.assertEqual(res.status_code, 400)
		order.refresh_from_db()
		self.assertEqual(order.status, OrderStatus.PENDING)
		self.assertFalse(Transaction.objects.exists())

	def test_unknown_transaction_and_missing_id(self):
		res = self.client.get('/api/payments/notification/', self.signed(MerchantTxnId='TXN_X', Status='Success'))
		self.assertEqual(res.status_code, 404)

		res = self.client.get('/api/payments/notification/', {'Status': 'Success'})
		self.assertEqual(res.status_code, 400)

	def test_paid_order_is_not_cancelled_by_late_failure(self):
		order = self.make_order(PaymentMethod.NPS, 'TXN_1')
		self.client.get('/api/payments/notification/', self.signed(MerchantTxnId='TXN_1', Status='Success'))

		res = self.client.get('/api/payments/notification/', self.signed(MerchantTxnId='TXN_1', Status='Failed'))
		self.assertEqual(res.data['outcome'], 'NOOP')
		order.refresh_from_db()
		self.assertEqual(order.payment_status, PaymentStatus.PAID)

	def test_initiate_requests_process_id_and_signs_form(self):
		order = self.make_order(PaymentMethod.NPS, None)
		response = mock.Mock()
		response.json.return_value = {'code': '0', 'data': {'ProcessId': 'P-9'}}

		with mock.patch('finance.gateways.requests.post', return_value=response) as post:
			redirect = NpsGateway().initiate(order, NpsPayment(instrument_code='CARD'))

		self.assertEqual(post.call_args.args[0], 'https://nps.test/GetProcessId')
		self.assertEqual(redirect.url, 'https://gateway.nps.test/Payment/Index')
		self.assertTrue(redirect.transaction_id.startswith('TXN_'))
		form = dict(redirect.form_data)
		signature = form.pop('Signature')
		self.assertEqual(signature, hmac_sha512_signature(form, 'nps-secret'))
		self.assertEqual(form['ProcessId'], 'P-9')
		self.assertEqual(form['InstrumentCode'], 'CARD')
		self.assertEqual(form['Amount'], '1100.00')


@override_settings(ALLOWED_HOSTS=['testserver', 'localhost', '127.0.0.1'], PAYMENT_GATEWAYS=GATEWAYS)
class EsewaLandingTests(PaymentFixturesMixin, TestCase):
	def token(self, status='COMPLETE', uuid='uuid-1'):
		data = {
			'status': status,
			'total_amount': '1100.0',
			'transaction_uuid': uuid,
			'product_code': 'EPAYTEST',
			'signed_field_names': 'status,total_amount,transaction_uuid,product_code,signed_field_names',
		}
		data['signature'] = EsewaGateway().sign(data, data['signed_field_names'])
		return base64.b64encode(json.dumps(data).encode('utf-8')).decode('ascii')

	def test_complete_token_marks_order_paid(self):
		order = self.make_order(PaymentMethod.ESEWA, 'uuid-1')

		res = self.client.get('/api/orders/payment/esewa/success/', {'oid': order.id, 'data': self.token()})
		self.assertEqual(res.status_code, 200, res.content)
		self.assertEqual(res.data['outcome'], 'PAID')
		order.refresh_from_db()
		self.assertEqual(order.status, OrderStatus.CONFIRMED)

	def test_token_for_another_order_is_not_found(self):
		order = self.make_order(PaymentMethod.ESEWA, 'uuid-1')
		other = self.make_order(PaymentMethod.ESEWA, 'uuid-2')

		res = self.client.get('/api/orders/payment/esewa/success/', {'oid': other.id, 'data': self.token()})
		self.assertEqual(res.status_code, 404)
		order.refresh_from_db()
		self.assertEqual(order.status, OrderStatus.PENDING)

	def test_failure_page_cancels_for_owner(self):
		order = self.make_order(PaymentMethod.ESEWA, 'uuid-1')
		self.client.force_authenticate(user=self.customer)

		res = self.client.get('/api/orders/payment/esewa/failure/', {'oid': order.id})
		self.assertEqual(res.status_code, 200)
		order.refresh_from_db()
		self.assertEqual(order.status, OrderStatus.CANCELLED)
		self.assertEqual(order.payment_status, PaymentStatus.UNPAID)


class ReconcilerTests(PaymentFixturesMixin, TestCase):
	def test_unknown_status_is_recorded_but_ignored(self):
		order = self.make_order(PaymentMethod.ONLINE_PAYMENT, 'TX-1')

		result = PaymentReconciler().reconcile('TX-1', 'PROCESSING', PaymentMethod.ONLINE_PAYMENT)
		self.assertEqual(result.outcome, 'IGNORED')
		order.refresh_from_db()
		self.assertEqual(order.status, OrderStatus.PENDING)
		self.assertEqual(Transaction.objects.get().outcome, 'IGNORED')

	def test_unknown_transaction_raises(self):
		with self.assertRaises(OrderNotFound):
			PaymentReconciler().reconcile('NOPE', 'SUCCESS', PaymentMethod.NPS)
		with self.assertRaises(OrderNotFound):
			PaymentReconciler().reconcile('', 'SUCCESS', PaymentMethod.NPS)

	def test_success_after_cancel_is_left_for_review(self):
		order = self.make_order(PaymentMethod.ONLINE_PAYMENT, 'TX-1')
		PaymentReconciler().cancel(order.id, PaymentMethod.ONLINE_PAYMENT)

		result = PaymentReconciler().reconcile('TX-1', 'SUCCESS', PaymentMethod.ONLINE_PAYMENT)
		self.assertEqual(result.outcome, 'NOOP')
		order.refresh_from_db()
		self.assertEqual(order.status, OrderStatus.CANCELLED)
		self.product.refresh_from_db()
		self.assertEqual(self.product.stock, 5)

	def test_success_without_stock_rolls_back(self):
		order = self.make_order(PaymentMethod.ONLINE_PAYMENT, 'TX-1', qty=9)

		with self.assertRaises(InsufficientStock):
			PaymentReconciler().reconcile('TX-1', 'SUCCESS', PaymentMethod.ONLINE_PAYMENT)
		order.refresh_from_db()
		self.assertEqual(order.payment_status, PaymentStatus.UNPAID)
		self.assertFalse(Transaction.objects.exists())

	def test_late_success_does_not_move_a_delivered_order_back(self):
		order = self.make_order(PaymentMethod.ONLINE_PAYMENT, 'TX-9')
		service = OrderService(gateways={})
		service.update_status(order.id, OrderStatus.CONFIRMED)
		service.update_status(order.id, OrderStatus.DELIVERED)

		result = PaymentReconciler().reconcile('TX-9', 'SUCCESS', PaymentMethod.ONLINE_PAYMENT)
		self.assertEqual(result.outcome, 'PAID')
		order.refresh_from_db()
		self.assertEqual(order.status, OrderStatus.DELIVERED)
		self.assertEqual(order.payment_status, PaymentStatus.PAID)
		self.product.refresh_from_db()
		self.assertEqual(self.product.stock, 3)

	def test_callback_for_an_earlier_attempt_still_finds_the_order(self):
		order = self.make_order(PaymentMethod.NPS, 'TX-OLD')
		Transaction.objects.create(order=order, gateway=PaymentMethod.NPS, kind=Transaction.KIND_INITIATE, merchant_txn_id='TX-OLD')
		order.m_transaction_id = 'TX-NEW'
		order.save(update_fields=['m_transaction_id'])
		Transaction.objects.create(order=order, gateway=PaymentMethod.NPS, kind=Transaction.KIND_INITIATE, merchant_txn_id='TX-NEW')

		result = PaymentReconciler().reconcile('TX-OLD', 'FAILED', PaymentMethod.NPS)
		self.assertEqual(result.outcome, 'IGNORED')
		order.refresh_from_db()
		self.assertEqual(order.status, OrderStatus.PENDING)

		result = PaymentReconciler().reconcile('TX-OLD', 'SUCCESS', PaymentMethod.NPS)
		self.assertEqual(result.outcome, 'PAID')
		order.refresh_from_db()
		self.assertEqual(order.status, OrderStatus.CONFIRMED)
		self.assertEqual(order.payment_status, PaymentStatus.PAID)
		self.product.refresh_from_db()
		self.assertEqual(self.product.stock, 3)
