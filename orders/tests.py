"""Orders app tests."""

from datetime import timedelta
from decimal import Decimal
from unittest import mock

import requests
from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APIClient

from accounts.models import District, VendorProfile
from cart.models import ShoppingCart, ShoppingCartItem
from core.exceptions import InvalidPromoCode, InvalidStatusTransition, MissingVendorAddress
from finance.gateways import sha256_signature
from finance.models import Transaction
from orders.models import Order, OrderItem, OrderStatus, PaymentMethod, PaymentStatus, PromoCode
from orders.pricing import PricingEngine
from orders.services import OrderService
from orders.shipping import ShippingCalculator
from products.inventory import InventoryLedger, LineItem
from products.models import InventoryStatus, Product, ProductVariant

GATEWAYS = {
	'TIMEOUT': 5,
	'ONLINE_PAYMENT': {
		'BASE_URL': 'https://pay.test/api',
		'MERCHANT_ID': 'M-1',
		'ACCESS_CODE': 'AC',
		'API_USERNAME': 'user',
		'API_PASSWORD': 'pass',
		'SECRET_KEY': 'online-secret',
	},
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

ADDRESS = {'province': 'Bagmati', 'district': 'lalitpur', 'city': 'Patan', 'street_address': 'Mangal Bazar'}


def checkout_payload(**overrides):
	payload = {
		'shipping_address': dict(ADDRESS),
		'payment_method': PaymentMethod.CASH_ON_DELIVERY,
		'phone_number': '9841234567',
	}
	payload.update(overrides)
	return payload


def gateway_response(**body):
	response = mock.Mock()
	response.json.return_value = body
	response.raise_for_status.return_value = None
	response.url = 'https://esewa.test/redirect'
	return response


class OrderFixturesMixin:
	@classmethod
	def setUpTestData(cls):
		User = get_user_model()

		cls.kathmandu = District.objects.create(name='Kathmandu')
		cls.lalitpur = District.objects.create(name='Lalitpur')
		cls.kaski = District.objects.create(name='Kaski')

		cls.customer = User.objects.create_user(
			username='test_customer',
			email='test_customer@example.com',
			password='12345678',
			user_type='customer',
		)
		cls.other_customer = User.objects.create_user(
			username='other_customer',
			email='other_customer@example.com',
			password='12345678',
			user_type='customer',
		)
		cls.seller = User.objects.create_user(
			username='test_seller',
			email='test_seller@example.com',
			password='12345678',
			user_type='seller',
		)
		VendorProfile.objects.create(user=cls.seller, store_name='Valley Store', district=cls.kathmandu, is_approved=True, is_verified=True)
		cls.remote_seller = User.objects.create_user(
			username='remote_seller',
			email='remote_seller@example.com',
			password='12345678',
			user_type='seller',
		)
		VendorProfile.objects.create(user=cls.remote_seller, store_name='Lake Store', district=cls.kaski, is_approved=True, is_verified=True)
		cls.admin = User.objects.create_user(
			username='test_admin',
			email='admin@example.com',
			password='12345678',
			is_staff=True,
		)

		cls.product = Product.objects.create(seller=cls.seller, name='Tea', base_price='500.00', stock=10)
		cls.remote_product = Product.objects.create(seller=cls.remote_seller, name='Honey', base_price='250.00', stock=10)
		cls.shirt = Product.objects.create(seller=cls.seller, name='Shirt', base_price='900.00')
		cls.shirt_m = ProductVariant.objects.create(product=cls.shirt, sku='SHIRT-M', name='M', price='800.00', stock=1)

	def setUp(self):
		self.client = APIClient()

	def add_to_cart(self, user, product, qty, variant=None):
		cart, _ = ShoppingCart.objects.get_or_create(user=user)
		item = ShoppingCartItem.objects.create(
			cart=cart, product=product, variant=variant, qty=qty,
			price=variant.price if variant else product.base_price, name=product.name,
		)
		cart.recalculate_total()
		return item

	def make_order(self, method=PaymentMethod.ONLINE_PAYMENT, status=OrderStatus.PENDING, qty=2, **fields):
		order = Order.objects.create(
			customer=self.customer,
			total_price=Decimal('1100.00'),
			shipping_fee=Decimal('100.00'),
			payment_method=method,
			status=status,
			**fields
		)
		OrderItem.objects.create(order=order, product=self.product, vendor=self.seller, quantity=qty, price=Decimal('500.00'))
		return order


@override_settings(ALLOWED_HOSTS=['testserver', 'localhost', '127.0.0.1'], PAYMENT_GATEWAYS=GATEWAYS)
class OrderCheckoutTests(OrderFixturesMixin, TestCase):
	"""Cart and buy-now checkout through the orders API."""

	def test_create_order_cod_returns_201_and_clears_cart(self):
		self.add_to_cart(self.customer, self.product, 2)
		self.client.force_authenticate(user=self.customer)

		res = self.client.post('/api/orders/', checkout_payload(), format='json')
		self.assertEqual(res.status_code, 201, res.content)
		self.assertTrue(res.data['success'])
		self.assertNotIn('payment', res.data)

		order = Order.objects.get(pk=res.data['order']['id'])
		self.assertEqual(order.status, OrderStatus.CONFIRMED)
		self.assertEqual(order.payment_status, PaymentStatus.UNPAID)
		self.assertTrue(order.inventory_committed)
		# Kathmandu vendor shipping to Lalitpur stays inside the valley.
		self.assertEqual(order.shipping_fee, Decimal('100.00'))
		self.assertEqual(order.total_price, Decimal('1100.00'))
		self.assertEqual(order.phone_number, '+9779841234567')
		self.assertEqual(order.shipping_address.district, 'Lalitpur')

		line = order.items.get()
		self.assertEqual(line.vendor, self.seller)
		self.assertEqual(line.price, Decimal('500.00'))

		self.product.refresh_from_db()
		self.assertEqual(self.product.stock, 8)
		self.assertEqual(ShoppingCart.objects.get(user=self.customer).items.count(), 0)
		self.assertEqual(res.data['vendorIds'], [self.seller.id])

	def test_promo_code_takes_ten_percent_and_cannot_be_reused(self):
		PromoCode.objects.create(code='SAVE10', discount_percentage=Decimal('10'))
		self.add_to_cart(self.customer, self.product, 2)
		self.client.force_authenticate(user=self.customer)

		res = self.client.post('/api/orders/', checkout_payload(promo_code='save10'), format='json')
		self.assertEqual(res.status_code, 201, res.content)
		order = Order.objects.get(pk=res.data['order']['id'])
		self.assertEqual(order.promo_discount, Decimal('100.00'))
		self.assertEqual(order.applied_promo_code, 'SAVE10')
		self.assertEqual(order.total_price, Decimal('1000.00'))

		self.add_to_cart(self.customer, self.product, 1)
		res = self.client.post('/api/orders/', checkout_payload(promo_code='SAVE10'), format='json')
		self.assertEqual(res.status_code, 400)
		self.assertFalse(res.data['success'])
		self.assertEqual(Order.objects.count(), 1)

	def test_unknown_promo_code_is_rejected_without_side_effects(self):
		self.add_to_cart(self.customer, self.product, 2)
		self.client.force_authenticate(user=self.customer)

		res = self.client.post('/api/orders/', checkout_payload(promo_code='NOPE'), format='json')
		self.assertEqual(res.status_code, 400)
		self.assertEqual(Order.objects.count(), 0)
		self.product.refresh_from_db()
		self.assertEqual(self.product.stock, 10)

	def test_shipping_charged_once_per_vendor_district(self):
		self.add_to_cart(self.customer, self.product, 1)
		self.add_to_cart(self.customer, self.shirt, 1, variant=self.shirt_m)
		self.add_to_cart(self.customer, self.remote_product, 1)
		self.client.force_authenticate(user=self.customer)

		res = self.client.post('/api/orders/', checkout_payload(), format='json')
		self.assertEqual(res.status_code, 201, res.content)
		order = Order.objects.get(pk=res.data['order']['id'])
		# Kathmandu -> Lalitpur is local (100), Kaski -> Lalitpur is remote (200).
		self.assertEqual(order.shipping_fee, Decimal('300.00'))
		self.assertEqual(order.total_price, Decimal('1850.00'))
		self.assertEqual(sorted(res.data['vendorIds']), sorted([self.seller.id, self.remote_seller.id]))

	def test_empty_cart_is_rejected(self):
		self.client.force_authenticate(user=self.customer)
		res = self.client.post('/api/orders/', checkout_payload(), format='json')
		self.assertEqual(res.status_code, 400)
		self.assertEqual(res.data['message'], 'Cart is empty.')

	def test_unknown_district_is_rejected(self):
		self.add_to_cart(self.customer, self.product, 1)
		self.client.force_authenticate(user=self.customer)

		address = dict(ADDRESS, district='Atlantis')
		res = self.client.post('/api/orders/', checkout_payload(shipping_address=address), format='json')
		self.assertEqual(res.status_code, 400)
		self.assertEqual(res.data['message'], 'Invalid district.')
		self.assertEqual(Order.objects.count(), 0)

	def test_buy_now_sells_last_variant_and_evicts_it_from_other_carts(self):
		mine = self.add_to_cart(self.customer, self.shirt, 1, variant=self.shirt_m)
		theirs = self.add_to_cart(self.other_customer, self.shirt, 1, variant=self.shirt_m)
		self.client.force_authenticate(user=self.customer)

		payload = checkout_payload(is_buy_now=True, product_id=self.shirt.id, variant_id=self.shirt_m.id, quantity=1)
		with self.captureOnCommitCallbacks(execute=True):
			res = self.client.post('/api/orders/', payload, format='json')
		self.assertEqual(res.status_code, 201, res.content)

		order = Order.objects.get(pk=res.data['order']['id'])
		self.assertTrue(order.is_buy_now)
		self.assertEqual(order.status, OrderStatus.CONFIRMED)
		self.assertEqual(order.items.get().variant, self.shirt_m)

		self.shirt_m.refresh_from_db()
		self.assertEqual(self.shirt_m.stock, 0)
		self.assertEqual(self.shirt_m.status, InventoryStatus.OUT_OF_STOCK)

		self.assertFalse(ShoppingCartItem.objects.filter(pk=theirs.pk).exists())
		self.assertEqual(ShoppingCart.objects.get(user=self.other_customer).total, Decimal('0.00'))
		# Buy-now leaves the buyer's own cart alone.
		self.assertTrue(ShoppingCartItem.objects.filter(pk=mine.pk).exists())

	def test_buy_now_more_than_stock_is_rejected(self):
		self.client.force_authenticate(user=self.customer)
		payload = checkout_payload(is_buy_now=True, product_id=self.shirt.id, variant_id=self.shirt_m.id, quantity=2)

		res = self.client.post('/api/orders/', payload, format='json')
		self.assertEqual(res.status_code, 400)
		self.assertIn('Insufficient stock', res.data['message'])
		self.assertEqual(Order.objects.count(), 0)
		self.shirt_m.refresh_from_db()
		self.assertEqual(self.shirt_m.stock, 1)

	def test_stock_taken_after_the_check_fails_the_whole_order(self):
		cart_item = self.add_to_cart(self.customer, self.product, 2)
		self.client.force_authenticate(user=self.customer)
		check = InventoryLedger.check_availability

		def sold_elsewhere(ledger, items):
			check(ledger, items)
			Product.objects.filter(pk=self.product.pk).update(stock=1)

		with mock.patch.object(InventoryLedger, 'check_availability', autospec=True, side_effect=sold_elsewhere):
			res = self.client.post('/api/orders/', checkout_payload(), format='json')

		self.assertEqual(res.status_code, 400)
		self.assertIn('Insufficient stock', res.data['message'])
		self.assertEqual(Order.objects.count(), 0)
		self.assertEqual(OrderItem.objects.count(), 0)
		self.product.refresh_from_db()
		self.assertEqual(self.product.stock, 1)
		cart_item.refresh_from_db()
		self.assertEqual(cart_item.qty, 2)
		self.assertEqual(ShoppingCart.objects.get(user=self.customer).items.count(), 1)

	def test_second_order_cannot_take_more_than_what_is_left(self):
		self.add_to_cart(self.customer, self.product, 6)
		self.client.force_authenticate(user=self.customer)
		res = self.client.post('/api/orders/', checkout_payload(), format='json')
		self.assertEqual(res.status_code, 201, res.content)

		self.add_to_cart(self.customer, self.product, 5)
		res = self.client.post('/api/orders/', checkout_payload(), format='json')
		self.assertEqual(res.status_code, 400)
		self.assertIn('Insufficient stock', res.data['message'])

		self.product.refresh_from_db()
		self.assertEqual(self.product.stock, 4)
		self.assertEqual(Order.objects.count(), 1)

	def test_total_matches_the_stored_line_prices(self):
		odd = Product.objects.create(seller=self.seller, name='Spice', base_price='10.00', discount='33.33', stock=10)
		self.add_to_cart(self.customer, odd, 3)
		self.client.force_authenticate(user=self.customer)

		res = self.client.post('/api/orders/', checkout_payload(), format='json')
		self.assertEqual(res.status_code, 201, res.content)
		order = Order.objects.get(pk=res.data['order']['id'])
		line = order.items.get()
		self.assertEqual(line.price, Decimal('6.67'))
		self.assertEqual(order.total_price, line.subtotal + order.shipping_fee)
		self.assertEqual(order.total_price, Decimal('120.01'))

	def test_buy_now_requires_variant_for_product_with_variants(self):
		self.client.force_authenticate(user=self.customer)
		payload = checkout_payload(is_buy_now=True, product_id=self.shirt.id, quantity=1)

		res = self.client.post('/api/orders/', payload, format='json')
		self.assertEqual(res.status_code, 400)
		self.assertIn('variant_id', res.data['errors'])

	def test_online_payment_timeout_leaves_order_pending_and_stock_intact(self):
		self.add_to_cart(self.customer, self.product, 2)
		self.client.force_authenticate(user=self.customer)

		with mock.patch('finance.gateways.requests.post', side_effect=requests.exceptions.Timeout):
			res = self.client.post('/api/orders/', checkout_payload(payment_method=PaymentMethod.ONLINE_PAYMENT), format='json')

		self.assertEqual(res.status_code, 503)
		self.assertFalse(res.data['success'])
		order = Order.objects.get(pk=res.data['orderId'])
		self.assertEqual(order.status, OrderStatus.PENDING)
		self.assertEqual(order.payment_status, PaymentStatus.UNPAID)
		self.assertFalse(order.inventory_committed)

		self.product.refresh_from_db()
		self.assertEqual(self.product.stock, 10)
		self.assertEqual(ShoppingCart.objects.get(user=self.customer).items.count(), 1)
		self.assertTrue(Transaction.objects.filter(order=order, outcome='FAILED').exists())

	def test_online_payment_returns_redirect_and_keeps_cart_until_paid(self):
		self.add_to_cart(self.customer, self.product, 2)
		self.client.force_authenticate(user=self.customer)

		response = gateway_response(redirectUrl='https://pay.test/checkout/abc', transactionId='TX-100')
		with mock.patch('finance.gateways.requests.post', return_value=response) as post:
			res = self.client.post('/api/orders/', checkout_payload(payment_method=PaymentMethod.ONLINE_PAYMENT), format='json')

		self.assertEqual(res.status_code, 201, res.content)
		self.assertEqual(res.data['payment']['redirectUrl'], 'https://pay.test/checkout/abc')
		self.assertEqual(post.call_args.kwargs['timeout'], 5)

		order = Order.objects.get(pk=res.data['order']['id'])
		self.assertEqual(order.status, OrderStatus.PENDING)
		self.assertEqual(order.m_transaction_id, 'TX-100')
		self.product.refresh_from_db()
		self.assertEqual(self.product.stock, 10)
		self.assertEqual(ShoppingCart.objects.get(user=self.customer).items.count(), 1)


@override_settings(ALLOWED_HOSTS=['testserver', 'localhost', '127.0.0.1'], PAYMENT_GATEWAYS=GATEWAYS)
class PaymentLandingTests(OrderFixturesMixin, TestCase):
	"""Return pages for the online and eSewa gateways."""

	def signed_params(self, order, status='SUCCESS', transaction_id='TX-1'):
		params = {
			'merchantId': 'M-1',
			'transactionId': transaction_id,
			'orderId': str(order.id),
			'status': status,
			'amount': '1100.00',
			'timestamp': '2026-01-01T00:00:00Z',
		}
		params['signature'] = sha256_signature(params, 'online-secret')
		params.pop('merchantId')
		return params

	def test_success_marks_paid_deducts_stock_and_is_idempotent(self):
		order = self.make_order(m_transaction_id='TX-1')
		self.add_to_cart(self.customer, self.product, 2)
		params = self.signed_params(order)

		res = self.client.get('/api/orders/payment/success/', params)
		self.assertEqual(res.status_code, 200, res.content)
		self.assertEqual(res.data['outcome'], 'PAID')

		order.refresh_from_db()
		self.assertEqual(order.payment_status, PaymentStatus.PAID)
		self.assertEqual(order.status, OrderStatus.CONFIRMED)
		self.assertTrue(order.inventory_committed)
		self.product.refresh_from_db()
		self.assertEqual(self.product.stock, 8)
		self.assertEqual(ShoppingCart.objects.get(user=self.customer).items.count(), 0)

		res = self.client.get('/api/orders/payment/success/', params)
		self.assertEqual(res.status_code, 200)
		self.assertEqual(res.data['outcome'], 'NOOP')
		self.product.refresh_from_db()
		self.assertEqual(self.product.stock, 8)
		self.assertEqual(Transaction.objects.filter(order=order, kind=Transaction.KIND_CALLBACK).count(), 2)

	def test_tampered_signature_is_rejected(self):
		order = self.make_order(m_transaction_id='TX-1')
		params = self.signed_params(order)
		params['amount'] = '1.00'

		res = self.client.get('/api/orders/payment/success/', params)
		self.assertEqual(res.status_code, 400)
		self.assertEqual(res.data['message'], 'Invalid payment signature.')
		order.refresh_from_db()
		self.assertEqual(order.status, OrderStatus.PENDING)
		self.assertEqual(order.payment_status, PaymentStatus.UNPAID)

	def test_failed_status_cancels_without_touching_stock(self):
		order = self.make_order(m_transaction_id='TX-1')

		res = self.client.get('/api/orders/payment/success/', self.signed_params(order, status='FAILED'))
		self.assertEqual(res.status_code, 200)
		self.assertEqual(res.data['outcome'], 'CANCELLED')
		order.refresh_from_db()
		self.assertEqual(order.status, OrderStatus.CANCELLED)
		self.product.refresh_from_db()
		self.assertEqual(self.product.stock, 10)

	def test_customer_cancel_page_cancels_own_order(self):
		order = self.make_order(m_transaction_id='TX-1')
		self.client.force_authenticate(user=self.customer)

		res = self.client.get('/api/orders/payment/cancel/', {'orderId': order.id})
		self.assertEqual(res.status_code, 200)
		order.refresh_from_db()
		self.assertEqual(order.status, OrderStatus.CANCELLED)

		self.client.force_authenticate(user=self.other_customer)
		res = self.client.get('/api/orders/payment/cancel/', {'orderId': order.id})
		self.assertEqual(res.status_code, 404)

	def test_cancel_page_leaves_cod_and_settled_orders_alone(self):
		self.add_to_cart(self.customer, self.product, 2)
		self.client.force_authenticate(user=self.customer)
		res = self.client.post('/api/orders/', checkout_payload(), format='json')
		self.assertEqual(res.status_code, 201, res.content)
		cod = Order.objects.get(pk=res.data['order']['id'])
		paid = self.make_order(status=OrderStatus.CONFIRMED, payment_status=PaymentStatus.PAID, m_transaction_id='TX-2')

		res = self.client.get('/api/orders/payment/cancel/', {'orderId': cod.id})
		self.assertEqual(res.status_code, 200)
		self.assertEqual(res.data['outcome'], 'NOOP')
		res = self.client.get('/api/orders/payment/esewa/failure/', {'oid': paid.id})
		self.assertEqual(res.data['outcome'], 'NOOP')

		cod.refresh_from_db()
		paid.refresh_from_db()
		self.assertEqual(cod.status, OrderStatus.CONFIRMED)
		self.assertEqual(paid.status, OrderStatus.CONFIRMED)
		self.assertEqual(paid.payment_status, PaymentStatus.PAID)
		self.product.refresh_from_db()
		self.assertEqual(self.product.stock, 8)

	def test_success_page_requires_signed_fields(self):
		order = self.make_order(m_transaction_id='TX-1')
		params = self.signed_params(order)
		del params['amount']
		del params['timestamp']

		res = self.client.get('/api/orders/payment/success/', params)
		self.assertEqual(res.status_code, 400)
		self.assertIn('amount', res.data['errors'])
		self.assertIn('timestamp', res.data['errors'])
		order.refresh_from_db()
		self.assertEqual(order.payment_status, PaymentStatus.UNPAID)


@override_settings(ALLOWED_HOSTS=['testserver', 'localhost', '127.0.0.1'], PAYMENT_GATEWAYS=GATEWAYS)
class OrderStatusTests(OrderFixturesMixin, TestCase):
	"""Admin status transitions and their inventory effects."""

	def test_every_status_pair_follows_the_transition_table(self):
		allowed = {
			('PENDING', 'CONFIRMED'), ('PENDING', 'CANCELLED'),
			('CONFIRMED', 'DELIVERED'), ('CONFIRMED', 'CANCELLED'),
			('DELIVERED', 'CANCELLED'),
		}
		statuses = ['PENDING', 'CONFIRMED', 'DELIVERED', 'CANCELLED']
		service = OrderService(gateways={})

		for current in statuses:
			for target in statuses:
				with self.subTest(current=current, target=target):
					order = self.make_order(
						method=PaymentMethod.CASH_ON_DELIVERY,
						status=current,
						inventory_committed=current in ('CONFIRMED', 'DELIVERED'),
					)
					if current == target or (current, target) in allowed:
						service.update_status(order.id, target)
						order.refresh_from_db()
						self.assertEqual(order.status, target)
					else:
						with self.assertRaises(InvalidStatusTransition):
							service.update_status(order.id, target)
						order.refresh_from_db()
						self.assertEqual(order.status, current)

	def test_admin_delivers_cod_order_and_marks_it_paid(self):
		order = self.make_order(method=PaymentMethod.CASH_ON_DELIVERY, status=OrderStatus.CONFIRMED, inventory_committed=True)
		self.client.force_authenticate(user=self.admin)

		res = self.client.patch(f'/api/orders/{order.id}/status/', {'status': 'DELIVERED'}, format='json')
		self.assertEqual(res.status_code, 200, res.content)
		order.refresh_from_db()
		self.assertEqual(order.status, OrderStatus.DELIVERED)
		self.assertEqual(order.payment_status, PaymentStatus.PAID)
		self.assertIsNotNone(order.delivered_at)

		res = self.client.patch(f'/api/orders/{order.id}/status/', {'status': 'CONFIRMED'}, format='json')
		self.assertEqual(res.status_code, 409)

	def test_cancelling_committed_order_restocks(self):
		self.product.stock = 8
		self.product.save()
		order = self.make_order(method=PaymentMethod.CASH_ON_DELIVERY, status=OrderStatus.CONFIRMED, inventory_committed=True)
		self.client.force_authenticate(user=self.admin)

		res = self.client.patch(f'/api/orders/{order.id}/status/', {'status': 'CANCELLED'}, format='json')
		self.assertEqual(res.status_code, 200)
		self.product.refresh_from_db()
		self.assertEqual(self.product.stock, 10)

		res = self.client.patch(f'/api/orders/{order.id}/status/', {'status': 'PENDING'}, format='json')
		self.assertEqual(res.status_code, 409)
		self.product.refresh_from_db()
		self.assertEqual(self.product.stock, 10)

	def test_confirming_uncommitted_order_deducts_stock(self):
		order = self.make_order()
		self.client.force_authenticate(user=self.admin)

		res = self.client.patch(f'/api/orders/{order.id}/status/', {'status': 'CONFIRMED'}, format='json')
		self.assertEqual(res.status_code, 200)
		self.product.refresh_from_db()
		self.assertEqual(self.product.stock, 8)

	def test_customer_cannot_change_status(self):
		order = self.make_order()
		self.client.force_authenticate(user=self.customer)
		res = self.client.patch(f'/api/orders/{order.id}/status/', {'status': 'CONFIRMED'}, format='json')
		self.assertEqual(res.status_code, 403)

	def test_stock_never_goes_negative(self):
		order = self.make_order(qty=11)
		self.client.force_authenticate(user=self.admin)

		res = self.client.patch(f'/api/orders/{order.id}/status/', {'status': 'CONFIRMED'}, format='json')
		self.assertEqual(res.status_code, 400)
		self.product.refresh_from_db()
		self.assertEqual(self.product.stock, 10)
		order.refresh_from_db()
		self.assertEqual(order.status, OrderStatus.PENDING)


@override_settings(ALLOWED_HOSTS=['testserver', 'localhost', '127.0.0.1'], PAYMENT_GATEWAYS=GATEWAYS)
class OrderQueryTests(OrderFixturesMixin, TestCase):
	"""Listings, tracking, retries and administrative endpoints."""

	def test_track_order_by_email(self):
		order = self.make_order()

		res = self.client.get(f'/api/orders/{order.id}/track/', {'email': 'TEST_customer@example.com'})
		self.assertEqual(res.status_code, 200)
		self.assertEqual(res.data['orderStatus'], OrderStatus.PENDING)

		res = self.client.get(f'/api/orders/{order.id}/track/', {'email': 'someone@example.com'})
		self.assertEqual(res.status_code, 404)

	def test_customers_only_see_their_own_orders(self):
		order = self.make_order()
		self.client.force_authenticate(user=self.other_customer)

		res = self.client.get('/api/orders/')
		self.assertEqual(res.status_code, 200)
		self.assertEqual(res.data['count'], 0)
		res = self.client.get(f'/api/orders/{order.id}/')
		self.assertEqual(res.status_code, 404)

	def test_vendor_sees_confirmed_orders_with_only_their_lines(self):
		order = self.make_order(status=OrderStatus.CONFIRMED)
		OrderItem.objects.create(order=order, product=self.remote_product, vendor=self.remote_seller, quantity=1, price=Decimal('250.00'))
		self.make_order(status=OrderStatus.PENDING)
		self.client.force_authenticate(user=self.remote_seller)

		res = self.client.get('/api/orders/')
		self.assertEqual(res.status_code, 200)
		self.assertEqual(res.data['count'], 1)
		items = res.data['results'][0]['items']
		self.assertEqual(len(items), 1)
		self.assertEqual(items[0]['product_name'], 'Honey')

	def test_check_promo_endpoint(self):
		PromoCode.objects.create(code='SAVE10', discount_percentage=Decimal('10'))
		PromoCode.objects.create(code='OLD', discount_percentage=Decimal('20'), expires_at=timezone.now() - timedelta(days=1))
		self.client.force_authenticate(user=self.customer)

		res = self.client.post('/api/orders/check-promo/', {'code': 'save10'}, format='json')
		self.assertEqual(res.status_code, 200)
		self.assertEqual(res.data['code'], 'SAVE10')

		res = self.client.post('/api/orders/check-promo/', {'code': 'OLD'}, format='json')
		self.assertEqual(res.status_code, 400)

	def test_retry_payment_for_pending_order(self):
		order = self.make_order()
		self.client.force_authenticate(user=self.customer)

		response = gateway_response(redirectUrl='https://pay.test/checkout/retry', transactionId='TX-RETRY')
		with mock.patch('finance.gateways.requests.post', return_value=response):
			res = self.client.post(f'/api/orders/{order.id}/retry-payment/')
		self.assertEqual(res.status_code, 200, res.content)
		self.assertEqual(res.data['payment']['transactionId'], 'TX-RETRY')
		order.refresh_from_db()
		self.assertEqual(order.m_transaction_id, 'TX-RETRY')

	def test_retry_payment_rejects_cod_and_settled_orders(self):
		cod = self.make_order(method=PaymentMethod.CASH_ON_DELIVERY, status=OrderStatus.CONFIRMED)
		paid = self.make_order(status=OrderStatus.CONFIRMED, payment_status=PaymentStatus.PAID)
		self.client.force_authenticate(user=self.customer)

		self.assertEqual(self.client.post(f'/api/orders/{cod.id}/retry-payment/').status_code, 400)
		self.assertEqual(self.client.post(f'/api/orders/{paid.id}/retry-payment/').status_code, 409)

	def test_bulk_delete_is_admin_only(self):
		self.make_order()
		self.make_order()

		self.client.force_authenticate(user=self.customer)
		self.assertEqual(self.client.delete('/api/orders/bulk-delete/').status_code, 403)

		self.client.force_authenticate(user=self.admin)
		res = self.client.delete('/api/orders/bulk-delete/')
		self.assertEqual(res.status_code, 200)
		self.assertEqual(res.data['deleted'], 2)
		self.assertEqual(Order.objects.count(), 0)
		self.assertEqual(OrderItem.objects.count(), 0)

	def test_stale_gateway_orders_are_cancelled(self):
		stale = self.make_order(method=PaymentMethod.ESEWA)
		fresh = self.make_order(method=PaymentMethod.NPS)
		cod = self.make_order(method=PaymentMethod.CASH_ON_DELIVERY)
		Order.objects.filter(pk__in=[stale.pk, cod.pk]).update(created_at=timezone.now() - timedelta(minutes=30))

		call_command('cancel_stale_orders', verbosity=0)

		stale.refresh_from_db()
		fresh.refresh_from_db()
		cod.refresh_from_db()
		self.assertEqual(stale.status, OrderStatus.CANCELLED)
		self.assertEqual(fresh.status, OrderStatus.PENDING)
		self.assertEqual(cod.status, OrderStatus.PENDING)


class PricingAndShippingTests(OrderFixturesMixin, TestCase):
	def test_promo_on_1000_subtotal_gives_900(self):
		PromoCode.objects.create(code='SAVE10', discount_percentage=Decimal('10'))
		engine = PricingEngine()

		discount, code = engine.apply_promo(Decimal('1000.00'), 'SAVE10')
		self.assertEqual(discount, Decimal('100'))
		self.assertEqual(code, 'SAVE10')
		self.assertEqual(engine.order_total(Decimal('1000.00'), discount), Decimal('900.00'))

		with self.assertRaises(InvalidPromoCode):
			engine.apply_promo(Decimal('1000.00'), 'MISSING')
		self.assertEqual(engine.apply_promo(Decimal('1000.00'), ''), (Decimal('0.00'), None))

	def test_product_discounts(self):
		engine = PricingEngine()
		flat = Product(seller=self.seller, name='Flat', base_price=Decimal('100.00'), discount=Decimal('30'), discount_type='FLAT')
		pct = Product(seller=self.seller, name='Pct', base_price=Decimal('100.00'), discount=Decimal('25'), discount_type='PERCENTAGE')

		self.assertEqual(engine.unit_price(LineItem(flat, None, 1)), Decimal('70.00'))
		self.assertEqual(engine.unit_price(LineItem(pct, None, 1)), Decimal('75.00'))
		self.assertEqual(engine.unit_price(LineItem(self.shirt, self.shirt_m, 1)), Decimal('800.00'))

	def test_fee_between_districts(self):
		calc = ShippingCalculator()
		self.assertEqual(calc.fee_between('Kathmandu', 'kathmandu'), Decimal('100.00'))
		self.assertEqual(calc.fee_between('Bhaktapur', 'Lalitpur'), Decimal('100.00'))
		self.assertEqual(calc.fee_between('Kaski', 'Kathmandu'), Decimal('200.00'))
		self.assertEqual(calc.fee_between('Kaski', 'Kaski'), Decimal('100.00'))

	def test_vendor_without_district_cannot_ship(self):
		User = get_user_model()
		nowhere = User.objects.create_user(username='nowhere_seller', email='n@example.com', password='12345678', user_type='seller')
		product = Product.objects.create(seller=nowhere, name='Mystery', base_price='10.00', stock=1)

		with self.assertRaises(MissingVendorAddress):
			ShippingCalculator().quote('Kathmandu', [LineItem(product, None, 1)])
