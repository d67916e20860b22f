"""Products app tests."""

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from cart.models import ShoppingCart, ShoppingCartItem
from core.exceptions import InsufficientStock
from products.inventory import InventoryLedger, LineItem, StockRef
from products.models import InventoryStatus, Product, ProductVariant, inventory_status_for


@override_settings(ALLOWED_HOSTS=['testserver', 'localhost', '127.0.0.1'])
class ProductApiTests(TestCase):
	@classmethod
	def setUpTestData(cls):
		User = get_user_model()
		cls.seller = User.objects.create_user(username='p_seller', email='p_seller@example.com', password='12345678', user_type='seller')
		cls.other_seller = User.objects.create_user(username='p_other', email='p_other@example.com', password='12345678', user_type='seller')
		cls.customer = User.objects.create_user(username='p_customer', email='p_customer@example.com', password='12345678', user_type='customer')

		cls.published = Product.objects.create(seller=cls.seller, name='Kettle', base_price=Decimal('1000.00'), discount=Decimal('150'), discount_type='FLAT', stock=20)
		cls.hidden = Product.objects.create(seller=cls.seller, name='Draft', base_price=Decimal('10.00'), is_published=False)

	def setUp(self):
		self.client = APIClient()

	def test_public_listing_shows_published_products_with_final_price(self):
		res = self.client.get('/api/products/')
		self.assertEqual(res.status_code, 200)
		names = [p['name'] for p in res.data['results']]
		self.assertEqual(names, ['Kettle'])
		self.assertEqual(res.data['results'][0]['final_price'], '850.00')
		self.assertEqual(res.data['results'][0]['status'], InventoryStatus.AVAILABLE)

	def test_seller_creates_product_owned_by_them(self):
		self.client.force_authenticate(user=self.seller)
		payload = {'name': 'Mug', 'base_price': '250.00', 'stock': 3, 'seller': self.other_seller.id, 'status': 'AVAILABLE'}
		res = self.client.post('/api/products/', payload, format='json')
		self.assertEqual(res.status_code, 201, res.content)

		product = Product.objects.get(pk=res.data['id'])
		self.assertEqual(product.seller, self.seller)
		self.assertEqual(product.status, InventoryStatus.LOW_STOCK)

	def test_discount_validation(self):
		self.client.force_authenticate(user=self.seller)
		res = self.client.post('/api/products/', {'name': 'Bad', 'base_price': '10.00', 'discount': '120'}, format='json')
		self.assertEqual(res.status_code, 400)
		res = self.client.post('/api/products/', {'name': 'Bad', 'base_price': '10.00', 'discount': '-1', 'discount_type': 'FLAT'}, format='json')
		self.assertEqual(res.status_code, 400)

	def test_customers_cannot_create_and_sellers_cannot_edit_others(self):
		self.client.force_authenticate(user=self.customer)
		self.assertEqual(self.client.post('/api/products/', {'name': 'X', 'base_price': '1.00'}, format='json').status_code, 403)

		self.client.force_authenticate(user=self.other_seller)
		res = self.client.patch(f'/api/products/{self.published.id}/', {'name': 'Stolen'}, format='json')
		self.assertEqual(res.status_code, 404)

	def test_variant_status_follows_stock_and_ownership_is_enforced(self):
		self.client.force_authenticate(user=self.seller)
		res = self.client.post('/api/product-variants/', {'product': self.published.id, 'sku': 'K-1', 'price': '900.00', 'stock': 0}, format='json')
		self.assertEqual(res.status_code, 201, res.content)
		self.assertEqual(res.data['status'], InventoryStatus.OUT_OF_STOCK)

		res = self.client.patch(f"/api/product-variants/{res.data['id']}/", {'stock': 7}, format='json')
		self.assertEqual(res.status_code, 200)
		self.assertEqual(res.data['status'], InventoryStatus.AVAILABLE)

		self.client.force_authenticate(user=self.other_seller)
		res = self.client.post('/api/product-variants/', {'product': self.published.id, 'sku': 'K-2', 'price': '1.00', 'stock': 1}, format='json')
		self.assertEqual(res.status_code, 403)


class InventoryLedgerTests(TestCase):
	@classmethod
	def setUpTestData(cls):
		User = get_user_model()
		cls.seller = User.objects.create_user(username='i_seller', email='i_seller@example.com', password='12345678', user_type='seller')
		cls.buyer = User.objects.create_user(username='i_buyer', email='i_buyer@example.com', password='12345678')
		cls.other = User.objects.create_user(username='i_other', email='i_other@example.com', password='12345678')
		cls.product = Product.objects.create(seller=cls.seller, name='Pen', base_price=Decimal('5.00'), stock=3)
		cls.book = Product.objects.create(seller=cls.seller, name='Book', base_price=Decimal('20.00'))
		cls.hardcover = ProductVariant.objects.create(product=cls.book, sku='BOOK-HC', price=Decimal('30.00'), stock=2)

	def test_status_thresholds(self):
		self.assertEqual(inventory_status_for(0), InventoryStatus.OUT_OF_STOCK)
		self.assertEqual(inventory_status_for(4), InventoryStatus.LOW_STOCK)
		self.assertEqual(inventory_status_for(5), InventoryStatus.AVAILABLE)

	def test_deduct_is_all_or_nothing(self):
		ledger = InventoryLedger()
		items = [LineItem(self.product, None, 1), LineItem(self.book, self.hardcover, 3)]

		with self.assertRaises(InsufficientStock):
			ledger.check_availability(items)
		with self.assertRaises(InsufficientStock):
			ledger.deduct(items)

		self.product.refresh_from_db()
		self.hardcover.refresh_from_db()
		self.assertEqual(self.product.stock, 3)
		self.assertEqual(self.hardcover.stock, 2)

	def test_deduct_and_restock(self):
		ledger = InventoryLedger()
		items = [LineItem(self.product, None, 3), LineItem(self.book, self.hardcover, 1)]

		sold_out = ledger.deduct(items)
		self.assertEqual(sold_out, [StockRef('product', self.product.pk)])
		self.product.refresh_from_db()
		self.hardcover.refresh_from_db()
		self.assertEqual(self.product.stock, 0)
		self.assertEqual(self.product.status, InventoryStatus.OUT_OF_STOCK)
		self.assertEqual(self.hardcover.status, InventoryStatus.LOW_STOCK)

		ledger.restock(items)
		self.product.refresh_from_db()
		self.assertEqual(self.product.stock, 3)

	def test_evict_skips_the_buyer(self):
		for user in (self.buyer, self.other):
			cart = ShoppingCart.objects.create(user=user, total=Decimal('30.00'))
			ShoppingCartItem.objects.create(cart=cart, product=self.book, variant=self.hardcover, qty=1, price=Decimal('30.00'), name='Book')

		evicted = InventoryLedger().evict_from_carts([StockRef('variant', self.hardcover.pk)], exclude_user_id=self.buyer.id)
		self.assertEqual(evicted, 1)
		self.assertTrue(ShoppingCartItem.objects.filter(cart__user=self.buyer).exists())
		self.assertFalse(ShoppingCartItem.objects.filter(cart__user=self.other).exists())
		self.assertEqual(ShoppingCart.objects.get(user=self.other).total, Decimal('0.00'))
