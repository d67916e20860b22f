"""Cart app tests."""

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from cart.models import ShoppingCart, ShoppingCartItem, WishlistItem
from products.models import ProductCategory, Product, ProductVariant


@override_settings(ALLOWED_HOSTS=['testserver', 'localhost', '127.0.0.1'])
class CartStockValidationTests(TestCase):
	@classmethod
	def setUpTestData(cls):
		User = get_user_model()
		cls.customer = User.objects.create_user(
			username='cart_customer',
			email='cart_customer@example.com',
			password='12345678',
			user_type='customer',
		)
		cls.seller = User.objects.create_user(
			username='cart_seller',
			email='cart_seller@example.com',
			password='12345678',
			user_type='seller',
		)

		cls.category = ProductCategory.objects.create(category_name='TestCat')
		cls.product = Product.objects.create(
			seller=cls.seller,
			category=cls.category,
			name='CartProduct',
			description='Test',
			base_price=Decimal('200.00'),
			discount=Decimal('10'),
			stock=2,
		)
		cls.shirt = Product.objects.create(seller=cls.seller, name='Shirt', base_price=Decimal('900.00'))
		cls.shirt_l = ProductVariant.objects.create(product=cls.shirt, sku='SHIRT-L', name='L', price=Decimal('850.00'), stock=3)

	def setUp(self):
		self.client = APIClient()
		self.client.force_authenticate(user=self.customer)

	def test_add_item_snapshots_discounted_price(self):
		res = self.client.post('/api/cart/cart-items/', {'product': self.product.id, 'quantity': 1}, format='json')
		self.assertEqual(res.status_code, 201, res.content)
		self.assertEqual(res.data['price'], '180.00')
		self.assertEqual(res.data['name'], 'CartProduct')

		res = self.client.get('/api/cart/')
		self.assertEqual(res.status_code, 200)
		self.assertEqual(len(res.data['items']), 1)
		self.assertEqual(Decimal(res.data['total']), Decimal('180.00'))

	def test_add_item_more_than_stock_is_rejected(self):
		res = self.client.post('/api/cart/cart-items/', {'product': self.product.id, 'quantity': 3}, format='json')
		self.assertEqual(res.status_code, 400)
		self.assertIn('quantity', res.data['errors'])
		self.assertFalse(ShoppingCartItem.objects.exists())

	def test_adding_same_item_twice_merges_quantity_within_stock(self):
		res = self.client.post('/api/cart/cart-items/', {'product': self.product.id, 'quantity': 1}, format='json')
		self.assertEqual(res.status_code, 201)
		res = self.client.post('/api/cart/cart-items/', {'product': self.product.id, 'quantity': 1}, format='json')
		self.assertEqual(res.status_code, 200)
		self.assertEqual(res.data['quantity'], 2)

		res = self.client.post('/api/cart/cart-items/', {'product': self.product.id, 'quantity': 1}, format='json')
		self.assertEqual(res.status_code, 400)
		self.assertEqual(ShoppingCartItem.objects.get().qty, 2)

	def test_variant_required_for_product_with_variants(self):
		res = self.client.post('/api/cart/cart-items/', {'product': self.shirt.id, 'quantity': 1}, format='json')
		self.assertEqual(res.status_code, 400)

		res = self.client.post(
			'/api/cart/cart-items/',
			{'product': self.shirt.id, 'variant': self.shirt_l.id, 'quantity': 1},
			format='json',
		)
		self.assertEqual(res.status_code, 201, res.content)
		self.assertEqual(res.data['price'], '850.00')
		self.assertEqual(res.data['name'], 'Shirt - L')
		self.assertEqual(res.data['stock'], 3)

	def test_update_quantity_validates_stock_and_recalculates_total(self):
		res = self.client.post('/api/cart/cart-items/', {'product': self.product.id, 'quantity': 1}, format='json')
		item_id = res.data['id']

		res = self.client.patch(f'/api/cart/cart-items/{item_id}/', {'quantity': 5}, format='json')
		self.assertEqual(res.status_code, 400)

		res = self.client.patch(f'/api/cart/cart-items/{item_id}/', {'quantity': 2}, format='json')
		self.assertEqual(res.status_code, 200, res.content)
		self.assertEqual(ShoppingCart.objects.get(user=self.customer).total, Decimal('360.00'))

		res = self.client.patch(f'/api/cart/cart-items/{item_id}/', {'product': self.shirt.id}, format='json')
		self.assertEqual(res.status_code, 400)

	def test_remove_item_recalculates_total(self):
		res = self.client.post('/api/cart/cart-items/', {'product': self.product.id, 'quantity': 2}, format='json')
		res = self.client.delete(f"/api/cart/cart-items/{res.data['id']}/")
		self.assertEqual(res.status_code, 204)
		self.assertEqual(ShoppingCart.objects.get(user=self.customer).total, Decimal('0.00'))

	def test_sellers_cannot_use_the_cart(self):
		self.client.force_authenticate(user=self.seller)
		self.assertEqual(self.client.get('/api/cart/').status_code, 403)


@override_settings(ALLOWED_HOSTS=['testserver', 'localhost', '127.0.0.1'])
class WishlistTests(TestCase):
	@classmethod
	def setUpTestData(cls):
		User = get_user_model()
		cls.customer = User.objects.create_user(
			username='wish_customer',
			email='wish_customer@example.com',
			password='12345678',
			user_type='customer',
		)
		cls.seller = User.objects.create_user(
			username='wish_seller',
			email='wish_seller@example.com',
			password='12345678',
			user_type='seller',
		)
		cls.product = Product.objects.create(seller=cls.seller, name='Lamp', base_price=Decimal('40.00'), stock=0)

	def setUp(self):
		self.client = APIClient()
		self.client.force_authenticate(user=self.customer)

	def test_duplicate_wishlist_item_conflicts(self):
		res = self.client.post('/api/wishlist/items/', {'product': self.product.id}, format='json')
		self.assertEqual(res.status_code, 201, res.content)
		self.assertEqual(res.data['status'], 'OUT_OF_STOCK')

		res = self.client.post('/api/wishlist/items/', {'product': self.product.id}, format='json')
		self.assertEqual(res.status_code, 409)
		self.assertFalse(res.data['success'])
		self.assertEqual(WishlistItem.objects.count(), 1)

	def test_list_and_remove(self):
		res = self.client.post('/api/wishlist/items/', {'product': self.product.id}, format='json')
		item_id = res.data['id']

		res = self.client.get('/api/wishlist/')
		self.assertEqual(res.status_code, 200)
		self.assertEqual([i['product_name'] for i in res.data['items']], ['Lamp'])

		res = self.client.delete(f'/api/wishlist/items/{item_id}/')
		self.assertEqual(res.status_code, 204)
		self.assertFalse(WishlistItem.objects.exists())
