"""Accounts app tests."""

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from accounts.models import Address, District, VendorProfile


@override_settings(ALLOWED_HOSTS=['testserver', 'localhost', '127.0.0.1'])
class RegistrationAndLoginTests(TestCase):
	"""Registration for both roles and vendor-gated login."""

	@classmethod
	def setUpTestData(cls):
		cls.kathmandu = District.objects.create(name='Kathmandu')

	def setUp(self):
		self.client = APIClient()

	def register(self, **overrides):
		payload = {
			'username': 'new_customer',
			'password': 'strongpass1',
			'email': 'New_Customer@Example.com',
			'user_type': 'customer',
			'phone_number': '9841234567',
		}
		payload.update(overrides)
		return self.client.post('/api/accounts/register/', payload, format='json')

	def test_customer_registration_normalizes_phone_and_email(self):
		res = self.register()
		self.assertEqual(res.status_code, 201, res.content)
		self.assertNotIn('password', res.data)

		user = get_user_model().objects.get(username='new_customer')
		self.assertEqual(user.email, 'new_customer@example.com')
		self.assertEqual(user.phone_number, '+9779841234567')
		self.assertTrue(user.check_password('strongpass1'))

	def test_registration_rejects_bad_phone_and_duplicate_email(self):
		res = self.register(phone_number='12')
		self.assertEqual(res.status_code, 400)
		self.assertIn('phone_number', res.data['errors'])

		self.assertEqual(self.register().status_code, 201)
		res = self.register(username='another_one')
		self.assertEqual(res.status_code, 400)
		self.assertIn('email', res.data['errors'])

	def test_seller_registration_requires_store_and_known_district(self):
		res = self.register(username='shop_owner', email='shop@example.com', user_type='seller', store_name='Shop', district='Atlantis')
		self.assertEqual(res.status_code, 400)
		self.assertIn('district', res.data['errors'])

		res = self.register(username='shop_owner', email='shop@example.com', user_type='seller', store_name='Shop', district='kathmandu')
		self.assertEqual(res.status_code, 201, res.content)
		profile = VendorProfile.objects.get(user__username='shop_owner')
		self.assertEqual(profile.district, self.kathmandu)
		self.assertFalse(profile.can_login)

	def test_vendor_login_waits_for_approval_and_verification(self):
		self.register(username='shop_owner', email='shop@example.com', user_type='seller', store_name='Shop', district='Kathmandu')
		credentials = {'username': 'shop_owner', 'password': 'strongpass1'}

		res = self.client.post('/api/accounts/login/', credentials, format='json')
		self.assertEqual(res.status_code, 403)
		self.assertFalse(res.data['success'])

		VendorProfile.objects.filter(user__username='shop_owner').update(is_approved=True)
		self.assertEqual(self.client.post('/api/accounts/login/', credentials, format='json').status_code, 403)

		VendorProfile.objects.filter(user__username='shop_owner').update(is_verified=True)
		res = self.client.post('/api/accounts/login/', credentials, format='json')
		self.assertEqual(res.status_code, 200, res.content)
		self.assertIn('access', res.data)
		self.assertEqual(res.data['user_type'], 'seller')

	def test_customer_login_returns_tokens(self):
		self.register()
		res = self.client.post('/api/accounts/login/', {'username': 'new_customer', 'password': 'strongpass1'}, format='json')
		self.assertEqual(res.status_code, 200)
		self.assertIn('refresh', res.data)
		self.assertEqual(res.data['user_type'], 'customer')


@override_settings(ALLOWED_HOSTS=['testserver', 'localhost', '127.0.0.1'])
class ProfileTests(TestCase):
	@classmethod
	def setUpTestData(cls):
		District.objects.create(name='Lalitpur')
		cls.kaski = District.objects.create(name='Kaski')
		User = get_user_model()
		cls.customer = User.objects.create_user(
			username='profile_customer',
			email='profile_customer@example.com',
			password='12345678',
			user_type='customer',
		)
		cls.seller = User.objects.create_user(
			username='profile_seller',
			email='profile_seller@example.com',
			password='12345678',
			user_type='seller',
		)
		VendorProfile.objects.create(user=cls.seller, store_name='Old Name')

	def setUp(self):
		self.client = APIClient()

	def test_address_is_created_then_updated_in_place(self):
		self.client.force_authenticate(user=self.customer)
		self.assertEqual(self.client.get('/api/accounts/profile/address/').status_code, 404)

		payload = {'district': 'lalitpur', 'city': 'Patan', 'street_address': 'Pulchowk'}
		res = self.client.put('/api/accounts/profile/address/', payload, format='json')
		self.assertEqual(res.status_code, 200, res.content)
		self.assertEqual(res.data['district'], 'Lalitpur')
		first_id = res.data['id']

		payload['city'] = 'Jawalakhel'
		res = self.client.put('/api/accounts/profile/address/', payload, format='json')
		self.assertEqual(res.data['id'], first_id)
		self.assertEqual(Address.objects.filter(user=self.customer).count(), 1)
		self.assertEqual(Address.objects.get(user=self.customer).city, 'Jawalakhel')

		res = self.client.put('/api/accounts/profile/address/', dict(payload, district='Nowhere'), format='json')
		self.assertEqual(res.status_code, 400)

	def test_seller_updates_store_details_through_me(self):
		self.client.force_authenticate(user=self.seller)
		res = self.client.patch('/api/accounts/profile/me/', {'store_name': 'New Name', 'district': 'Kaski'}, format='json')
		self.assertEqual(res.status_code, 200, res.content)
		self.assertEqual(res.data['vendor_profile']['store_name'], 'New Name')
		self.assertEqual(res.data['vendor_profile']['district'], 'Kaski')

		profile = VendorProfile.objects.get(user=self.seller)
		self.assertEqual(profile.district, self.kaski)
		self.assertFalse(profile.is_approved)

	def test_me_rejects_invalid_phone(self):
		self.client.force_authenticate(user=self.customer)
		res = self.client.patch('/api/accounts/profile/me/', {'phone_number': 'abc'}, format='json')
		self.assertEqual(res.status_code, 400)

	def test_districts_are_public_and_seedable(self):
		call_command('seed_districts', verbosity=0)
		call_command('seed_districts', verbosity=0)
		self.assertEqual(District.objects.count(), 77)

		res = self.client.get('/api/accounts/districts/')
		self.assertEqual(res.status_code, 200)
		self.assertIn('Kathmandu', [d['name'] for d in res.data])
