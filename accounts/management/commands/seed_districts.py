"""Seed the District table with Nepal's 77 districts.

Safe to run repeatedly; existing names are left untouched.

Usage:
  python manage.py seed_districts
"""

from django.core.management.base import BaseCommand
from django.db import transaction

from accounts.models import District

DISTRICTS = [
    # Koshi
    'Bhojpur', 'Dhankuta', 'Ilam', 'Jhapa', 'Khotang', 'Morang', 'Okhaldhunga', 'Panchthar',
    'Sankhuwasabha', 'Solukhumbu', 'Sunsari', 'Taplejung', 'Terhathum', 'Udayapur',
    # Madhesh
    'Bara', 'Dhanusha', 'Mahottari', 'Parsa', 'Rautahat', 'Saptari', 'Sarlahi', 'Siraha',
    # Bagmati
    'Bhaktapur', 'Chitwan', 'Dhading', 'Dolakha', 'Kathmandu', 'Kavrepalanchok', 'Lalitpur',
    'Makwanpur', 'Nuwakot', 'Ramechhap', 'Rasuwa', 'Sindhuli', 'Sindhupalchok',
    # Gandaki
    'Baglung', 'Gorkha', 'Kaski', 'Lamjung', 'Manang', 'Mustang', 'Myagdi', 'Nawalpur',
    'Parbat', 'Syangja', 'Tanahun',
    # Lumbini
    'Arghakhanchi', 'Banke', 'Bardiya', 'Dang', 'Eastern Rukum', 'Gulmi', 'Kapilvastu',
    'Parasi', 'Palpa', 'Pyuthan', 'Rolpa', 'Rupandehi',
    # Karnali
    'Dailekh', 'Dolpa', 'Humla', 'Jajarkot', 'Jumla', 'Kalikot', 'Mugu', 'Salyan', 'Surkhet',
    'Western Rukum',
    # Sudurpashchim
    'Achham', 'Baitadi', 'Bajhang', 'Bajura', 'Dadeldhura', 'Darchula', 'Doti', 'Kailali',
    'Kanchanpur',
]


class Command(BaseCommand):
    help = 'Create the known shipping districts.'

    def handle(self, *args, **options):
        created = 0
        with transaction.atomic():
            for name in DISTRICTS:
                _, was_created = District.objects.get_or_create(name=name)
                created += int(was_created)
        self.stdout.write(self.style.SUCCESS(f'Districts ready: {created} created, {len(DISTRICTS) - created} already present.'))
