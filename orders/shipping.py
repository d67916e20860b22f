"""Shipping fees charged per distinct vendor district."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List

from accounts.models import VendorProfile
from core.exceptions import MissingVendorAddress

METRO_DISTRICTS = frozenset({'kathmandu', 'lalitpur', 'bhaktapur'})
LOCAL_FEE = Decimal('100.00')
REMOTE_FEE = Decimal('200.00')


@dataclass
class ShippingQuote:
    fee: Decimal
    vendor_ids: List[int] = field(default_factory=list)
    districts: List[str] = field(default_factory=list)


def _norm(name) -> str:
    return str(name or '').strip().lower()


class ShippingCalculator:
    def __init__(self, vendors=None, local_fee=LOCAL_FEE, remote_fee=REMOTE_FEE, metro=METRO_DISTRICTS):
        self.vendors = vendors if vendors is not None else VendorProfile.objects
        self.local_fee = local_fee
        self.remote_fee = remote_fee
        self.metro = frozenset(_norm(d) for d in metro)

    def fee_between(self, vendor_district: str, destination: str) -> Decimal:
        a, b = _norm(vendor_district), _norm(destination)
        if a == b or (a in self.metro and b in self.metro):
            return self.local_fee
        return self.remote_fee

    def quote(self, destination: str, items: Iterable) -> ShippingQuote:
        """Sum one fee per distinct vendor district supplying the items."""
        vendor_ids = []
        for item in items:
            seller_id = item.product.seller_id
            if seller_id not in vendor_ids:
                vendor_ids.append(seller_id)

        profiles = {
            p.user_id: p
            for p in self.vendors.filter(user_id__in=vendor_ids).select_related('district')
        }

        districts = []
        for seller_id in vendor_ids:
            profile = profiles.get(seller_id)
            if profile is None or profile.district is None:
                raise MissingVendorAddress()
            name = profile.district.name
            if _norm(name) not in {_norm(d) for d in districts}:
                districts.append(name)

        fee = sum((self.fee_between(d, destination) for d in districts), Decimal('0.00'))
        return ShippingQuote(fee=fee, vendor_ids=vendor_ids, districts=districts)
