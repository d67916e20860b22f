"""Find-or-create/update of a customer's single shipping address."""

import logging

from .models import Address

logger = logging.getLogger(__name__)

ADDRESS_FIELDS = ('province', 'district', 'city', 'street_address', 'landmark')


class AddressResolver:
    """Keep exactly one authoritative address row per user.

    The latest shipping address wins: an existing row is mutated in place
    when any field differs, never duplicated.
    """

    def __init__(self, addresses=None):
        self.addresses = addresses if addresses is not None else Address.objects

    def resolve(self, user, requested: dict) -> Address:
        wanted = {f: requested.get(f) or None for f in ADDRESS_FIELDS}

        address = self.addresses.filter(user=user).first()
        if address is None:
            address = self.addresses.create(user=user, **wanted)
            logger.info(f'Created shipping address {address.id} for user {user.id}')
            return address

        changed = [f for f in ADDRESS_FIELDS if getattr(address, f) != wanted[f]]
        if changed:
            for field in changed:
                setattr(address, field, wanted[field])
            address.save(update_fields=changed + ['updated_at'])
            logger.info(f'Updated shipping address {address.id} for user {user.id}: {", ".join(changed)}')
        return address
