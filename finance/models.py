"""Database models for the payment transaction audit trail."""

from django.db import models
from orders.models import Order, PaymentMethod


class Transaction(models.Model):
    """One gateway event: a payment initiation or an inbound callback."""

    KIND_INITIATE = 'INITIATE'
    KIND_CALLBACK = 'CALLBACK'
    KIND_CHOICES = (
        (KIND_INITIATE, 'Initiate'),
        (KIND_CALLBACK, 'Callback'),
    )

    order = models.ForeignKey(Order, on_delete=models.SET_NULL, null=True, blank=True, related_name='transactions')
    gateway = models.CharField(max_length=20, choices=PaymentMethod.choices)
    kind = models.CharField(max_length=10, choices=KIND_CHOICES, default=KIND_CALLBACK)
    merchant_txn_id = models.CharField(max_length=100, blank=True, default='', db_index=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    status = models.CharField(max_length=50, blank=True, default='')
    outcome = models.CharField(max_length=20, blank=True, default='')
    payload = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.gateway} {self.kind} {self.merchant_txn_id or '-'}"
