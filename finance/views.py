"""Inbound gateway webhooks."""

import logging

from rest_framework import permissions
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from orders.models import PaymentMethod
from .gateways import NpsGateway
from .reconciliation import PaymentReconciler

logger = logging.getLogger(__name__)


@api_view(['GET'])
@permission_classes([permissions.AllowAny])
def nps_notification(request):
    """NPS server-to-server notification.

    The signature is checked before any state is touched; redeliveries of the
    same notification are acknowledged without further changes.
    """
    params = request.query_params.dict()
    merchant_txn_id = params.get('MerchantTxnId')
    if not merchant_txn_id:
        raise ValidationError({'MerchantTxnId': ['Invalid or missing MerchantTxnId']})

    logger.info(f'NPS notification received for {merchant_txn_id}')
    NpsGateway().verify(params)
    result = PaymentReconciler().reconcile(merchant_txn_id, params.get('Status'), PaymentMethod.NPS, payload=params)
    return Response({'success': True, 'message': 'received', 'outcome': result.outcome, 'orderId': result.order.id})
