"""
Payment gateway adapters.

Only a simulated gateway ships with the platform. Its success rate comes from
PAYMENT_GATEWAY_SUCCESS_RATE so that tests can pin it to 1.0 or 0.0.
"""
import hashlib
import hmac
import logging
import os
import random
import time

from django.conf import settings

from tenderhub.core.utils import random_code

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """Raised when a gateway cannot be reached or answers garbage"""


def gateway_response(success, transaction_id=None, message='', **data):
    return {
        'success': success,
        'transaction_id': transaction_id,
        'message': message,
        'data': data,
    }


class SimulatedGateway:
    name = 'simulated'

    def __init__(self, success_rate=None, rng=None):
        if success_rate is None:
            success_rate = getattr(
                settings, 'PAYMENT_GATEWAY_SUCCESS_RATE', os.getenv('PAYMENT_GATEWAY_SUCCESS_RATE', 0.9)
            )
        self.success_rate = min(max(float(success_rate), 0.0), 1.0)
        self.rng = rng or random.Random()

    def _succeeds(self):
        return self.rng.random() < self.success_rate

    def charge(self, payment):
        if self._succeeds():
            transaction_id = f"TXN-{int(time.time() * 1000)}-{random_code(9).lower()}"
            return gateway_response(
                True, transaction_id, 'Payment processed successfully',
                gateway=self.name, method=payment.method, amount=str(payment.amount), currency=payment.currency,
            )
        return gateway_response(False, message='Payment declined by gateway', gateway=self.name)

    def refund(self, payment, amount):
        return gateway_response(
            True, f"REF-{int(time.time() * 1000)}-{random_code(9).lower()}", 'Refund processed successfully',
            gateway=self.name, original_transaction_id=payment.gateway_transaction_id, amount=str(amount),
        )

    def verify(self, payment):
        """Ask the gateway whether an in-flight payment went through"""
        if self._succeeds():
            transaction_id = payment.gateway_transaction_id or f"TXN-{int(time.time() * 1000)}-{random_code(9).lower()}"
            return gateway_response(True, transaction_id, 'Payment confirmed by gateway', gateway=self.name)
        return gateway_response(False, message='Payment not confirmed by gateway', gateway=self.name)


GATEWAYS = {
    SimulatedGateway.name: SimulatedGateway,
}


def get_gateway(name=None):
    name = name or getattr(settings, 'PAYMENT_GATEWAY_NAME', os.getenv('PAYMENT_GATEWAY_NAME', 'simulated'))
    try:
        return GATEWAYS[name]()
    except KeyError:
        raise GatewayError(f'Payment gateway {name} not configured')


def webhook_signature(body, secret=None):
    if secret is None:
        secret = getattr(settings, 'PAYMENT_WEBHOOK_SECRET', os.getenv('PAYMENT_WEBHOOK_SECRET', ''))
    if isinstance(body, str):
        body = body.encode('utf-8')
    return hmac.new(secret.encode('utf-8'), body, hashlib.sha256).hexdigest()


def verify_webhook_signature(body, signature, secret=None):
    if not signature:
        return False
    return hmac.compare_digest(webhook_signature(body, secret), signature)
