import requests
from flask import current_app

from exceptions import UpstreamError
from utils.helpers import format_minor_units
from utils.security import basic_auth_header


class YooKassaGateway:
    """
    Thin client for the YooKassa payments API.

    Stateless apart from its configuration: every call builds its own request,
    so one instance can serve all requests of an application. Network failures
    and non-2xx answers are raised as UpstreamError with the raw response body
    attached for logging; credentials never appear in error messages.
    """

    def __init__(self, shop_id, secret_key, api_url='https://api.yookassa.ru/v3', timeout=15, session=None):
        self.shop_id = shop_id
        self.secret_key = secret_key
        self.api_url = api_url.rstrip('/')
        self.timeout = timeout
        # A requests.Session keeps connections to the gateway alive between calls.
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config):
        """Builds a gateway from a Flask config mapping."""
        return cls(
            shop_id=config.get('YOOKASSA_SHOP_ID'),
            secret_key=config.get('YOOKASSA_SECRET_KEY'),
            api_url=config.get('YOOKASSA_API_URL', 'https://api.yookassa.ru/v3'),
            timeout=config.get('YOOKASSA_TIMEOUT', 15),
        )

    @property
    def is_configured(self):
        return bool(self.shop_id and self.secret_key)

    def auth_header(self):
        """Returns the HTTP Basic Authorization header value (shop id : secret key)."""
        return basic_auth_header(self.shop_id, self.secret_key)

    def create_payment(self, amount, currency, description, return_url, metadata, idempotency_key):
        """
        Creates a redirect-confirmation payment with automatic capture.

        Args:
            amount (int): Amount in minor units.
            currency (str): ISO currency code, e.g. 'RUB'.
            description (str): Shown to the payer on the gateway page.
            return_url (str): Where the gateway sends the payer after checkout.
            metadata (dict): Echoed back by the gateway in webhook notifications.
            idempotency_key (str): Sent as the Idempotence-Key header; the gateway returns the
                                   original payment for repeated requests with the same key.

        Returns:
            dict: The gateway's payment object (includes 'id' and 'confirmation.confirmation_url').

        Raises:
            UpstreamError: If the gateway is not configured, unreachable, or answers with non-2xx.
        """
        payment_data = {
            'amount': {'value': format_minor_units(amount), 'currency': currency},
            'capture': True,
            'confirmation': {'type': 'redirect', 'return_url': return_url},
            'description': description,
            'metadata': metadata,
        }
        return self._request('POST', '/payments', json=payment_data,
                             extra_headers={'Idempotence-Key': idempotency_key})

    def get_payment(self, payment_id):
        """
        Fetches the current state of a payment from the gateway.

        Raises:
            UpstreamError: On network errors or a non-2xx answer.
        """
        return self._request('GET', f'/payments/{payment_id}')

    def _request(self, method, path, json=None, extra_headers=None):
        if not self.is_configured:
            current_app.logger.critical("YooKassa credentials are not configured (YOOKASSA_SHOP_ID / YOOKASSA_SECRET_KEY).")
            raise UpstreamError('Payment provider not configured')

        headers = {
            'Authorization': self.auth_header(),
            'Content-Type': 'application/json',
        }
        if extra_headers:
            headers.update(extra_headers)

        url = f'{self.api_url}{path}'
        try:
            response = self.session.request(method, url, json=json, headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e: # Network errors, timeouts, DNS failures.
            current_app.logger.error(f"YooKassa {method} {path} failed: {e}")
            raise UpstreamError(f'Payment provider unreachable: {e}') from e

        if not response.ok:
            current_app.logger.error(f"YooKassa API error on {method} {path} (HTTP {response.status_code}): {response.text}")
            raise UpstreamError(
                f'Payment provider returned HTTP {response.status_code}',
                upstream_body=response.text,
                upstream_status=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e: # Body is not JSON.
            current_app.logger.error(f"YooKassa {method} {path} returned a non-JSON body: {response.text[:500]}")
            raise UpstreamError('Payment provider returned an invalid response', upstream_body=response.text) from e
