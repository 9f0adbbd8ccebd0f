"""Directory cache and nonce source."""
import logging
from typing import Optional

import josepy as jose

from acmelite import errors
from acmelite import messages
from acmelite import network

logger = logging.getLogger(__name__)


class Directory:
    """Lazily fetched ACME directory.

    The directory document is requested on first use and memoized until
    `clear_cache` or `refresh`. Endpoint URLs are always resolved through
    it.

    :ivar str url: Directory URL.

    """

    def __init__(self, net: network.ClientNetwork, url: str) -> None:
        self.net = net
        self.url = url
        self._directory: Optional[messages.Directory] = None

    def all(self) -> messages.Directory:
        """The (cached) directory document.

        :raises .AcmeError: if the server does not return one.

        """
        if self._directory is None:
            response = self.net.get(self.url)
            if not network.is_success(response):
                raise network.error_from_response(
                    response, errors.AcmeError, 'Could not fetch ACME directory')
            try:
                self._directory = messages.Directory.from_json(response.json())
            except (ValueError, TypeError, jose.DeserializationError) as error:
                raise errors.AcmeError(f'Invalid ACME directory: {error}',
                                       status_code=response.status_code)
        return self._directory

    def clear_cache(self) -> None:
        self._directory = None

    def refresh(self) -> messages.Directory:
        self.clear_cache()
        return self.all()

    def _resource(self, name: str) -> str:
        try:
            return self.all()[name]
        except KeyError as error:
            raise errors.AcmeError(f'ACME directory has no {name} URL') from error

    def new_nonce(self) -> str:
        return self._resource('newNonce')

    def new_account(self) -> str:
        return self._resource('newAccount')

    def new_order(self) -> str:
        return self._resource('newOrder')

    def revoke_cert(self) -> str:
        return self._resource('revokeCert')

    def key_change(self) -> str:
        return self._resource('keyChange')

    def renewal_info(self) -> Optional[str]:
        """ARI base URL, or ``None`` if the server does not support ARI."""
        return self.all().get('renewalInfo') or None

    def supports_ari(self) -> bool:
        return self.renewal_info() is not None

    def terms_of_service(self) -> Optional[str]:
        return self.all().meta.terms_of_service

    def external_account_required(self) -> bool:
        return bool(self.all().meta.external_account_required)

    def order_url(self, account_id: str, order_id: str) -> str:
        """URL of order ``order_id`` of account ``account_id``.

        Derived from the newOrder URL, following the Boulder layout
        ``.../new-order`` -> ``.../order/<account id>/<order id>``.

        """
        base = self.new_order().replace('new-order', 'order')
        return f'{base.rstrip("/")}/{account_id}/{order_id}'


class Nonce:
    """Source of fresh anti-replay nonces.

    Nonces are never cached: every signed request consumes the one
    fetched immediately before it.

    """

    def __init__(self, net: network.ClientNetwork, directory: Directory) -> None:
        self.net = net
        self.directory = directory

    def get_new(self) -> str:
        """Fetch a new nonce with a HEAD request to newNonce.

        :raises .MissingNonce: if the response carries no ``Replay-Nonce``.

        """
        response = self.net.head(self.directory.new_nonce())
        nonce = response.headers.get(network.ClientNetwork.REPLAY_NONCE_HEADER)
        if not nonce:
            raise errors.MissingNonce(response.headers)
        logger.debug('Storing nonce: %s', nonce)
        return nonce
