"""Order state machine: creation, lookup, finalization."""
import datetime
import logging
import time
from typing import Any
from typing import Dict
from typing import Iterable
from typing import List
from typing import Optional
from typing import Union

import josepy as jose
import requests

from acmelite import ari
from acmelite import crypto_util
from acmelite import errors
from acmelite import messages
from acmelite import network
from acmelite import session as session_mod
from acmelite import util
from acmelite.account import AccountResource

logger = logging.getLogger(__name__)


class OrderResource:
    """An order, as last reported by the server.

    Unlike the other resources, orders are mutable: `Orders.finalize`
    records the certificate URL on the order it was given.

    :ivar str url: Order URL; the primary identity of the order.
    :ivar acmelite.messages.Status status:
    :ivar tuple identifiers: `tuple` of `.messages.Identifier`
    :ivar tuple authorization_urls: `tuple` of `str`
    :ivar str finalize_url:
    :ivar str account_url: ``kid`` for requests about this order.
    :ivar datetime.datetime expires:
    :ivar str certificate_url: Set once the certificate is issued.
    :ivar bool finalized: Set by a successful `Orders.finalize`.
    :ivar str replaces: CertID of the certificate this order replaces.
    :ivar acmelite.messages.Problem error:

    """

    def __init__(self, url: str, status: Optional[messages.Status] = None,
                 identifiers: Iterable[messages.Identifier] = (),
                 authorization_urls: Iterable[str] = (),
                 finalize_url: Optional[str] = None,
                 account_url: Optional[str] = None,
                 expires: Optional[datetime.datetime] = None,
                 certificate_url: Optional[str] = None,
                 finalized: bool = False,
                 replaces: Optional[str] = None,
                 error: Optional[messages.Problem] = None) -> None:
        self.url = url
        self.status = status
        self.identifiers = tuple(identifiers)
        self.authorization_urls = tuple(authorization_urls)
        self.finalize_url = finalize_url
        self.account_url = account_url
        self.expires = expires
        self.certificate_url = certificate_url
        self.finalized = finalized
        self.replaces = replaces
        self.error = error

    @classmethod
    def from_body(cls, body: messages.Order, url: str,
                  account_url: Optional[str] = None) -> 'OrderResource':
        return cls(
            url=url,
            status=body.status,
            identifiers=body.identifiers or (),
            authorization_urls=body.authorizations or (),
            finalize_url=body.finalize,
            account_url=account_url,
            expires=body.expires,
            certificate_url=body.certificate,
            replaces=body.replaces,
            error=body.error,
        )

    @classmethod
    def from_response(cls, response: requests.Response, account_url: Optional[str],
                      requested_url: str) -> 'OrderResource':
        """Parse an order response.

        The order URL is the ``Location`` header if present, otherwise the
        URL that was requested (without its query string).

        """
        try:
            body = messages.Order.from_json(response.json())
        except (ValueError, jose.DeserializationError) as error:
            raise errors.OrderError(f'Invalid order response: {error}',
                                    status_code=response.status_code)
        url = response.headers.get('Location') or requested_url.split('?', 1)[0]
        return cls.from_body(body, url, account_url)

    @property
    def id(self) -> str:
        """Last path segment of the order URL."""
        return util.extract_id(self.url)

    @property
    def domains(self) -> List[str]:
        return [identifier.value for identifier in self.identifiers]

    def set_certificate_url(self, url: str) -> None:
        self.certificate_url = url
        self.finalized = True

    def is_pending(self) -> bool:
        return self.status == messages.STATUS_PENDING

    def is_ready(self) -> bool:
        return self.status == messages.STATUS_READY

    def is_processing(self) -> bool:
        return self.status == messages.STATUS_PROCESSING

    def is_valid(self) -> bool:
        return self.status == messages.STATUS_VALID

    def is_invalid(self) -> bool:
        return self.status == messages.STATUS_INVALID

    def is_finalized(self) -> bool:
        return self.finalized or self.is_valid()

    def is_ari_renewal(self) -> bool:
        return bool(self.replaces)

    def to_json(self) -> Dict[str, Any]:
        """Serialize for storage between runs."""
        body = messages.Order(
            identifiers=self.identifiers,
            status=self.status,
            authorizations=self.authorization_urls,
            finalize=self.finalize_url,
            expires=self.expires,
            certificate=self.certificate_url,
            replaces=self.replaces,
            error=self.error,
        )
        return {
            'url': self.url,
            'account_url': self.account_url,
            'finalized': self.finalized,
            'body': body.to_json(),
        }

    @classmethod
    def from_json(cls, jobj: Dict[str, Any]) -> 'OrderResource':
        order = cls.from_body(messages.Order.from_json(jobj['body']), jobj['url'],
                              jobj.get('account_url'))
        order.finalized = bool(jobj.get('finalized', False))
        return order

    def __repr__(self) -> str:
        return '{0}(url={1!r}, status={2!r}, finalized={3!r})'.format(
            self.__class__.__name__, self.url, self.status, self.finalized)


def _raise_for_order_response(response: requests.Response, message: str) -> None:
    if response.status_code < 400:
        return
    error_cls = errors.OrderNotFound if response.status_code == 404 else errors.OrderError
    raise network.error_from_response(response, error_cls, message)


class Orders:
    """newOrder endpoint and order resources.

    :ivar session.Session session:

    """

    def __init__(self, session: session_mod.Session) -> None:
        self.session = session

    def new(self, account: AccountResource, domains: Iterable[str],
            replaces_cert_id: Optional[str] = None) -> OrderResource:
        """Create an order for ``domains``.

        :param AccountResource account:
        :param domains: DNS names, at most one wildcard label each.
        :param str replaces_cert_id: ARI CertID of the certificate being
            renewed. Sent only when the server supports ARI.

        :raises .OrderError: for invalid wildcards, an invalid CertID or if
            the server refuses the order.

        """
        identifiers = []
        for domain in domains:
            if domain.count('*.') > 1:
                raise errors.OrderError(
                    f'Cannot create orders with multiple wildcards in one domain: {domain}')
            identifiers.append(messages.Identifier(typ=messages.IDENTIFIER_FQDN, value=domain))
        if not identifiers:
            raise errors.OrderError('At least one domain is required')

        kwargs: Dict[str, Any] = {'identifiers': tuple(identifiers)}
        if replaces_cert_id:
            if self.session.directory.supports_ari():
                if not ari.is_valid_cert_id(replaces_cert_id):
                    raise errors.OrderError(
                        f'Invalid certificate identifier for replaces: {replaces_cert_id}')
                kwargs['replaces'] = replaces_cert_id
                logger.info('Creating ARI renewal order replacing certificate %s',
                            replaces_cert_id)
            else:
                logger.debug('Server does not support ARI, not sending replaces')

        url = self.session.directory.new_order()
        response = self.session.post(url, messages.NewOrder(**kwargs), kid=account.url)
        if response.status_code != 201:
            raise network.error_from_response(response, errors.OrderError,
                                              'Creating new order failed')
        return OrderResource.from_response(response, account.url, url)

    def new_renewal(self, account: AccountResource, domains: Iterable[str],
                    certificate_pem: Union[bytes, str]) -> OrderResource:
        """Create an order replacing the certificate ``certificate_pem``."""
        return self.new(account, domains, ari.cert_id_from_certificate(certificate_pem))

    def new_renewal_from_bundle(self, account: AccountResource, domains: Iterable[str],
                                bundle: str) -> OrderResource:
        return self.new(account, domains, ari.cert_id_from_bundle(bundle))

    def new_renewal_from_file(self, account: AccountResource, domains: Iterable[str],
                              path: str) -> OrderResource:
        return self.new(account, domains, ari.cert_id_from_file(path))

    def get(self, account: AccountResource, order_id: str) -> OrderResource:
        """Fetch order ``order_id`` of ``account``.

        :raises .OrderNotFound: on 404.
        :raises .RateLimited: on 429, with ``retry_after`` set.
        :raises .OrderError: on any other failure.

        """
        url = self.session.directory.order_url(account.id, order_id)
        response = self.session.post_as_get(url, kid=account.url)
        _raise_for_order_response(response, f'Getting order {order_id} failed')
        return OrderResource.from_response(response, account.url, url)

    def refresh(self, order: OrderResource) -> OrderResource:
        """Fetch the current state of ``order``.

        The certificate URL and finalized flag already recorded on
        ``order`` are carried over.

        """
        response = self.session.post_as_get(order.url, kid=order.account_url)
        _raise_for_order_response(response, f'Refreshing order {order.id} failed')
        updated = OrderResource.from_response(response, order.account_url, order.url)
        updated.finalized = order.finalized or updated.finalized
        if updated.certificate_url is None:
            updated.certificate_url = order.certificate_url
        return updated

    def finalize(self, order: OrderResource, csr: Union[bytes, str]) -> bool:
        """Submit ``csr`` to finalize ``order``.

        Does not raise on failure: an order that is not ready yet is an
        expected state, and the caller is meant to poll and retry.

        :param OrderResource order: Updated in place on success.
        :param csr: PEM encoded certificate signing request.

        :returns: ``True`` if the server accepted the CSR.

        """
        if not order.is_ready():
            logger.error('Order status for %s is %s. Cannot finalize order.',
                         order.id, order.status)
            return False

        payload = messages.CertificateRequest(csr=crypto_util.csr_pem_to_der(csr))
        response = self.session.post(order.finalize_url, payload, kid=order.account_url)
        if response.status_code != 200:
            logger.error('Finalizing order %s failed (HTTP %d): %s', order.id,
                         response.status_code, network.problem_from_response(response))
            return False

        try:
            body = messages.Order.from_json(response.json())
        except (ValueError, jose.DeserializationError) as error:
            logger.error('Invalid finalize response for order %s: %s', order.id, error)
            return False
        if body.status is not None:
            order.status = body.status
        if body.certificate:
            order.set_certificate_url(body.certificate)
            if order.is_ari_renewal():
                logger.info('ARI renewal order %s finalized, replacing certificate %s',
                            order.id, order.replaces)
        return True

    def poll_finalization(self, order: OrderResource,
                          deadline: datetime.datetime,
                          interval: float = 1) -> OrderResource:
        """Poll ``order`` until its certificate is issued.

        :param OrderResource order: A finalized (or processing) order.
        :param datetime.datetime deadline: When to give up.
        :param float interval: Seconds between polls.

        :raises .IssuanceError: if the order becomes invalid.
        :raises .TimeoutError: if ``deadline`` passes first.

        :returns: The valid order, with its certificate URL.

        """
        while datetime.datetime.now() < deadline:
            time.sleep(interval)
            updated = self.refresh(order)
            if updated.is_invalid():
                raise errors.IssuanceError(updated.error)
            if updated.is_valid() and updated.certificate_url:
                updated.set_certificate_url(updated.certificate_url)
                return updated
        raise errors.TimeoutError()
