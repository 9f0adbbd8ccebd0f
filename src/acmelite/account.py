"""Account lifecycle: creation and lookup of the ACME account."""
import logging
from typing import Any
from typing import Dict
from typing import Iterable
from typing import Optional

import josepy as jose
import requests

from acmelite import errors
from acmelite import jws
from acmelite import messages
from acmelite import network
from acmelite import session as session_mod
from acmelite import util

logger = logging.getLogger(__name__)


class AccountResource(messages.ResourceWithURI):
    """Account as known by the server.

    :ivar str uri: Account URL, the ``kid`` of later requests.
    :ivar acmelite.messages.Registration body:

    """
    body: messages.Registration = jose.field('body', decoder=messages.Registration.from_json)

    @classmethod
    def from_response(cls, response: requests.Response) -> 'AccountResource':
        try:
            body = messages.Registration.from_json(response.json())
        except (ValueError, jose.DeserializationError) as error:
            raise errors.AccountError(f'Invalid account response: {error}',
                                      status_code=response.status_code)
        return cls(uri=response.headers['Location'], body=body)

    @property
    def url(self) -> str:
        return self.uri

    @property
    def id(self) -> str:
        """Last path segment of the account URL."""
        return util.extract_id(self.uri)

    @property
    def status(self) -> Optional[messages.Status]:
        return self.body.status  # pylint: disable=no-member


class Accounts:
    """newAccount endpoint.

    :ivar session.Session session:

    """

    def __init__(self, session: session_mod.Session) -> None:
        self.session = session

    def exists(self) -> bool:
        """Is a local account key loaded?"""
        return self.session.account_key is not None

    def create(self, eab_kid: Optional[str] = None, eab_hmac_key: Optional[str] = None,
               contacts: Iterable[str] = ()) -> AccountResource:
        """Register (or find) the account of the loaded key.

        Terms of service are agreed to.

        :param str eab_kid: External Account Binding key identifier.
        :param str eab_hmac_key: base64url External Account Binding HMAC key.
        :param contacts: Contact URLs, e.g. ``mailto:admin@example.com``.

        :raises .AccountError: if the EAB credentials are incomplete or
            invalid, or if the server refuses the account.

        """
        key = self.session.require_key()
        url = self.session.directory.new_account()

        kwargs: Dict[str, Any] = {'terms_of_service_agreed': True}
        contact = tuple(contacts)
        if contact:
            kwargs['contact'] = contact
        if eab_kid or eab_hmac_key:
            if not (eab_kid and eab_hmac_key):
                raise errors.AccountError(
                    'External account binding requires both a key identifier and an HMAC key')
            kwargs['external_account_binding'] = jws.external_account_binding(
                key.private_key, eab_kid, eab_hmac_key, url)
        elif self.session.directory.external_account_required():
            logger.warning('The ACME server requires external account binding, '
                           'but no credentials were provided.')

        # newAccount must be signed with the JWK, never a kid.
        response = self.session.post(url, messages.NewRegistration(**kwargs))
        if not network.is_success(response) or 'Location' not in response.headers:
            raise network.error_from_response(response, errors.AccountError,
                                              'Creating account failed')
        account = AccountResource.from_response(response)
        self.session.account_url = account.uri
        logger.debug('Account %s created or found', account.uri)
        return account

    def get(self) -> AccountResource:
        """Look up the existing account of the loaded key.

        :raises .AccountError: if there is no local key or no such
            account on the server.

        """
        if not self.exists():
            raise errors.AccountError('No local account key; create the account first')
        response = self.session.post(self.session.directory.new_account(),
                                     messages.NewRegistration(only_return_existing=True))
        if response.status_code != 200 or 'Location' not in response.headers:
            raise network.error_from_response(response, errors.AccountError,
                                              'Getting account failed')
        account = AccountResource.from_response(response)
        self.session.account_url = account.uri
        return account
