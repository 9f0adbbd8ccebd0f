"""ACME client facade."""
import logging
from typing import Optional

from acmelite import account
from acmelite import ari
from acmelite import authorization
from acmelite import certificate
from acmelite import constants
from acmelite import directory
from acmelite import keys
from acmelite import network
from acmelite import order
from acmelite import renewal
from acmelite import session

logger = logging.getLogger(__name__)


class AcmeClient:
    """Entry point wiring every endpoint to one shared session.

    Typical issuance::

        client = AcmeClient(staging=True, account_key=AccountKey.generate_ec())
        acct = client.account.create(contacts=['mailto:admin@example.com'])
        new_order = client.order.new(acct, ['example.com'])
        validations = client.domain_validation.status(new_order)
        # publish client.domain_validation.validation_data(validations, 'http-01')
        for validation in validations:
            client.domain_validation.start(validation, 'http-01')
        client.domain_validation.poll(new_order, deadline)
        new_order = client.order.refresh(new_order)
        client.order.finalize(new_order, csr_pem)
        new_order = client.order.poll_finalization(new_order, deadline)
        bundle = client.certificate.get_bundle(new_order)

    :ivar str base_url: Directory URL.
    :ivar network.ClientNetwork net:
    :ivar directory.Directory directory:
    :ivar session.Session session:
    :ivar account.Accounts account:
    :ivar order.Orders order:
    :ivar authorization.DomainValidations domain_validation:
    :ivar certificate.Certificates certificate:
    :ivar ari.RenewalInfos renewal_info:
    :ivar renewal.RenewalManager renewal:

    """

    def __init__(self, staging: bool = False, base_url: Optional[str] = None,
                 account_key: Optional[keys.AccountKey] = None,
                 net: Optional[network.ClientNetwork] = None,
                 renewal_days: int = constants.DEFAULT_RENEWAL_DAYS) -> None:
        if base_url is None:
            base_url = (constants.STAGING_DIRECTORY_URL if staging
                        else constants.PRODUCTION_DIRECTORY_URL)
        self.base_url = base_url
        self.net = net if net is not None else network.ClientNetwork()
        self.directory = directory.Directory(self.net, base_url)
        self.session = session.Session(self.net, self.directory,
                                       directory.Nonce(self.net, self.directory),
                                       account_key)
        self.account = account.Accounts(self.session)
        self.order = order.Orders(self.session)
        self.domain_validation = authorization.DomainValidations(self.session)
        self.certificate = certificate.Certificates(self.session, self.account)
        self.renewal_info = ari.RenewalInfos(self.net, self.directory)
        self.renewal = renewal.RenewalManager(self.directory, self.renewal_info, renewal_days)
        logger.debug('ACME client for %s', base_url)

    @property
    def account_key(self) -> keys.AccountKey:
        return self.session.require_key()

    @account_key.setter
    def account_key(self, account_key: keys.AccountKey) -> None:
        # The account URL belongs to the previous key.
        self.session.account_key = account_key
        self.session.account_url = None

    def thumbprint(self) -> str:
        return self.account_key.thumbprint()
