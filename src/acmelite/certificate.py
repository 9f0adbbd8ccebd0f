"""Certificate download and revocation."""
import logging
from typing import Any
from typing import Dict
from typing import List
from typing import Union

from cryptography import x509

from acmelite import constants
from acmelite import crypto_util
from acmelite import errors
from acmelite import messages
from acmelite import network
from acmelite import session as session_mod
from acmelite.account import Accounts
from acmelite.order import OrderResource

logger = logging.getLogger(__name__)

BEGIN_MARKER = '-----BEGIN CERTIFICATE-----'
END_MARKER = '-----END CERTIFICATE-----'


def split_pem_chain(bundle: str) -> List[str]:
    """Split a PEM stream into its certificate blocks, in order.

    Text outside ``BEGIN``/``END CERTIFICATE`` markers is dropped.

    """
    certificates = []
    current: List[str] = []
    inside = False
    for line in bundle.splitlines():
        if BEGIN_MARKER in line:
            current = [line.strip()]
            inside = True
        elif END_MARKER in line and inside:
            current.append(line.strip())
            certificates.append('\n'.join(current))
            inside = False
        elif inside:
            current.append(line.strip())
    return certificates


class CertificateBundle:
    """Issued certificate split into leaf and chain.

    :ivar str fullchain: All certificates, in server order.
    :ivar str certificate: The leaf (first) certificate.
    :ivar str intermediate: The remaining certificates.

    """

    def __init__(self, fullchain: str, certificate: str, intermediate: str) -> None:
        self.fullchain = fullchain
        self.certificate = certificate
        self.intermediate = intermediate

    @classmethod
    def from_pem(cls, bundle: str) -> 'CertificateBundle':
        """Split a PEM stream; the first certificate is the leaf.

        :raises .CertificateError: if ``bundle`` holds no certificate.

        """
        certificates = split_pem_chain(bundle)
        if not certificates:
            raise errors.CertificateError('No certificate found in bundle')
        return cls(
            fullchain='\n'.join(certificates),
            certificate=certificates[0],
            intermediate='\n'.join(certificates[1:]),
        )

    def leaf(self) -> x509.Certificate:
        return crypto_util.load_certificate(self.certificate)

    def to_json(self) -> Dict[str, str]:
        return {
            'fullchain': self.fullchain,
            'certificate': self.certificate,
            'intermediate': self.intermediate,
        }

    @classmethod
    def from_json(cls, jobj: Dict[str, Any]) -> 'CertificateBundle':
        return cls(jobj['fullchain'], jobj['certificate'], jobj['intermediate'])

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, CertificateBundle) and self.to_json() == other.to_json()

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}(certificates={len(split_pem_chain(self.fullchain))})'


class Certificates:
    """Certificate resources and the revokeCert endpoint.

    :ivar session.Session session:
    :ivar account.Accounts accounts: Used to find the account URL for
        revocation when it is not known yet.

    """

    def __init__(self, session: session_mod.Session, accounts: Accounts) -> None:
        self.session = session
        self.accounts = accounts

    def get_bundle(self, order: OrderResource) -> CertificateBundle:
        """Download the certificate chain of a finalized ``order``.

        :raises .CertificateError: if the order has no certificate URL, the
            download fails or the response is not a PEM chain.

        """
        if not order.certificate_url:
            raise errors.CertificateError(f'Order {order.id} has no certificate URL')
        response = self.session.post_as_get(
            order.certificate_url, kid=order.account_url,
            headers={'Accept': network.ClientNetwork.PEM_CHAIN_CONTENT_TYPE})
        if not network.is_success(response):
            raise network.error_from_response(response, errors.CertificateError,
                                              'Downloading certificate failed')
        content_type = response.headers.get('Content-Type', '')
        if 'json' in content_type.split(';')[0] or response.text.lstrip().startswith('{'):
            raise errors.CertificateError(
                'Certificate response should be a PEM chain, not JSON',
                status_code=response.status_code)
        return CertificateBundle.from_pem(response.text)

    def revoke(self, certificate_pem: Union[bytes, str], reason: int = 0) -> bool:
        """Revoke a certificate issued to this account.

        Does not raise on a server refusal; the refusal is logged.

        :param certificate_pem: PEM encoded certificate.
        :param int reason: RFC 5280 CRLReason code.

        :raises .CertificateError: if the certificate cannot be parsed or
            ``reason`` is not a valid code.

        :returns: ``True`` if the server revoked the certificate.

        """
        if reason not in constants.REVOCATION_REASONS.values():
            raise errors.CertificateError(f'Invalid revocation reason: {reason}')
        der = crypto_util.certificate_to_der(certificate_pem)
        account_url = self.session.account_url or self.accounts.get().url
        response = self.session.post(self.session.directory.revoke_cert(),
                                     messages.Revocation(certificate=der, reason=reason),
                                     kid=account_url)
        if not network.is_success(response):
            logger.error('Revoking certificate failed (HTTP %d): %s',
                         response.status_code, network.problem_from_response(response))
            return False
        logger.info('Certificate revoked (reason %d)', reason)
        return True
