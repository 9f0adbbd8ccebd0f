"""acmelite errors."""
import typing
from typing import Any
from typing import List
from typing import Mapping
from typing import Optional
from typing import Tuple

# acmelite.messages and acmelite.authorization are imported only during type
# check to avoid circular dependencies; references to them must be quoted.
if typing.TYPE_CHECKING:
    from acmelite import authorization  # pragma: no cover
    from acmelite import messages  # pragma: no cover


class Error(Exception):
    """Generic acmelite error."""


class AcmeError(Error):
    """Failure reported by, or about, the ACME server.

    Carries the RFC 8555 problem document (when the server sent one) and
    the HTTP status code of the failing response so that callers can act
    on either.

    :ivar str message: Human readable message, the problem ``detail`` when
        the server provided one.
    :ivar int status_code: HTTP status code of the failing response, if any.
    :ivar messages.Problem problem: Parsed problem document, if any.

    """
    def __init__(self, message: str = '', status_code: Optional[int] = None,
                 problem: Optional['messages.Problem'] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.problem = problem

    @classmethod
    def from_problem(cls, problem: Optional['messages.Problem'],
                     status_code: Optional[int] = None,
                     default_message: str = 'Unknown error') -> 'AcmeError':
        """Build the error from a parsed problem document.

        :param messages.Problem problem: Problem document or ``None`` when
            the response body was not one.
        :param int status_code: HTTP status code of the response.
        :param str default_message: Message used when the problem carries
            no ``detail``.

        """
        message = default_message
        if problem is not None and problem.detail:
            message = problem.detail
        return cls(message, status_code=status_code, problem=problem)

    @property
    def typ(self) -> Optional[str]:
        """Full problem type URN, e.g. ``urn:ietf:params:acme:error:badNonce``."""
        return self.problem.typ if self.problem is not None else None

    @property
    def code(self) -> Optional[str]:
        """Problem type without the ACME URN prefix."""
        from acmelite.messages import ERROR_PREFIX
        typ = self.typ
        if typ is None or not typ.startswith(ERROR_PREFIX):
            return None
        return typ[len(ERROR_PREFIX):]

    @property
    def detail(self) -> Optional[str]:
        if self.problem is not None and self.problem.detail:
            return self.problem.detail
        return self.message or None

    @property
    def instance(self) -> Optional[str]:
        return self.problem.instance if self.problem is not None else None

    @property
    def identifier(self) -> Optional['messages.Identifier']:
        return self.problem.identifier if self.problem is not None else None

    @property
    def subproblems(self) -> Tuple['messages.Problem', ...]:
        if self.problem is None or not self.problem.subproblems:
            return ()
        return tuple(self.problem.subproblems)

    def __str__(self) -> str:
        if self.status_code is not None:
            return f'{self.message} (HTTP {self.status_code})'
        return self.message


class AccountError(AcmeError):
    """Account could not be created, found or used."""


class OrderError(AcmeError):
    """Order could not be created, fetched or processed."""


class OrderNotFound(OrderError):
    """The server does not know the requested order."""


class RateLimited(AcmeError):
    """The server rate limited the request (HTTP 429).

    :ivar int retry_after: Seconds the server asked the client to wait,
        ``None`` if it did not say.

    """
    def __init__(self, message: str = '', status_code: Optional[int] = None,
                 problem: Optional['messages.Problem'] = None,
                 retry_after: Optional[int] = None) -> None:
        super().__init__(message, status_code, problem)
        self.retry_after = retry_after


class ValidationError(AcmeError):
    """Error for authorization failures.

    Contains a list of domain validations, each of which is invalid and
    should carry an error in one of its challenges.

    """
    def __init__(self, failed: List['authorization.DomainValidation'],
                 message: str = 'Domain validation failed') -> None:
        self.failed = failed
        super().__init__('{0}: {1}'.format(
            message, ', '.join(validation.domain for validation in failed)))


class CertificateError(AcmeError):
    """Certificate could not be fetched, parsed or revoked."""


class IssuanceError(AcmeError):
    """Error sent by the server after requesting issuance of a certificate."""

    def __init__(self, problem: Optional['messages.Problem'] = None) -> None:
        message = 'Order became invalid'
        if problem is not None and problem.detail:
            message = problem.detail
        super().__init__(message, problem=problem)


class ClientError(Error):
    """Network error."""


class NonceError(ClientError):
    """Server response nonce error."""


class MissingNonce(NonceError):
    """Missing nonce error.

    RFC 8555 section 6.5 requires a Replay-Nonce header on every
    successful response to a POST and on every newNonce response.

    :ivar headers: Mapping of HTTP headers

    """
    def __init__(self, headers: Mapping[str, Any], *args: Any) -> None:
        super().__init__(*args)
        self.headers = dict(headers)

    def __str__(self) -> str:
        return ('Server response did not include a replay '
                'nonce, headers: {0} (This may be a service outage)'.format(
                    self.headers))


class TimeoutError(ClientError):  # pylint: disable=redefined-builtin
    """Error for when polling an authorization or an order times out."""


class CryptoError(Error):
    """Key, signature or certificate material could not be processed."""


class UnsupportedKeyError(CryptoError):
    """Key type (or RSA key size) is not usable for ACME."""


class UnsupportedCurveError(CryptoError):
    """Elliptic curve is not one of P-256, P-384 or P-521."""


class SigningError(CryptoError):
    """The signing primitive failed."""


class SignatureFormatError(CryptoError):
    """ECDSA signature is not a well-formed DER ``SEQUENCE`` of two ``INTEGER``."""


class CertIDError(CryptoError):
    """ARI certificate identifier could not be derived or parsed."""
