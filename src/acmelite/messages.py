"""ACME protocol messages.

Every request and response body exchanged with the server is declared
here as a `josepy.JSONObjectWithFields`, so each entity carries its own
explicit ``to_json``/``from_json`` mapping between Python attribute names
and RFC 8555 member names.

"""
from collections.abc import Hashable
from collections.abc import Mapping
import datetime
import random
from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from typing import Tuple

import josepy as jose

from acmelite import fields

ERROR_PREFIX = "urn:ietf:params:acme:error:"

ERROR_CODES = {
    'accountDoesNotExist': 'The request specified an account that does not exist',
    'alreadyReplaced': 'The request specified a predecessor certificate which has'
    ' already been replaced',
    'alreadyRevoked': 'The request specified a certificate to be revoked that has'
    ' already been revoked',
    'badCSR': 'The CSR is unacceptable (e.g., due to a short key)',
    'badNonce': 'The client sent an unacceptable anti-replay nonce',
    'badPublicKey': 'The JWS was signed by a public key the server does not support',
    'badRevocationReason': 'The revocation reason provided is not allowed by the server',
    'badSignatureAlgorithm': 'The JWS was signed with an algorithm the server does not support',
    'caa': 'Certification Authority Authorization (CAA) records forbid the CA from issuing'
    ' a certificate',
    'compound': 'Specific error conditions are indicated in the "subproblems" array',
    'connection': 'The server could not connect to the client to verify the domain',
    'dns': 'There was a problem with a DNS query during identifier validation',
    'externalAccountRequired': 'The server requires external account binding',
    'incorrectResponse': 'Response received didn\'t match the challenge\'s requirements',
    'invalidContact': 'The provided contact URI was invalid',
    'malformed': 'The request message was malformed',
    'orderNotReady': 'The request attempted to finalize an order that is not ready to be finalized',
    'rateLimited': 'There were too many requests of a given type',
    'rejectedIdentifier': 'The server will not issue certificates for the identifier',
    'serverInternal': 'The server experienced an internal error',
    'tls': 'The server experienced a TLS error during domain verification',
    'unauthorized': 'The client lacks sufficient authorization',
    'unsupportedContact': 'A contact URL for an account used an unsupported protocol scheme',
    'unsupportedIdentifier': 'An identifier is of an unsupported type',
    'userActionRequired': 'Visit the "instance" URL and take actions specified there',
}
"""RFC 8555 section 6.7 error types, without `ERROR_PREFIX`."""


def is_acme_error(problem: Any) -> bool:
    """Is ``problem`` a `Problem` of one of the ``urn:ietf:params:acme:error`` types?"""
    return isinstance(problem, Problem) and str(problem.typ).startswith(ERROR_PREFIX)


class _Constant(jose.JSONDeSerializable, Hashable):
    """Enumerated string value of an ACME message member."""
    __slots__ = ('name',)
    POSSIBLE_NAMES: Dict[str, '_Constant'] = NotImplemented

    def __init__(self, name: str) -> None:
        super().__init__()
        self.POSSIBLE_NAMES[name] = self  # pylint: disable=unsupported-assignment-operation
        self.name = name

    def to_partial_json(self) -> str:
        return self.name

    @classmethod
    def from_json(cls, jobj: str) -> '_Constant':
        try:
            return cls.POSSIBLE_NAMES[jobj]  # pylint: disable=unsubscriptable-object
        except (KeyError, TypeError):
            raise jose.DeserializationError(f'{cls.__name__} {jobj!r} not recognized')

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.name})'

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, type(self)) and other.name == self.name

    def __hash__(self) -> int:
        return hash((self.__class__, self.name))


class IdentifierType(_Constant):
    """ACME identifier type."""
    POSSIBLE_NAMES: Dict[str, _Constant] = {}


IDENTIFIER_FQDN = IdentifierType('dns')


class Identifier(jose.JSONObjectWithFields):
    """ACME identifier.

    :ivar IdentifierType typ:
    :ivar str value: e.g. ``example.com`` or ``*.example.com``.

    """
    typ: IdentifierType = jose.field('type', decoder=IdentifierType.from_json)
    value: str = jose.field('value')


class Problem(jose.JSONObjectWithFields):
    """Problem document (RFC 7807) sent by the server with every failure.

    Unlike the exceptions in `acmelite.errors`, this is plain data; it is
    attached to them as ``problem``.

    :ivar str typ: Defaults to ``about:blank``.
    :ivar str title:
    :ivar str detail: Human readable explanation.
    :ivar str instance: URL with further information for the user.
    :ivar Identifier identifier: Identifier the problem relates to.
    :ivar tuple subproblems: `tuple` of `Problem`, for ``compound`` problems.

    """
    typ: str = jose.field('type', omitempty=True, default='about:blank')
    title: str = jose.field('title', omitempty=True)
    detail: str = jose.field('detail', omitempty=True)
    instance: str = jose.field('instance', omitempty=True)
    identifier: Optional['Identifier'] = jose.field(
        'identifier', decoder=Identifier.from_json, omitempty=True)
    subproblems: Optional[Tuple['Problem', ...]] = jose.field('subproblems', omitempty=True)

    # josepy decorator redefines the field.
    @subproblems.decoder  # type: ignore
    def subproblems(value: List[Dict[str, Any]]) -> Tuple['Problem', ...]:  # pylint: disable=no-self-argument,missing-function-docstring
        return tuple(Problem.from_json(subproblem) for subproblem in value)

    @classmethod
    def with_code(cls, code: str, **kwargs: Any) -> 'Problem':
        """Problem of the ACME error type ``code``, e.g. ``badNonce``.

        :raises ValueError: if ``code`` is not in `ERROR_CODES`.

        """
        if code not in ERROR_CODES:
            raise ValueError(f'Unknown ACME error code: {code}')
        return cls(typ=ERROR_PREFIX + code, **kwargs)

    @property
    def code(self) -> Optional[str]:
        """ACME error code, ``None`` for types outside `ERROR_CODES`."""
        typ = str(self.typ)
        if typ.startswith(ERROR_PREFIX) and typ[len(ERROR_PREFIX):] in ERROR_CODES:
            return typ[len(ERROR_PREFIX):]
        return None

    @property
    def description(self) -> Optional[str]:
        """RFC 8555 description of the error type, if it is a known one."""
        code = self.code
        return ERROR_CODES[code] if code is not None else None

    def __str__(self) -> str:
        parts = [part for part in (self.typ, self.description, self.detail, self.title)
                 if part is not None]
        result = ' :: '.join(parts).encode('ascii', 'backslashreplace').decode()
        if self.identifier:
            result = f'Problem for {self.identifier.value}: {result}'  # pylint: disable=no-member
        for subproblem in self.subproblems or ():
            result += f'\n{subproblem}'
        return result


class Status(_Constant):
    """ACME "status" member of accounts, orders, authorizations and challenges."""
    POSSIBLE_NAMES: Dict[str, _Constant] = {}


STATUS_PENDING = Status('pending')
STATUS_PROCESSING = Status('processing')
STATUS_VALID = Status('valid')
STATUS_INVALID = Status('invalid')
STATUS_REVOKED = Status('revoked')
STATUS_READY = Status('ready')
STATUS_DEACTIVATED = Status('deactivated')
STATUS_EXPIRED = Status('expired')


class Directory(jose.JSONDeSerializable):
    """ACME directory document (RFC 8555 section 7.1.1).

    Resource URLs are looked up by their exact RFC 8555 member name, e.g.
    ``directory['newOrder']``; the optional ``meta`` object is parsed into
    `Directory.Meta`.

    """

    class Meta(jose.JSONObjectWithFields):
        """Directory metadata.

        :ivar str terms_of_service: URL of the current terms of service.
        :ivar bool external_account_required:

        """
        terms_of_service: str = jose.field('termsOfService', omitempty=True)
        external_account_required: bool = jose.field('externalAccountRequired', omitempty=True)

    def __init__(self, resources: Mapping[str, Any],
                 meta: Optional['Directory.Meta'] = None) -> None:
        self._resources = dict(resources)
        self.meta = meta if meta is not None else self.Meta()

    def __getitem__(self, name: str) -> Any:
        try:
            return self._resources[name]
        except KeyError:
            raise KeyError(f'Directory field "{name}" not found')

    def __contains__(self, name: object) -> bool:
        return name in self._resources

    def get(self, name: str, default: Any = None) -> Any:
        """Return the resource URL ``name``, or ``default`` if absent."""
        return self._resources.get(name, default)

    def to_partial_json(self) -> Dict[str, Any]:
        jobj: Dict[str, Any] = dict(self._resources)
        jobj['meta'] = self.meta
        return jobj

    @classmethod
    def from_json(cls, jobj: Mapping[str, Any]) -> 'Directory':
        if not isinstance(jobj, Mapping):
            raise jose.DeserializationError('Directory must be a JSON object')
        resources = {name: value for name, value in jobj.items() if name != 'meta'}
        return cls(resources, cls.Meta.from_json(jobj.get('meta') or {}))


class ResourceWithURI(jose.JSONObjectWithFields):
    """Server resource together with its URL.

    :ivar str uri: Location of the resource.

    """
    uri: str = jose.field('uri')


class ResourceBody(jose.JSONObjectWithFields):
    """Body of a server resource."""


class Registration(ResourceBody):
    """Account object (RFC 8555 section 7.1.2).

    Also used as the newAccount request payload, where only
    ``contact``, ``terms_of_service_agreed``, ``only_return_existing`` and
    ``external_account_binding`` are meaningful.

    :ivar dict key: Account public key as a JWK, as echoed by some servers.
    :ivar tuple contact: `tuple` of contact URLs, e.g. ``mailto:admin@example.com``.
    :ivar acmelite.messages.Status status:
    :ivar str orders: URL of the account's orders list.
    :ivar bool terms_of_service_agreed:
    :ivar bool only_return_existing:
    :ivar dict external_account_binding: Flattened HS256 JWS over the account JWK.
    :ivar datetime.datetime created_at:

    """
    key: Dict[str, Any] = jose.field('key', omitempty=True)
    contact: Tuple[str, ...] = jose.field('contact', omitempty=True, default=())
    status: Status = jose.field('status', omitempty=True, decoder=Status.from_json)
    orders: str = jose.field('orders', omitempty=True)
    terms_of_service_agreed: bool = jose.field('termsOfServiceAgreed', omitempty=True)
    only_return_existing: bool = jose.field('onlyReturnExisting', omitempty=True)
    external_account_binding: Dict[str, Any] = jose.field('externalAccountBinding',
                                                          omitempty=True)
    created_at: datetime.datetime = fields.rfc3339('createdAt', omitempty=True)

    @property
    def emails(self) -> Tuple[str, ...]:
        """Addresses of the ``mailto:`` contacts."""
        return tuple(contact[len('mailto:'):] for contact in self.contact  # pylint: disable=not-an-iterable
                     if contact.startswith('mailto:'))


class NewRegistration(Registration):
    """newAccount request payload."""


class Challenge(ResourceBody):
    """Challenge object (RFC 8555 section 8).

    :ivar str typ: Challenge type, e.g. ``http-01``.
    :ivar str url: URL the client POSTs to when the challenge is ready.
    :ivar acmelite.messages.Status status:
    :ivar str token:
    :ivar datetime.datetime validated:
    :ivar Problem error:

    """
    typ: str = jose.field('type')
    url: str = jose.field('url', omitempty=True)
    status: Status = jose.field('status', decoder=Status.from_json,
                                omitempty=True, default=STATUS_PENDING)
    token: str = jose.field('token', omitempty=True)
    validated: datetime.datetime = fields.rfc3339('validated', omitempty=True)
    error: Problem = jose.field('error', decoder=Problem.from_json,
                                omitempty=True, default=None)


class Authorization(ResourceBody):
    """Authorization object (RFC 8555 section 7.1.4).

    :ivar acmelite.messages.Identifier identifier:
    :ivar tuple challenges: `tuple` of `.Challenge`
    :ivar acmelite.messages.Status status:
    :ivar datetime.datetime expires:
    :ivar bool wildcard:

    """
    identifier: Identifier = jose.field('identifier', decoder=Identifier.from_json, omitempty=True)
    challenges: List[Challenge] = jose.field('challenges', omitempty=True)
    status: Status = jose.field('status', omitempty=True, decoder=Status.from_json)
    expires: datetime.datetime = fields.rfc3339('expires', omitempty=True)
    wildcard: bool = jose.field('wildcard', omitempty=True)

    # josepy decorator redefines the field.
    @challenges.decoder  # type: ignore
    def challenges(value: List[Dict[str, Any]]) -> Tuple[Challenge, ...]:  # pylint: disable=no-self-argument,missing-function-docstring
        return tuple(Challenge.from_json(chall) for chall in value)


class CertificateRequest(jose.JSONObjectWithFields):
    """ACME finalize request.

    :ivar bytes csr: DER encoded certificate signing request.

    """
    csr: bytes = fields.der('csr')


class Revocation(jose.JSONObjectWithFields):
    """Revocation message.

    :ivar bytes certificate: DER encoded certificate.
    :ivar int reason: RFC 5280 CRLReason code.

    """
    certificate: bytes = fields.der('certificate')
    reason: int = jose.field('reason')


class Order(ResourceBody):
    """Order object (RFC 8555 section 7.1.3).

    :ivar tuple identifiers: `tuple` of `.Identifier` the certificate will cover.
    :ivar acmelite.messages.Status status:
    :ivar list authorizations: Authorization URLs, one per identifier.
    :ivar str certificate: Certificate chain URL, set once the order is valid.
    :ivar str finalize: URL the CSR is sent to when the order is ready.
    :ivar datetime.datetime expires:
    :ivar str replaces: CertID of the predecessor certificate (RFC 9773).
    :ivar Problem error: Why the order became invalid.

    """
    identifiers: List[Identifier] = jose.field('identifiers', omitempty=True)
    status: Status = jose.field('status', decoder=Status.from_json, omitempty=True)
    authorizations: List[str] = jose.field('authorizations', omitempty=True)
    certificate: str = jose.field('certificate', omitempty=True)
    finalize: str = jose.field('finalize', omitempty=True)
    expires: datetime.datetime = fields.rfc3339('expires', omitempty=True)
    replaces: str = jose.field('replaces', omitempty=True)
    error: Problem = jose.field('error', omitempty=True, decoder=Problem.from_json)

    # josepy decorator redefines the field.
    @identifiers.decoder  # type: ignore
    def identifiers(value: List[Dict[str, Any]]) -> Tuple[Identifier, ...]:  # pylint: disable=no-self-argument,missing-function-docstring
        return tuple(Identifier.from_json(identifier) for identifier in value)


class NewOrder(Order):
    """New order."""


class RenewalInfo(ResourceBody):
    """ACME Renewal Information (RFC 9773).

    :ivar acmelite.messages.RenewalInfo.SuggestedWindow suggested_window:
        The suggested renewal window.
    :ivar str explanation_url: Page explaining why the window was chosen.
    :ivar tuple retry_after: Values of the ``Retry-After`` hint, if any.
    """
    class SuggestedWindow(jose.JSONObjectWithFields):
        """Window the server suggests renewing in.

        :ivar datetime.datetime start:
        :ivar datetime.datetime end: Inclusive.

        """
        start: datetime.datetime = fields.rfc3339('start', omitempty=True)
        end: datetime.datetime = fields.rfc3339('end', omitempty=True)

    suggested_window: SuggestedWindow = jose.field('suggestedWindow', omitempty=True,
                                                   decoder=SuggestedWindow.from_json)
    explanation_url: str = jose.field('explanationURL', omitempty=True)
    retry_after: Tuple[Any, ...] = jose.field('retryAfter', omitempty=True, default=())

    @classmethod
    def fields_from_json(cls, jobj: Mapping[str, Any]) -> Dict[str, Any]:
        jobj_fields = super().fields_from_json(jobj)
        window = jobj_fields['suggested_window'] or cls.SuggestedWindow()
        # An absent bound means "now" for the start and "30 days from now" for the end.
        now = datetime.datetime.now(datetime.timezone.utc)
        if window.start is None or window.end is None:
            jobj_fields['suggested_window'] = window.update(
                start=window.start if window.start is not None else now,
                end=window.end if window.end is not None else now + datetime.timedelta(days=30))
        return jobj_fields

    @property
    def start(self) -> datetime.datetime:
        return self.suggested_window.start  # pylint: disable=no-member

    @property
    def end(self) -> datetime.datetime:
        return self.suggested_window.end  # pylint: disable=no-member

    def is_in_window(self, now: datetime.datetime) -> bool:
        """Is ``now`` within the suggested window (bounds inclusive)?"""
        return self.start <= now <= self.end

    def should_renew_now(self, now: datetime.datetime) -> bool:
        """Renew if the window has opened, including when it already closed."""
        return now >= self.start

    def window_duration(self) -> datetime.timedelta:
        return self.end - self.start

    def random_time_in_window(self) -> datetime.datetime:
        """Uniformly random instant within the window.

        Used to spread renewals of many clients over the window.

        """
        seconds = max(self.window_duration().total_seconds(), 0)
        return self.start + datetime.timedelta(seconds=random.uniform(0, seconds))

    def seconds_until_window_start(self, now: datetime.datetime) -> int:
        return max(0, int((self.start - now).total_seconds()))

    def seconds_until_window_end(self, now: datetime.datetime) -> int:
        return max(0, int((self.end - now).total_seconds()))
