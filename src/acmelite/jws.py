"""ACME-flavoured JSON Web Signatures.

Every ACME request body is a flattened JWS ``{protected, payload, signature}``
whose protected header names the target ``url``, a fresh anti-replay
``nonce`` and either the account URL (``kid``) or, for the requests that
precede an account, the public ``jwk``. josepy only knows the base JOSE
header, so the ACME members are layered on top of it here.

"""
import logging
from typing import Any
from typing import Dict
from typing import Optional
from typing import Tuple
from typing import Union

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric import rsa
import josepy as jose

from acmelite import constants
from acmelite import errors
from acmelite import jwk
from acmelite import util

logger = logging.getLogger(__name__)

PrivateKey = Union[rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey]

CURVE_ALGORITHMS = {
    'P-256': 'ES256',
    'P-384': 'ES384',
    'P-521': 'ES512',
}

_DER_SEQUENCE = 0x30
_DER_INTEGER = 0x02


def algorithm(key: PrivateKey) -> str:
    """JWS ``alg`` for ``key``.

    :raises .UnsupportedKeyError: if ``key`` is neither RSA nor EC.
    :raises .UnsupportedCurveError: if the EC curve is not supported.

    """
    if isinstance(key, rsa.RSAPrivateKey):
        return 'RS256'
    if isinstance(key, ec.EllipticCurvePrivateKey):
        return CURVE_ALGORITHMS[jwk.curve_name(key.curve)]
    raise errors.UnsupportedKeyError(f'Unsupported key type: {type(key).__name__}')


def _read_length(der: bytes, offset: int) -> Tuple[int, int]:
    if offset >= len(der):
        raise errors.SignatureFormatError('Truncated DER length')
    first = der[offset]
    offset += 1
    if not first & 0x80:
        return first, offset
    count = first & 0x7f
    if count == 0 or offset + count > len(der):
        raise errors.SignatureFormatError('Invalid DER length')
    return int.from_bytes(der[offset:offset + count], 'big'), offset + count


def _read_integer(der: bytes, offset: int) -> Tuple[bytes, int]:
    if offset >= len(der) or der[offset] != _DER_INTEGER:
        raise errors.SignatureFormatError('Expected DER INTEGER')
    length, offset = _read_length(der, offset + 1)
    if length == 0 or offset + length > len(der):
        raise errors.SignatureFormatError('Invalid DER INTEGER length')
    return der[offset:offset + length], offset + length


def der_to_raw_signature(der: bytes, coordinate_length: int) -> bytes:
    """Convert a DER ``ECDSA-Sig-Value`` into the JWS ``r || s`` form.

    Leading zero bytes are stripped from ``r`` and ``s`` and each is
    left-padded to ``coordinate_length``, so the result is always exactly
    ``2 * coordinate_length`` bytes long.

    :param bytes der: ``SEQUENCE { INTEGER r, INTEGER s }``
    :param int coordinate_length: 32, 48 or 66 for P-256, P-384 or P-521.

    :raises .SignatureFormatError: if ``der`` is not a well formed
        signature or an integer does not fit ``coordinate_length``.

    """
    if not der or der[0] != _DER_SEQUENCE:
        raise errors.SignatureFormatError('Expected DER SEQUENCE')
    length, offset = _read_length(der, 1)
    if offset + length != len(der):
        raise errors.SignatureFormatError('DER SEQUENCE length mismatch')

    raw = b''
    for _ in range(2):
        value, offset = _read_integer(der, offset)
        value = value.lstrip(b'\x00')
        if len(value) > coordinate_length:
            raise errors.SignatureFormatError(
                f'Signature integer longer than {coordinate_length} bytes')
        raw += value.rjust(coordinate_length, b'\x00')
    if offset != len(der):
        raise errors.SignatureFormatError('Trailing data after DER signature')
    return raw


class ECDSA(jose.JWASignature):
    """ECDSA whose DER signatures are converted by `der_to_raw_signature`."""
    kty = jose.JWKEC

    def __init__(self, name: str, hash_: Any) -> None:
        super().__init__(name)
        self.hash = hash_

    def sign(self, key: ec.EllipticCurvePrivateKey, msg: bytes) -> bytes:
        try:
            der = key.sign(msg, ec.ECDSA(self.hash()))
        except (AttributeError, TypeError, ValueError) as error:
            raise errors.SigningError(f'Signing with {self.name} failed: {error}') from error
        return der_to_raw_signature(der, jwk.COORDINATE_LENGTHS[jwk.curve_name(key.curve)])

    def verify(self, key: ec.EllipticCurvePublicKey, msg: bytes, sig: bytes) -> bool:
        return jose.JWASignature.from_json(self.name).verify(key, msg, sig)


SIGNATURE_ALGORITHMS: Dict[str, jose.JWASignature] = {
    'RS256': jose.RS256,
    'ES256': ECDSA('ES256', hashes.SHA256),
    'ES384': ECDSA('ES384', hashes.SHA384),
    'ES512': ECDSA('ES512', hashes.SHA512),
}


class Header(jose.Header):
    """JOSE header with the ACME ``nonce``, ``url`` and ``kid`` members.

    Serialized canonically, so equal headers give equal protected values.

    """
    nonce: Optional[str] = jose.field('nonce', omitempty=True)
    kid: Optional[str] = jose.field('kid', omitempty=True)  # type: ignore[assignment]
    url: Optional[str] = jose.field('url', omitempty=True)

    def json_dumps(self, **kwargs: Any) -> str:
        kwargs.setdefault('sort_keys', True)
        kwargs.setdefault('separators', (',', ':'))
        return super().json_dumps(**kwargs)


class Signature(jose.Signature):
    """Signature whose header is the ACME `Header`."""
    __slots__ = jose.Signature._orig_slots  # type: ignore[attr-defined]  # pylint: disable=protected-access,no-member

    header_cls = Header
    header: Header = jose.field(
        'header', omitempty=True, default=header_cls(),
        decoder=header_cls.from_json)


class JWS(jose.JWS):
    """Flattened JWS with every header member protected."""
    signature_cls = Signature
    __slots__ = jose.JWS._orig_slots  # type: ignore[attr-defined]  # pylint: disable=protected-access

    @classmethod
    # type: ignore[override]  # pylint: disable=arguments-differ
    def sign(cls, payload: bytes, key: jose.JWK, alg: jose.JWASignature,
             nonce: Optional[str], url: Optional[str] = None,
             kid: Optional[str] = None) -> jose.JWS:
        # jwk and kid are mutually exclusive.
        return super().sign(payload, key=key, alg=alg,
                            protect=frozenset(['nonce', 'url', 'kid', 'jwk', 'alg']),
                            nonce=nonce, url=url, kid=kid,
                            include_jwk=kid is None)


def encode_payload(payload: Any) -> bytes:
    """JSON payload bytes; ``None`` encodes to the empty POST-as-GET payload."""
    if payload is None:
        return b''
    if isinstance(payload, jose.JSONDeSerializable):
        payload = payload.to_json()
    return util.dump_json(payload)


def sign(key: PrivateKey, url: str, nonce: str, payload: Any = None,
         kid: Optional[str] = None) -> Dict[str, str]:
    """Build a signed ACME request body.

    :param key: Account private key.
    :param str url: Target URL, repeated in the protected header.
    :param str nonce: Fresh anti-replay nonce.
    :param payload: JSON-serializable object, `josepy.JSONDeSerializable`
        or ``None`` for POST-as-GET.
    :param str kid: Account URL. When ``None`` the public JWK is embedded
        instead, as required for newAccount.

    :returns: ``{"protected", "payload", "signature"}``
    :rtype: dict

    :raises .SigningError: if the signing primitive fails.

    """
    alg = SIGNATURE_ALGORITHMS[algorithm(key)]
    try:
        signed = JWS.sign(encode_payload(payload), key=jwk.wrap(key), alg=alg,
                          nonce=nonce, url=url, kid=kid)
    except jose.Error as error:
        raise errors.SigningError(f'Signing with {alg.name} failed: {error}') from error
    logger.debug('Signed %s request for %s', alg.name, url)
    return signed.to_json()


def decode_eab_key(hmac_key: str) -> bytes:
    """Decode a base64url External Account Binding HMAC key.

    :raises .AccountError: if the key is empty, not base64url or shorter
        than `.constants.EAB_MIN_KEY_LENGTH` bytes once decoded.

    """
    if not hmac_key:
        raise errors.AccountError('External account binding HMAC key is empty')
    try:
        decoded = jose.decode_b64jose(hmac_key)
    except jose.DeserializationError as error:
        raise errors.AccountError(f'Invalid external account binding HMAC key: {error}')
    if len(decoded) < constants.EAB_MIN_KEY_LENGTH:
        raise errors.AccountError(
            'External account binding HMAC key must be at least '
            f'{constants.EAB_MIN_KEY_LENGTH} bytes')
    return decoded


def external_account_binding(key: PrivateKey, eab_kid: str, hmac_key: str,
                             url: str) -> Dict[str, str]:
    """Build the ``externalAccountBinding`` member of a newAccount request.

    An HS256 JWS over the account's public JWK, keyed by the CA-issued
    HMAC secret.

    :param key: Account private key whose public JWK is bound.
    :param str eab_kid: Key identifier issued by the CA.
    :param str hmac_key: base64url encoded HMAC key issued by the CA.
    :param str url: newAccount URL.

    """
    if not eab_kid:
        raise errors.AccountError('External account binding key identifier is empty')
    secret = decode_eab_key(hmac_key)
    signed = JWS.sign(util.dump_json(jwk.compute(key)), key=jose.JWKOct(key=secret),
                      alg=jose.HS256, nonce=None, url=url, kid=eab_kid)
    return signed.to_json()
