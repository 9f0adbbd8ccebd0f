"""Account key pairs."""
import logging
from typing import Any
from typing import Dict
from typing import Optional
from typing import Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric import rsa
import josepy as jose

from acmelite import constants
from acmelite import errors
from acmelite import jwk

logger = logging.getLogger(__name__)

PrivateKey = Union[rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey]
PublicKey = Union[rsa.RSAPublicKey, ec.EllipticCurvePublicKey]

CURVES = {
    'P-256': ec.SECP256R1,
    'P-384': ec.SECP384R1,
    'P-521': ec.SECP521R1,
}


def generate_private_key(key_type: str = constants.KEY_TYPE_RSA,
                         key_size: Optional[Union[int, str]] = None) -> PrivateKey:
    """Generate a new private key.

    :param str key_type: ``RSA`` or ``ECC``.
    :param key_size: RSA modulus size in bits (2048, 3072 or 4096), or
        curve name (``P-256``, ``P-384`` or ``P-521``) for ``ECC``.
        Defaults to 2048 bits and P-256 respectively.

    :raises .UnsupportedKeyError: for an unknown type or RSA size.
    :raises .UnsupportedCurveError: for an unknown curve.

    """
    if key_type == constants.KEY_TYPE_RSA:
        size = constants.DEFAULT_RSA_KEY_SIZE if key_size is None else key_size
        if size not in constants.RSA_KEY_SIZES:
            raise errors.UnsupportedKeyError(
                f'Unsupported RSA key size {size}, expected one of '
                f'{", ".join(str(s) for s in constants.RSA_KEY_SIZES)}')
        return rsa.generate_private_key(public_exponent=65537, key_size=int(size))
    if key_type == constants.KEY_TYPE_EC:
        curve = constants.DEFAULT_EC_CURVE if key_size is None else key_size
        if curve not in CURVES:
            raise errors.UnsupportedCurveError(
                f'Unsupported curve {curve}, expected one of {", ".join(constants.EC_CURVES)}')
        return ec.generate_private_key(CURVES[str(curve)]())
    raise errors.UnsupportedKeyError(f'Unsupported key type: {key_type}')


def load_private_key(data: Union[bytes, str]) -> PrivateKey:
    """Load an RSA or EC private key from PEM.

    :raises .CryptoError: if ``data`` is not an unencrypted PEM private key.
    :raises .UnsupportedKeyError: if it is neither RSA nor EC.

    """
    if isinstance(data, str):
        data = data.encode()
    try:
        key = serialization.load_pem_private_key(data, password=None)
    except (TypeError, ValueError) as error:
        raise errors.CryptoError(f'Could not load private key: {error}')
    if not isinstance(key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
        raise errors.UnsupportedKeyError(f'Unsupported key type: {type(key).__name__}')
    return key


class AccountKey:
    """ACME account key pair.

    The account exists (locally) iff a private key is present. The public
    half is always derived from, or checked against, the private one.

    :ivar private_key: `cryptography` RSA or EC private key.
    :ivar public_key: Matching public key.

    """

    def __init__(self, private_key: PrivateKey) -> None:
        if not isinstance(private_key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
            raise errors.UnsupportedKeyError(
                f'Unsupported key type: {type(private_key).__name__}')
        if isinstance(private_key, ec.EllipticCurvePrivateKey):
            jwk.curve_name(private_key.curve)
        self.private_key = private_key
        self.public_key: PublicKey = private_key.public_key()

    @classmethod
    def generate(cls, key_type: str = constants.KEY_TYPE_RSA,
                 key_size: Optional[Union[int, str]] = None) -> 'AccountKey':
        """Generate a fresh key pair. See `generate_private_key`."""
        return cls(generate_private_key(key_type, key_size))

    @classmethod
    def generate_rsa(cls, key_size: int = constants.DEFAULT_RSA_KEY_SIZE) -> 'AccountKey':
        return cls.generate(constants.KEY_TYPE_RSA, key_size)

    @classmethod
    def generate_ec(cls, curve: str = constants.ACCOUNT_EC_CURVE) -> 'AccountKey':
        return cls.generate(constants.KEY_TYPE_EC, curve)

    @classmethod
    def from_pem(cls, private_pem: Union[bytes, str],
                 public_pem: Optional[Union[bytes, str]] = None) -> 'AccountKey':
        """Import a key pair.

        :param private_pem: PEM encoded private key.
        :param public_pem: Optional PEM encoded public key, which must
            match ``private_pem``.

        :raises .CryptoError: if the keys cannot be loaded or do not match.

        """
        account_key = cls(load_private_key(private_pem))
        if public_pem is not None:
            if isinstance(public_pem, str):
                public_pem = public_pem.encode()
            try:
                public_key = serialization.load_pem_public_key(public_pem)
            except (TypeError, ValueError) as error:
                raise errors.CryptoError(f'Could not load public key: {error}')
            if jwk.compute(public_key) != account_key.jwk():
                raise errors.CryptoError('Public key does not match private key')
        return account_key

    def rotate(self, key_type: str = constants.KEY_TYPE_RSA,
               key_size: Optional[Union[int, str]] = None) -> None:
        """Replace both halves of the key pair with a freshly generated one."""
        private_key = generate_private_key(key_type, key_size)
        self.private_key, self.public_key = private_key, private_key.public_key()
        logger.debug('Rotated account key to %s', self.details())

    def private_pem(self) -> str:
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode()

    def public_pem(self) -> str:
        return self.public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode()

    @property
    def key_type(self) -> str:
        if isinstance(self.private_key, rsa.RSAPrivateKey):
            return constants.KEY_TYPE_RSA
        return constants.KEY_TYPE_EC

    def details(self) -> Dict[str, Any]:
        """``{"type": "RSA", "size": 2048}`` or ``{"type": "ECC", "size": "P-384"}``."""
        if isinstance(self.private_key, rsa.RSAPrivateKey):
            return {'type': constants.KEY_TYPE_RSA, 'size': self.private_key.key_size}
        return {'type': constants.KEY_TYPE_EC, 'size': jwk.curve_name(self.private_key.curve)}

    def jwk(self) -> Dict[str, str]:
        return jwk.compute(self.private_key)

    def public_jwk(self) -> jose.JWK:
        """Public key as a josepy JWK."""
        return jwk.public_jwk(self.public_key)

    def thumbprint(self) -> str:
        return jwk.thumbprint(self.private_key)
