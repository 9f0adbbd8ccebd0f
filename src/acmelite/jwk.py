"""JSON Web Key representation of account keys and RFC 7638 thumbprints."""
from typing import Dict
from typing import Union

from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric import rsa
import josepy as jose

from acmelite import errors

PublicOrPrivateKey = Union[
    rsa.RSAPrivateKey, rsa.RSAPublicKey,
    ec.EllipticCurvePrivateKey, ec.EllipticCurvePublicKey,
]

CURVE_NAMES = {
    'secp256r1': 'P-256',
    'secp384r1': 'P-384',
    'secp521r1': 'P-521',
}
"""Map of `cryptography` curve names to JWK ``crv`` names."""

COORDINATE_LENGTHS = {
    'P-256': 32,
    'P-384': 48,
    'P-521': 66,
}
"""Byte length of a coordinate (and of r and s in a signature) per curve."""


def curve_name(curve: ec.EllipticCurve) -> str:
    """JWK name of ``curve``.

    :raises .UnsupportedCurveError: for curves other than P-256, P-384 and P-521.

    """
    try:
        return CURVE_NAMES[curve.name]
    except KeyError:
        raise errors.UnsupportedCurveError(f'Unsupported elliptic curve: {curve.name}')


def _public_key(key: PublicOrPrivateKey) -> Union[rsa.RSAPublicKey, ec.EllipticCurvePublicKey]:
    if isinstance(key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
        return key.public_key()
    if isinstance(key, (rsa.RSAPublicKey, ec.EllipticCurvePublicKey)):
        return key
    raise errors.UnsupportedKeyError(f'Unsupported key type: {type(key).__name__}')


def wrap(key: PublicOrPrivateKey) -> jose.JWK:
    """josepy JWK holding ``key``; private keys are kept private.

    :raises .UnsupportedKeyError: for keys other than RSA and EC.
    :raises .UnsupportedCurveError: for curves other than P-256, P-384 and P-521.

    """
    if isinstance(key, (rsa.RSAPrivateKey, rsa.RSAPublicKey)):
        return jose.JWKRSA(key=key)
    if isinstance(key, (ec.EllipticCurvePrivateKey, ec.EllipticCurvePublicKey)):
        curve_name(key.curve)
        return jose.JWKEC(key=key)
    raise errors.UnsupportedKeyError(f'Unsupported key type: {type(key).__name__}')


def public_jwk(key: PublicOrPrivateKey) -> jose.JWK:
    return wrap(_public_key(key))


def compute(key: PublicOrPrivateKey) -> Dict[str, str]:
    """Public JSON Web Key of ``key``.

    RSA keys yield ``{"e", "kty", "n"}``, EC keys ``{"crv", "kty", "x", "y"}``
    with both coordinates left-padded to the curve's coordinate length.
    Only public members are ever included.

    :param key: RSA or EC key, private or public.
    :rtype: dict

    """
    return public_jwk(key).to_json()


def thumbprint(key: PublicOrPrivateKey) -> str:
    """RFC 7638 thumbprint of ``key``: base64url SHA-256 of the canonical JWK."""
    return jose.encode_b64jose(public_jwk(key).thumbprint())
