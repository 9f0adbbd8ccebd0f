"""Challenge validation material for http-01 and dns-01."""
import enum

from cryptography.hazmat.primitives import hashes
import josepy as jose


class ChallengeType(str, enum.Enum):
    """Supported challenge types."""
    HTTP01 = 'http-01'
    DNS01 = 'dns-01'


URI_ROOT_PATH = '.well-known/acme-challenge'
DNS_LABEL = '_acme-challenge'


def key_authorization(token: str, account_key: jose.JWK) -> str:
    """``token "." thumbprint`` (RFC 8555 section 8.1).

    :param str token: Challenge token.
    :param JWK account_key: Public account key.

    """
    return token + '.' + jose.encode_b64jose(account_key.thumbprint())


def http01_path(token: str) -> str:
    """Path at which the http-01 key authorization must be served."""
    return '/' + URI_ROOT_PATH + '/' + token


def dns01_digest(token: str, account_key: jose.JWK) -> str:
    """TXT record value: base64url SHA-256 of the key authorization."""
    digest = hashes.Hash(hashes.SHA256())
    digest.update(key_authorization(token, account_key).encode('utf-8'))
    return jose.encode_b64jose(digest.finalize())


def dns01_record_name(domain: str) -> str:
    """Name of the TXT record, the wildcard label stripped."""
    if domain.startswith('*.'):
        domain = domain[2:]
    return f'{DNS_LABEL}.{domain}'
