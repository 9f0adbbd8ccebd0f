"""ACME Renewal Information (ARI).

A certificate is identified towards the ARI endpoint by its CertID,
``base64url(AuthorityKeyIdentifier) "." base64url(serial number)``.

"""
import logging
import re
from typing import Tuple
from typing import Union

from cryptography import x509
import josepy as jose

from acmelite import crypto_util
from acmelite import errors
from acmelite import messages
from acmelite import network
from acmelite import util
from acmelite.directory import Directory

logger = logging.getLogger(__name__)

_B64URL_RE = re.compile(r'[A-Za-z0-9_-]+')
_HEX_RE = re.compile(r'[0-9A-Fa-f]*')


def _is_b64url(segment: str) -> bool:
    # A single character left over after full quanta cannot encode a byte.
    return bool(_B64URL_RE.fullmatch(segment)) and len(segment) % 4 != 1


def format_cert_id(key_identifier: bytes, serial: bytes) -> str:
    """CertID from raw Authority Key Identifier and serial number bytes."""
    if not key_identifier or not serial:
        raise errors.CertIDError('Key identifier and serial number must not be empty')
    return f'{jose.encode_b64jose(key_identifier)}.{jose.encode_b64jose(serial)}'


def parse_cert_id(cert_id: str) -> Tuple[bytes, bytes]:
    """Split a CertID into raw key identifier and serial number bytes.

    :raises .CertIDError: unless ``cert_id`` has exactly one ``.`` between
        two non-empty base64url segments.

    """
    if cert_id.count('.') != 1:
        raise errors.CertIDError(f'CertID must contain exactly one ".": {cert_id!r}')
    key_identifier, serial = cert_id.split('.')
    if not (_is_b64url(key_identifier) and _is_b64url(serial)):
        raise errors.CertIDError(f'CertID segments must be base64url: {cert_id!r}')
    try:
        return jose.decode_b64jose(key_identifier), jose.decode_b64jose(serial)
    except jose.DeserializationError as error:
        raise errors.CertIDError(f'Invalid CertID {cert_id!r}: {error}')


def is_valid_cert_id(cert_id: str) -> bool:
    try:
        parse_cert_id(cert_id)
    except errors.CertIDError:
        return False
    return True


def _hex_to_bytes(text: str, what: str) -> bytes:
    if not text or not _HEX_RE.fullmatch(text):
        raise errors.CertIDError(f'Invalid {what}: {text!r}')
    if len(text) % 2:
        text = '0' + text
    return bytes.fromhex(text)


def key_identifier_from_hex(text: str) -> bytes:
    """Raw key identifier from its textual form.

    Accepts ``keyid:68:BB:04...`` as printed by OpenSSL as well as bare
    hex, with or without colons.

    """
    text = text.strip()
    if text.lower().startswith('keyid:'):
        text = text[len('keyid:'):]
    return _hex_to_bytes(text.replace(':', '').strip(), 'key identifier')


def serial_from_hex(text: str) -> bytes:
    """Raw serial number from hex, with or without ``0x`` prefix.

    Odd-length input is padded with a leading zero nibble.

    """
    text = text.strip()
    if text.lower().startswith('0x'):
        text = text[2:]
    return _hex_to_bytes(text.replace(':', ''), 'serial number')


def serial_to_bytes(serial: int) -> bytes:
    """DER INTEGER content octets of ``serial``.

    A leading zero byte is kept when the high bit is set, as ARI requires
    the serial exactly as encoded in the certificate.

    """
    return serial.to_bytes((serial.bit_length() + 8) // 8, 'big', signed=True)


def cert_id_from_certificate(certificate: Union[bytes, str, x509.Certificate]) -> str:
    """CertID of a PEM certificate (the first one, for a chain).

    :raises .CertIDError: if the certificate has no Authority Key Identifier.

    """
    cert = crypto_util.load_certificate(certificate)
    try:
        aki = cert.extensions.get_extension_for_oid(
            x509.ExtensionOID.AUTHORITY_KEY_IDENTIFIER).value.key_identifier
    except x509.ExtensionNotFound:
        aki = None
    if not aki:
        raise errors.CertIDError('Certificate has no Authority Key Identifier')
    return format_cert_id(aki, serial_to_bytes(cert.serial_number))


def cert_id_from_bundle(bundle: str) -> str:
    """CertID of the leaf (first) certificate of a PEM bundle."""
    return cert_id_from_certificate(bundle)


def cert_id_from_file(path: str) -> str:
    try:
        with open(path, 'rb') as f:
            data = f.read()
    except OSError as error:
        raise errors.CertIDError(f'Could not read certificate file {path}: {error}')
    return cert_id_from_certificate(data)


class RenewalInfos:
    """renewalInfo endpoint.

    Requests are plain unauthenticated GETs.

    """

    def __init__(self, net: network.ClientNetwork, directory: Directory) -> None:
        self.net = net
        self.directory = directory

    def get(self, cert_id: str) -> messages.RenewalInfo:
        """Renewal information for the certificate ``cert_id``.

        :raises .AcmeError: if ARI is unsupported, ``cert_id`` is invalid,
            or the server has no information for it.

        """
        base = self.directory.renewal_info()
        if base is None:
            raise errors.AcmeError('ACME server does not support ARI (renewalInfo)')
        if not is_valid_cert_id(cert_id):
            raise errors.AcmeError(f'Invalid certificate identifier: {cert_id}')

        response = self.net.get(f'{base.rstrip("/")}/{cert_id}')
        if response.status_code == 404:
            raise errors.AcmeError(
                'Certificate not found or ARI information not available.', status_code=404)
        if response.status_code != 200:
            raise network.error_from_response(response, errors.AcmeError,
                                              'Getting renewal information failed')
        try:
            info = messages.RenewalInfo.from_json(response.json())
        except (ValueError, jose.DeserializationError) as error:
            raise errors.AcmeError(f'Invalid renewal information: {error}',
                                   status_code=response.status_code)
        retry_after = util.parse_retry_after(response.headers.get('Retry-After'))
        if retry_after is not None and not info.retry_after:
            info = info.update(retry_after=(retry_after,))
        return info

    def get_from_certificate(self, certificate: Union[bytes, str]) -> messages.RenewalInfo:
        return self.get(cert_id_from_certificate(certificate))

    def get_from_bundle(self, bundle: str) -> messages.RenewalInfo:
        return self.get(cert_id_from_bundle(bundle))

    def get_from_file(self, path: str) -> messages.RenewalInfo:
        return self.get(cert_id_from_file(path))
