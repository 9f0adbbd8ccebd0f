"""Crypto utilities."""
import base64
import binascii
from datetime import datetime
import re
import typing
from typing import List
from typing import Union

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import Encoding

from acmelite import errors

CSR_PEM_RE = re.compile(
    r'-----BEGIN\s+(?:NEW\s+)?CERTIFICATE\s+REQUEST-----(.*?)'
    r'-----END\s+(?:NEW\s+)?CERTIFICATE\s+REQUEST-----', re.DOTALL)


def _to_bytes(data: Union[bytes, str]) -> bytes:
    return data.encode() if isinstance(data, str) else data


def csr_pem_to_der(csr: Union[bytes, str]) -> bytes:
    """Strip the PEM armor of ``csr`` and decode the base64 body.

    A bare base64 body (no armor) is accepted as well.

    :raises .CryptoError: if the body is not valid base64.

    """
    text = csr.decode() if isinstance(csr, bytes) else csr
    match = CSR_PEM_RE.search(text)
    body = match.group(1) if match else text
    try:
        return base64.b64decode(''.join(body.split()), validate=True)
    except binascii.Error as error:
        raise errors.CryptoError(f'Invalid certificate signing request: {error}')


def load_certificate(data: Union[bytes, str, x509.Certificate]) -> x509.Certificate:
    """Load a PEM certificate; the first one if ``data`` is a chain.

    :raises .CertificateError: if ``data`` holds no parsable certificate.

    """
    if isinstance(data, x509.Certificate):
        return data
    try:
        return x509.load_pem_x509_certificate(_to_bytes(data))
    except ValueError as error:
        raise errors.CertificateError(f'Could not parse the certificate: {error}')


def certificate_to_der(data: Union[bytes, str, x509.Certificate]) -> bytes:
    return load_certificate(data).public_bytes(Encoding.DER)


def not_valid_after(data: Union[bytes, str, x509.Certificate]) -> datetime:
    """Expiry of the certificate as an aware UTC datetime."""
    return load_certificate(data).not_valid_after_utc


def get_names_from_certificate(data: Union[bytes, str, x509.Certificate]) -> List[str]:
    """First Common Name followed by all DNS Subject Alternative Names."""
    cert = load_certificate(data)
    cns = [
        typing.cast(str, c.value)
        for c in cert.subject.get_attributes_for_oid(x509.NameOID.COMMON_NAME)
    ]
    try:
        san_ext = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except x509.ExtensionNotFound:
        dns_names = []
    else:
        dns_names = san_ext.value.get_values_for_type(x509.DNSName)

    if not cns:
        return dns_names
    return [cns[0]] + [d for d in dns_names if d != cns[0]]


def make_csr(private_key_pem: Union[bytes, str], domains: List[str]) -> bytes:
    """Generate a CSR containing domains as subjectAltNames.

    The first domain is also used as the Common Name when it fits.

    :param private_key_pem: Certificate private key, in PEM format.
    :param list domains: DNS names to include in subjectAltNames of CSR.

    :returns: buffer PEM-encoded Certificate Signing Request.

    """
    private_key = serialization.load_pem_private_key(_to_bytes(private_key_pem), password=None)
    if not isinstance(private_key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
        raise ValueError(f"Invalid private key type: {type(private_key)}")
    if not domains:
        raise ValueError("At least one domain is required")

    # Common Names are limited to 64 characters.
    subject = []
    if len(domains[0]) <= 64:
        subject.append(x509.NameAttribute(x509.NameOID.COMMON_NAME, domains[0]))
    builder = (
        x509.CertificateSigningRequestBuilder()
        .subject_name(x509.Name(subject))
        .add_extension(
            x509.SubjectAlternativeName([x509.DNSName(d) for d in domains]),
            critical=False,
        )
    )
    csr = builder.sign(private_key, hashes.SHA256())
    return csr.public_bytes(Encoding.PEM)
