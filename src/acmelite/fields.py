"""josepy fields for RFC 8555 timestamp and DER members."""
import datetime
from typing import Any

import josepy as jose
import pyrfc3339


class RFC3339Field(jose.Field):
    """RFC 3339 timestamp.

    Decodes to an aware `datetime.datetime`; values must be aware when
    encoding.

    """

    @classmethod
    def default_encoder(cls, value: datetime.datetime) -> str:
        return pyrfc3339.generate(value)

    @classmethod
    def default_decoder(cls, value: str) -> datetime.datetime:
        try:
            return pyrfc3339.parse(value)
        except ValueError as error:
            raise jose.DeserializationError(error)


class DERField(jose.Field):
    """base64url encoded DER field.

    Holds raw DER bytes; the wire form is unpadded base64url, as used for
    the ``csr`` of a finalize request and the ``certificate`` of a
    revocation request.

    """

    @classmethod
    def default_encoder(cls, value: bytes) -> str:
        return jose.encode_b64jose(value)

    @classmethod
    def default_decoder(cls, value: str) -> bytes:
        return jose.decode_b64jose(value)


def rfc3339(json_name: str, omitempty: bool = False) -> Any:
    """RFC 3339 field typed as `Any` so it can annotate datetime attributes."""
    return RFC3339Field(json_name, omitempty=omitempty)


def der(json_name: str) -> Any:
    """Generates a type-friendly base64url DER field."""
    return DERField(json_name)
