"""Tests for acmelite.jws."""
import json
import sys
import unittest
from unittest import mock

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import hmac
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature
import josepy as jose
import pytest

from acmelite import errors
from acmelite import jwk
from acmelite import messages
from acmelite._internal.tests import test_util

RSA_KEY = test_util.load_private_key('rsa2048_key.pem')
EC_KEYS = {
    'P-256': test_util.load_private_key('ec_p256_key.pem'),
    'P-384': test_util.load_private_key('ec_p384_key.pem'),
    'P-521': test_util.load_private_key('ec_p521_key.pem'),
}
URL = 'https://ca.example/acme/new-order'


def _decode_json(value):
    return json.loads(jose.decode_b64jose(value).decode())


def _signing_input(jws_obj):
    return '{0}.{1}'.format(jws_obj['protected'], jws_obj['payload']).encode('ascii')


class AlgorithmTest(unittest.TestCase):
    """Tests for acmelite.jws.algorithm."""

    def test_rsa(self):
        from acmelite.jws import algorithm
        assert algorithm(RSA_KEY) == 'RS256'
        assert algorithm(test_util.load_private_key('rsa4096_key.pem')) == 'RS256'

    def test_ec(self):
        from acmelite.jws import algorithm
        assert algorithm(EC_KEYS['P-256']) == 'ES256'
        assert algorithm(EC_KEYS['P-384']) == 'ES384'
        assert algorithm(EC_KEYS['P-521']) == 'ES512'

    def test_unsupported_key(self):
        from acmelite.jws import algorithm
        with pytest.raises(errors.UnsupportedKeyError):
            algorithm(test_util.load_private_key('ed25519_key.pem'))

    def test_unsupported_curve(self):
        from acmelite.jws import algorithm
        with pytest.raises(errors.UnsupportedCurveError):
            algorithm(ec.generate_private_key(ec.SECP256K1()))


class DerToRawSignatureTest(unittest.TestCase):
    """Tests for acmelite.jws.der_to_raw_signature."""

    def _call(self, der, length):
        from acmelite.jws import der_to_raw_signature
        return der_to_raw_signature(der, length)

    def test_strips_leading_zero(self):
        r = (1 << 255) | 5
        s = 7
        raw = self._call(encode_dss_signature(r, s), 32)
        assert len(raw) == 64
        assert raw[:32] == r.to_bytes(32, 'big')
        assert raw[32:] == s.to_bytes(32, 'big')

    def test_long_form_length(self):
        r = (1 << 520) | 3
        s = (1 << 519) | 9
        der = encode_dss_signature(r, s)
        assert der[1] == 0x81
        raw = self._call(der, 66)
        assert raw == r.to_bytes(66, 'big') + s.to_bytes(66, 'big')

    def test_fixed_length(self):
        for length in (32, 48, 66):
            for r, s in ((1, 1), (2 ** 100, 3), ((1 << (length * 8 - 1)), 1)):
                assert len(self._call(encode_dss_signature(r, s), length)) == 2 * length

    def test_bad_sequence_tag(self):
        der = bytearray(encode_dss_signature(5, 6))
        der[0] = 0x31
        with pytest.raises(errors.SignatureFormatError):
            self._call(bytes(der), 32)

    def test_bad_integer_tag(self):
        der = bytearray(encode_dss_signature(5, 6))
        der[2] = 0x03
        with pytest.raises(errors.SignatureFormatError):
            self._call(bytes(der), 32)

    def test_truncated(self):
        der = encode_dss_signature(2 ** 200, 2 ** 201)
        with pytest.raises(errors.SignatureFormatError):
            self._call(der[:-3], 32)

    def test_trailing_data(self):
        der = encode_dss_signature(5, 6)
        with pytest.raises(errors.SignatureFormatError):
            self._call(der + b'\x00', 32)

    def test_empty(self):
        with pytest.raises(errors.SignatureFormatError):
            self._call(b'', 32)

    def test_integer_too_long(self):
        with pytest.raises(errors.SignatureFormatError):
            self._call(encode_dss_signature(2 ** 300, 1), 32)


class SignTest(unittest.TestCase):
    """Tests for acmelite.jws.sign."""

    def _sign(self, key, payload=None, kid='https://ca.example/acme/acct/1'):
        from acmelite.jws import sign
        return sign(key, URL, 'nonce-123', payload, kid=kid)

    def test_protected_header_with_kid(self):
        jws_obj = self._sign(RSA_KEY)
        assert _decode_json(jws_obj['protected']) == {
            'alg': 'RS256',
            'kid': 'https://ca.example/acme/acct/1',
            'nonce': 'nonce-123',
            'url': URL,
        }

    def test_protected_header_with_jwk(self):
        jws_obj = self._sign(EC_KEYS['P-384'], kid=None)
        header = _decode_json(jws_obj['protected'])
        assert 'kid' not in header
        assert header['alg'] == 'ES384'
        assert header['jwk'] == jwk.compute(EC_KEYS['P-384'])

    def test_empty_payload(self):
        assert self._sign(RSA_KEY)['payload'] == ''

    def test_empty_object_payload(self):
        assert jose.decode_b64jose(self._sign(RSA_KEY, {})['payload']) == b'{}'

    def test_json_payload(self):
        payload = {'onlyReturnExisting': True}
        assert _decode_json(self._sign(RSA_KEY, payload)['payload']) == payload

    def test_jose_object_payload(self):
        payload = messages.NewOrder(identifiers=(
            messages.Identifier(typ=messages.IDENTIFIER_FQDN, value='example.com'),))
        assert _decode_json(self._sign(RSA_KEY, payload)['payload']) == {
            'identifiers': [{'type': 'dns', 'value': 'example.com'}],
        }

    def test_no_padding(self):
        for value in self._sign(EC_KEYS['P-521'], {'a': 'b'}).values():
            assert '=' not in value
            assert '+' not in value
            assert '/' not in value

    def test_rsa_signature_verifies(self):
        jws_obj = self._sign(RSA_KEY, {'x': 1})
        RSA_KEY.public_key().verify(
            jose.decode_b64jose(jws_obj['signature']), _signing_input(jws_obj),
            padding.PKCS1v15(), hashes.SHA256())

    def test_ec_signatures_verify(self):
        hash_classes = {'P-256': hashes.SHA256, 'P-384': hashes.SHA384,
                        'P-521': hashes.SHA512}
        for crv, key in EC_KEYS.items():
            length = jwk.COORDINATE_LENGTHS[crv]
            jws_obj = self._sign(key, {'crv': crv})
            raw = jose.decode_b64jose(jws_obj['signature'])
            assert len(raw) == 2 * length
            der = encode_dss_signature(int.from_bytes(raw[:length], 'big'),
                                       int.from_bytes(raw[length:], 'big'))
            key.public_key().verify(der, _signing_input(jws_obj),
                                    ec.ECDSA(hash_classes[crv]()))

    def test_deterministic_header(self):
        first = self._sign(RSA_KEY, {'b': 1, 'a': 2})
        second = self._sign(RSA_KEY, {'a': 2, 'b': 1})
        assert first['protected'] == second['protected']
        assert first['payload'] == second['payload']

    def test_canonical_header(self):
        protected = jose.decode_b64jose(self._sign(RSA_KEY)['protected']).decode()
        assert protected == (
            '{"alg":"RS256","kid":"https://ca.example/acme/acct/1",'
            '"nonce":"nonce-123","url":"%s"}' % URL)

    def test_verifies_as_jws(self):
        from acmelite.jws import JWS
        for key in (RSA_KEY, EC_KEYS['P-256'], EC_KEYS['P-521']):
            parsed = JWS.from_json(self._sign(key, {'a': 1}, kid=None))
            assert parsed.verify(jwk.public_jwk(key))
            assert parsed.signature.combined.nonce == 'nonce-123'
            assert parsed.signature.combined.url == URL

    def test_malformed_der_propagates(self):
        with mock.patch('acmelite.jws.der_to_raw_signature') as mock_convert:
            mock_convert.side_effect = errors.SignatureFormatError('bad')
            with pytest.raises(errors.SignatureFormatError):
                self._sign(EC_KEYS['P-256'])
        assert mock_convert.call_args[0][1] == 32


class ECDSATest(unittest.TestCase):
    """Tests for acmelite.jws.ECDSA."""

    def test_sign_and_verify(self):
        from acmelite.jws import ECDSA
        alg = ECDSA('ES384', hashes.SHA384)
        key = EC_KEYS['P-384']
        sig = alg.sign(key, b'message')
        assert len(sig) == 96
        assert alg.verify(key.public_key(), b'message', sig)
        assert not alg.verify(key.public_key(), b'other', sig)

    def test_signing_failure(self):
        from acmelite.jws import ECDSA
        key = mock.MagicMock()
        key.sign.side_effect = ValueError('digest too large')
        with pytest.raises(errors.SigningError):
            ECDSA('ES256', hashes.SHA256).sign(key, b'message')

    def test_to_json(self):
        from acmelite.jws import SIGNATURE_ALGORITHMS
        assert [alg.to_partial_json() for alg in SIGNATURE_ALGORITHMS.values()] == [
            'RS256', 'ES256', 'ES384', 'ES512']


class Base64Test(unittest.TestCase):
    """Tests for the base64url codec used on the wire."""

    def test_round_trip(self):
        for data in (b'', b'\x00', b'\xff\xfe', b'\xfb\xff\xbf', bytes(range(256))):
            encoded = jose.encode_b64jose(data)
            assert not set('+/=') & set(encoded)
            assert jose.decode_b64jose(encoded) == data


class ExternalAccountBindingTest(unittest.TestCase):
    """Tests for acmelite.jws.external_account_binding."""

    def setUp(self):
        self.secret = b'0123456789abcdef0123456789abcdef'
        self.hmac_key = jose.encode_b64jose(self.secret)
        self.key = EC_KEYS['P-256']

    def _call(self, kid='kid-1', hmac_key=None):
        from acmelite.jws import external_account_binding
        return external_account_binding(
            self.key, kid, self.hmac_key if hmac_key is None else hmac_key,
            'https://ca.example/acme/new-acct')

    def test_structure(self):
        eab = self._call()
        assert _decode_json(eab['protected']) == {
            'alg': 'HS256',
            'kid': 'kid-1',
            'url': 'https://ca.example/acme/new-acct',
        }
        assert _decode_json(eab['payload']) == jwk.compute(self.key)

    def test_signature(self):
        eab = self._call()
        mac = hmac.HMAC(self.secret, hashes.SHA256())
        mac.update(_signing_input(eab))
        assert jose.decode_b64jose(eab['signature']) == mac.finalize()

    def test_short_key(self):
        with pytest.raises(errors.AccountError):
            self._call(hmac_key=jose.encode_b64jose(b'short'))

    def test_empty_key(self):
        with pytest.raises(errors.AccountError):
            self._call(hmac_key='')

    def test_empty_kid(self):
        with pytest.raises(errors.AccountError):
            self._call(kid='')

    def test_decode_eab_key(self):
        from acmelite.jws import decode_eab_key
        assert decode_eab_key(self.hmac_key) == self.secret


if __name__ == '__main__':
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
