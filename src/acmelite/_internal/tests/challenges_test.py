"""Tests for acmelite.challenges."""
import hashlib
import sys
import unittest

import josepy as jose
import pytest

from acmelite._internal.tests import test_util

TOKEN = 'evaGxfADs6pSRb2LAv9IZf17Dt3juxGJ-PCt92wr-oA'
KEY = test_util.load_account_key('rsa2048_key.pem')


class ChallengeTypeTest(unittest.TestCase):
    """Tests for acmelite.challenges.ChallengeType."""

    def test_values(self):
        from acmelite.challenges import ChallengeType
        assert ChallengeType('http-01') is ChallengeType.HTTP01
        assert ChallengeType.DNS01 == 'dns-01'

    def test_unknown(self):
        from acmelite.challenges import ChallengeType
        with pytest.raises(ValueError):
            ChallengeType('tls-alpn-01')


class KeyAuthorizationTest(unittest.TestCase):
    """Tests for acmelite.challenges.key_authorization."""

    def test_it(self):
        from acmelite.challenges import key_authorization
        assert key_authorization(TOKEN, KEY.public_jwk()) == TOKEN + '.' + KEY.thumbprint()

    def test_matches_josepy_thumbprint(self):
        from acmelite.challenges import key_authorization
        jwk = jose.JWKRSA(key=KEY.public_key)
        assert key_authorization(TOKEN, jwk) == (
            TOKEN + '.' + jose.encode_b64jose(jwk.thumbprint()))

    def test_ec_key(self):
        from acmelite.challenges import key_authorization
        ec_key = test_util.load_account_key('ec_p384_key.pem')
        token, thumbprint = key_authorization(TOKEN, ec_key.public_jwk()).split('.')
        assert token == TOKEN
        assert thumbprint == ec_key.thumbprint()


class HTTP01Test(unittest.TestCase):
    """Tests for acmelite.challenges.http01_path."""

    def test_path(self):
        from acmelite.challenges import http01_path
        assert http01_path(TOKEN) == '/.well-known/acme-challenge/' + TOKEN


class DNS01Test(unittest.TestCase):
    """Tests for the dns-01 helpers."""

    def test_digest(self):
        from acmelite.challenges import dns01_digest
        expected = jose.encode_b64jose(
            hashlib.sha256((TOKEN + '.' + KEY.thumbprint()).encode()).digest())
        assert dns01_digest(TOKEN, KEY.public_jwk()) == expected
        assert len(expected) == 43

    def test_record_name(self):
        from acmelite.challenges import dns01_record_name
        assert dns01_record_name('example.com') == '_acme-challenge.example.com'
        assert dns01_record_name('*.example.com') == '_acme-challenge.example.com'


if __name__ == '__main__':
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
