"""Tests for acmelite.directory."""
import sys
import unittest

import pytest

from acmelite import errors
from acmelite._internal.tests import test_util


class DirectoryTest(unittest.TestCase):
    """Tests for acmelite.directory.Directory."""

    def setUp(self):
        from acmelite.directory import Directory
        self.net = test_util.make_net()
        self.directory = Directory(self.net, 'https://ca.example/directory')

    def test_endpoints(self):
        assert self.directory.new_nonce() == 'https://ca.example/acme/new-nonce'
        assert self.directory.new_account() == 'https://ca.example/acme/new-acct'
        assert self.directory.new_order() == 'https://ca.example/acme/new-order'
        assert self.directory.revoke_cert() == 'https://ca.example/acme/revoke-cert'
        assert self.directory.key_change() == 'https://ca.example/acme/key-change'
        assert self.directory.renewal_info() == 'https://ca.example/acme/renewal-info'
        assert self.directory.terms_of_service() == 'https://ca.example/terms.pdf'
        assert self.directory.external_account_required() is False

    def test_cached(self):
        self.directory.new_nonce()
        self.directory.new_order()
        self.directory.all()
        self.net.get.assert_called_once_with('https://ca.example/directory')

    def test_refresh(self):
        self.directory.all()
        self.directory.refresh()
        assert self.net.get.call_count == 2
        self.directory.clear_cache()
        self.directory.all()
        assert self.net.get.call_count == 3

    def test_supports_ari(self):
        from acmelite.directory import Directory
        assert self.directory.supports_ari()
        jobj = dict(test_util.DIRECTORY)
        del jobj['renewalInfo']
        directory = Directory(test_util.make_net(jobj), 'https://ca.example/directory')
        assert not directory.supports_ari()
        assert directory.renewal_info() is None

    def test_missing_resource(self):
        from acmelite.directory import Directory
        jobj = dict(test_util.DIRECTORY)
        del jobj['keyChange']
        directory = Directory(test_util.make_net(jobj), 'https://ca.example/directory')
        with pytest.raises(errors.AcmeError):
            directory.key_change()

    def test_http_error(self):
        self.net.get.return_value = test_util.make_response(503)
        with pytest.raises(errors.AcmeError) as exc_info:
            self.directory.all()
        assert exc_info.value.status_code == 503

    def test_not_json(self):
        self.net.get.return_value = test_util.make_response(200, text='<html>')
        with pytest.raises(errors.AcmeError):
            self.directory.all()

    def test_order_url(self):
        assert self.directory.order_url('42', '123') == 'https://ca.example/acme/order/42/123'


class NonceTest(unittest.TestCase):
    """Tests for acmelite.directory.Nonce."""

    def setUp(self):
        from acmelite.directory import Directory
        from acmelite.directory import Nonce
        self.net = test_util.make_net()
        self.nonce = Nonce(self.net, Directory(self.net, 'https://ca.example/directory'))

    def test_get_new(self):
        assert self.nonce.get_new() == 'nonce-value'
        self.net.head.assert_called_once_with('https://ca.example/acme/new-nonce')

    def test_never_cached(self):
        self.nonce.get_new()
        self.nonce.get_new()
        assert self.net.head.call_count == 2

    def test_missing_nonce(self):
        self.net.head.return_value = test_util.make_response(headers={})
        with pytest.raises(errors.MissingNonce):
            self.nonce.get_new()


if __name__ == '__main__':
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
