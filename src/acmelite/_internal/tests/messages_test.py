"""Tests for acmelite.messages."""
import datetime
import sys
import unittest
from unittest import mock

import josepy as jose
import pytest

from acmelite._internal.tests import test_util

UTC = datetime.timezone.utc


class ProblemTest(unittest.TestCase):
    """Tests for acmelite.messages.Problem."""

    def setUp(self):
        from acmelite.messages import Problem
        self.problem = Problem.with_code('badNonce', detail='stale', title='Bad nonce')
        self.jobj = {
            'type': 'urn:ietf:params:acme:error:badNonce',
            'detail': 'stale',
            'title': 'Bad nonce',
        }

    def test_to_partial_json(self):
        assert self.jobj == self.problem.to_partial_json()

    def test_from_json(self):
        from acmelite.messages import Problem
        assert self.problem == Problem.from_json(self.jobj)

    def test_default_typ(self):
        from acmelite.messages import Problem
        assert Problem.from_json({'detail': 'x'}).typ == 'about:blank'

    def test_code(self):
        from acmelite.messages import Problem
        assert self.problem.code == 'badNonce'
        assert Problem(typ='custom').code is None

    def test_with_unknown_code(self):
        from acmelite.messages import Problem
        with pytest.raises(ValueError):
            Problem.with_code('notAnError')

    def test_str(self):
        assert str(self.problem) == (
            'urn:ietf:params:acme:error:badNonce :: '
            'The client sent an unacceptable anti-replay nonce :: stale :: Bad nonce')

    def test_str_with_identifier_and_subproblems(self):
        from acmelite.messages import Identifier
        from acmelite.messages import IDENTIFIER_FQDN
        from acmelite.messages import Problem
        sub = Problem.with_code('caa', detail='forbidden',
                                identifier=Identifier(typ=IDENTIFIER_FQDN, value='a.example'))
        problem = Problem.with_code('compound', subproblems=(sub,))
        result = str(problem)
        assert 'Problem for a.example' in result
        assert result.count('\n') == 1

    def test_subproblems_from_json(self):
        from acmelite.messages import Problem
        problem = Problem.from_json({
            'type': 'urn:ietf:params:acme:error:compound',
            'subproblems': [
                {'type': 'urn:ietf:params:acme:error:dns', 'detail': 'NXDOMAIN',
                 'identifier': {'type': 'dns', 'value': 'b.example'}},
            ],
        })
        assert len(problem.subproblems) == 1
        assert problem.subproblems[0].identifier.value == 'b.example'

    def test_is_acme_error(self):
        from acmelite.messages import is_acme_error
        from acmelite.messages import Problem
        assert is_acme_error(self.problem)
        assert not is_acme_error(Problem(detail='x'))
        assert not is_acme_error('urn:ietf:params:acme:error:badNonce')


class ConstantTest(unittest.TestCase):
    """Tests for acmelite.messages.Status."""

    def test_from_json(self):
        from acmelite.messages import Status
        from acmelite.messages import STATUS_READY
        assert Status.from_json('ready') is STATUS_READY
        assert STATUS_READY.to_partial_json() == 'ready'

    def test_unknown(self):
        from acmelite.messages import Status
        with pytest.raises(jose.DeserializationError):
            Status.from_json('bogus')

    def test_equality(self):
        from acmelite.messages import Status
        from acmelite.messages import STATUS_VALID
        assert Status('valid') == STATUS_VALID
        assert hash(Status('valid')) == hash(STATUS_VALID)
        assert repr(STATUS_VALID) == 'Status(valid)'


class DirectoryTest(unittest.TestCase):
    """Tests for acmelite.messages.Directory."""

    def setUp(self):
        from acmelite.messages import Directory
        self.directory = Directory.from_json(test_util.DIRECTORY)

    def test_getitem(self):
        assert self.directory['newNonce'] == 'https://ca.example/acme/new-nonce'

    def test_contains(self):
        assert 'newOrder' in self.directory
        assert 'meta' not in self.directory
        assert 'foo' not in self.directory

    def test_getitem_fails_with_key_error(self):
        with pytest.raises(KeyError):
            self.directory.__getitem__('foo')

    def test_get(self):
        assert self.directory.get('renewalInfo') == 'https://ca.example/acme/renewal-info'
        assert self.directory.get('foo') is None

    def test_meta(self):
        meta = self.directory.meta
        assert meta.terms_of_service == 'https://ca.example/terms.pdf'
        assert meta.external_account_required is False

    def test_source_not_modified(self):
        assert isinstance(test_util.DIRECTORY['meta'], dict)

    def test_missing_meta(self):
        from acmelite.messages import Directory
        directory = Directory.from_json({'newNonce': 'https://ca.example/n'})
        assert directory.meta.terms_of_service is None
        assert not directory.meta.external_account_required


class RegistrationTest(unittest.TestCase):
    """Tests for acmelite.messages.Registration."""

    def test_emails(self):
        from acmelite.messages import Registration
        reg = Registration(contact=('mailto:admin@example.com', 'tel:+1234',
                                    'mailto:ops@example.com'))
        assert reg.emails == ('admin@example.com', 'ops@example.com')

    def test_new_registration_json(self):
        from acmelite.messages import NewRegistration
        reg = NewRegistration(contact=('mailto:admin@example.com',),
                              terms_of_service_agreed=True)
        assert reg.to_partial_json() == {
            'contact': ('mailto:admin@example.com',),
            'termsOfServiceAgreed': True,
        }

    def test_from_json(self):
        from acmelite.messages import Registration
        from acmelite.messages import STATUS_VALID
        reg = Registration.from_json({
            'status': 'valid',
            'contact': ['mailto:a@example.com'],
            'orders': 'https://ca.example/acme/acct/42/orders',
            'createdAt': '2026-10-01T00:00:00Z',
        })
        assert reg.status == STATUS_VALID
        assert reg.created_at == datetime.datetime(2026, 10, 1, tzinfo=UTC)


class AuthorizationTest(unittest.TestCase):
    """Tests for acmelite.messages.Authorization."""

    def test_from_json(self):
        from acmelite.messages import Authorization
        from acmelite.messages import STATUS_PENDING
        authz = Authorization.from_json({
            'identifier': {'type': 'dns', 'value': 'example.com'},
            'status': 'pending',
            'expires': '2026-10-26T00:00:00Z',
            'challenges': [
                {'type': 'http-01', 'url': 'https://ca.example/chall/1', 'token': 'tok'},
                {'type': 'dns-01', 'url': 'https://ca.example/chall/2', 'token': 'tok',
                 'status': 'invalid',
                 'error': {'type': 'urn:ietf:params:acme:error:dns', 'detail': 'no TXT'}},
            ],
        })
        assert authz.status == STATUS_PENDING
        assert isinstance(authz.challenges, tuple)
        assert authz.challenges[0].status == STATUS_PENDING
        assert authz.challenges[1].error.detail == 'no TXT'


class OrderTest(unittest.TestCase):
    """Tests for acmelite.messages.Order."""

    def test_identifiers_are_tuple(self):
        from acmelite.messages import Order
        order = Order.from_json({'identifiers': [{'type': 'dns', 'value': 'example.com'}],
                                 'replaces': 'a.b'})
        assert isinstance(order.identifiers, tuple)
        assert order.replaces == 'a.b'

    def test_new_order_omits_empty(self):
        from acmelite.messages import Identifier
        from acmelite.messages import IDENTIFIER_FQDN
        from acmelite.messages import NewOrder
        order = NewOrder(identifiers=(Identifier(typ=IDENTIFIER_FQDN, value='example.com'),))
        assert order.to_json() == {'identifiers': [{'type': 'dns', 'value': 'example.com'}]}


class DERMessagesTest(unittest.TestCase):
    """Tests for messages with base64url DER members."""

    def test_certificate_request(self):
        from acmelite.messages import CertificateRequest
        csr = test_util.load_vector('csr.der')
        jobj = CertificateRequest(csr=csr).to_json()
        assert jobj == {'csr': jose.encode_b64jose(csr)}
        assert CertificateRequest.from_json(jobj).csr == csr

    def test_revocation(self):
        from acmelite.messages import Revocation
        cert = test_util.load_vector('cert.der')
        assert Revocation(certificate=cert, reason=1).to_json() == {
            'certificate': jose.encode_b64jose(cert),
            'reason': 1,
        }


class RenewalInfoTest(unittest.TestCase):
    """Tests for acmelite.messages.RenewalInfo."""

    def setUp(self):
        from acmelite.messages import RenewalInfo
        self.info = RenewalInfo.from_json({
            'suggestedWindow': {
                'start': '2026-12-18T00:00:00Z',
                'end': '2026-12-20T00:00:00Z',
            },
            'explanationURL': 'https://ca.example/why',
        })
        self.start = datetime.datetime(2026, 12, 18, tzinfo=UTC)
        self.end = datetime.datetime(2026, 12, 20, tzinfo=UTC)

    def test_from_json(self):
        assert self.info.start == self.start
        assert self.info.end == self.end
        assert self.info.explanation_url == 'https://ca.example/why'
        assert self.info.retry_after == ()

    def test_missing_window(self):
        from acmelite.messages import RenewalInfo
        before = datetime.datetime.now(UTC)
        info = RenewalInfo.from_json({})
        after = datetime.datetime.now(UTC)
        assert before <= info.start <= after
        assert info.end - info.start == datetime.timedelta(days=30)

    def test_missing_end(self):
        from acmelite.messages import RenewalInfo
        info = RenewalInfo.from_json({'suggestedWindow': {'start': '2026-12-18T00:00:00Z'}})
        assert info.start == self.start
        assert info.end > datetime.datetime.now(UTC) + datetime.timedelta(days=29)

    def test_invalid_timestamp(self):
        from acmelite.messages import RenewalInfo
        with pytest.raises(jose.DeserializationError):
            RenewalInfo.from_json({'suggestedWindow': {'start': 'yesterday',
                                                       'end': '2026-12-20T00:00:00Z'}})

    def test_is_in_window(self):
        assert not self.info.is_in_window(self.start - datetime.timedelta(seconds=1))
        assert self.info.is_in_window(self.start)
        assert self.info.is_in_window(self.end)
        assert not self.info.is_in_window(self.end + datetime.timedelta(seconds=1))

    def test_should_renew_now(self):
        assert not self.info.should_renew_now(self.start - datetime.timedelta(hours=1))
        assert self.info.should_renew_now(self.start + datetime.timedelta(hours=1))
        assert self.info.should_renew_now(self.end + datetime.timedelta(days=5))

    def test_window_duration(self):
        assert self.info.window_duration() == datetime.timedelta(days=2)

    def test_random_time_in_window(self):
        with mock.patch('acmelite.messages.random.uniform') as mock_uniform:
            mock_uniform.return_value = 3600
            assert self.info.random_time_in_window() == \
                self.start + datetime.timedelta(hours=1)
        mock_uniform.assert_called_once_with(0, 2 * 86400)
        chosen = self.info.random_time_in_window()
        assert self.start <= chosen <= self.end

    def test_seconds_until(self):
        now = self.start - datetime.timedelta(seconds=90)
        assert self.info.seconds_until_window_start(now) == 90
        assert self.info.seconds_until_window_end(now) == 90 + 2 * 86400
        assert self.info.seconds_until_window_start(self.end) == 0


if __name__ == '__main__':
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
