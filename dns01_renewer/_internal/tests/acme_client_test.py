"""Tests for dns01_renewer.acme_client."""
import sys
import unittest
from unittest import mock

from acme import challenges
from acme import errors as acme_errors
from acme import messages
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
import josepy as jose
import pytest
import requests

from dns01_renewer import crypto_util
from dns01_renewer import errors
from dns01_renewer import interfaces
from dns01_renewer._internal.tests import util as test_util

ENDPOINT = 'https://ca.example/directory'
KEY_PEM = crypto_util.make_key(2048)


def _authzr(domain, status=messages.STATUS_PENDING, chall_types=(challenges.DNS01,)):
    challbs = [messages.ChallengeBody(chall=typ(token=b'x' * 16),
                                      uri='https://ca.example/chall/{0}'.format(i),
                                      status=status)
               for i, typ in enumerate(chall_types)]
    return messages.AuthorizationResource(
        uri='https://ca.example/authz/' + domain,
        body=messages.Authorization(
            identifier=messages.Identifier(typ=messages.IDENTIFIER_FQDN, value=domain),
            challenges=challbs, status=status))


class AcmeFromKeyTest(unittest.TestCase):
    """Tests for dns01_renewer.acme_client.acme_from_key."""

    def _call(self, key):
        from dns01_renewer.acme_client import acme_from_key
        return acme_from_key(key, ENDPOINT)

    @mock.patch('dns01_renewer.acme_client.acme_client')
    def test_rsa(self, mock_acme_client):
        key = jose.JWK.load(KEY_PEM)
        client = self._call(key)
        mock_acme_client.ClientNetwork.assert_called_once_with(
            key, alg=jose.RS256, user_agent=mock.ANY)
        mock_acme_client.ClientV2.get_directory.assert_called_once_with(
            ENDPOINT, mock_acme_client.ClientNetwork.return_value)
        assert client is mock_acme_client.ClientV2.return_value

    @mock.patch('dns01_renewer.acme_client.acme_client')
    def test_ec(self, mock_acme_client):
        key = jose.JWKEC(key=ec.generate_private_key(ec.SECP384R1()))
        self._call(key)
        assert mock_acme_client.ClientNetwork.call_args[1]['alg'] is jose.ES384


class AcmeCAClientTest(unittest.TestCase):
    """Tests for dns01_renewer.acme_client.AcmeCAClient."""

    def setUp(self):
        from dns01_renewer.acme_client import AcmeCAClient
        self.acme = mock.MagicMock()
        self.client = AcmeCAClient(KEY_PEM, ENDPOINT, acme=self.acme)

    def test_invalid_key(self):
        from dns01_renewer.acme_client import AcmeCAClient
        with pytest.raises(errors.AccountKeyError):
            AcmeCAClient(b'garbage', ENDPOINT, acme=self.acme)

    @mock.patch('dns01_renewer.acme_client.acme_from_key')
    def test_unreachable_directory(self, mock_from_key):
        from dns01_renewer.acme_client import AcmeCAClient
        mock_from_key.side_effect = requests.exceptions.ConnectionError('refused')
        with pytest.raises(errors.RegistrationError):
            AcmeCAClient(KEY_PEM, ENDPOINT)

    def test_cert_key_is_generated_once(self):
        key = self.client.cert_key_pem
        assert key == self.client.cert_key_pem
        assert key != KEY_PEM
        serialization.load_pem_private_key(key, password=None)

    def test_register_account(self):
        self.client.register_account('admin@example.com')
        new_reg = self.acme.new_account.call_args[0][0]
        assert new_reg.contact == ('mailto:admin@example.com',)
        assert new_reg.terms_of_service_agreed is True

    def test_register_account_rejected(self):
        self.acme.new_account.side_effect = messages.Error.with_code(
            'invalidContact', detail='bad address')
        with pytest.raises(errors.RegistrationError):
            self.client.register_account('admin@example.com')

    def test_find_account(self):
        self.acme.new_account.side_effect = acme_errors.ConflictError(
            'https://ca.example/acct/1')
        assert self.client.find_account() == 'https://ca.example/acct/1'
        assert self.acme.net.account.uri == 'https://ca.example/acct/1'
        assert self.acme.new_account.call_args[0][0].only_return_existing is True

    def test_find_account_missing(self):
        self.acme.new_account.side_effect = messages.Error.with_code('accountDoesNotExist')
        assert self.client.find_account() is None

    def test_find_account_error(self):
        self.acme.new_account.side_effect = messages.Error.with_code('serverInternal')
        with pytest.raises(errors.RegistrationError):
            self.client.find_account()

    def test_request_challenge(self):
        authzr = _authzr('example.com', chall_types=(challenges.HTTP01, challenges.DNS01))
        self.acme.new_order.return_value = mock.MagicMock(authorizations=[authzr])

        challenge = self.client.request_challenge('example.com')

        assert challenge.domain == 'example.com'
        assert challenge.record_name == '_acme-challenge'
        assert challenge.record_type == 'TXT'
        assert challenge.fqdn == '_acme-challenge.example.com'
        dns_chall = authzr.body.challenges[1].chall
        assert challenge.record_content == dns_chall.validation(self.client.key)

    def test_request_challenge_rejected(self):
        self.acme.new_order.side_effect = messages.Error.with_code('rejectedIdentifier')
        with pytest.raises(errors.ChallengeError) as err:
            self.client.request_challenge('example.com')
        assert err.value.domain == 'example.com'

    def test_request_challenge_without_dns01(self):
        authzr = _authzr('example.com', chall_types=(challenges.HTTP01,))
        self.acme.new_order.return_value = mock.MagicMock(authorizations=[authzr])
        with pytest.raises(errors.ChallengeError):
            self.client.request_challenge('example.com')

    def _challenge(self, status=messages.STATUS_PENDING):
        self.acme.new_order.return_value = mock.MagicMock(
            authorizations=[_authzr('example.com', status=status)])
        return self.client.request_challenge('example.com')

    def test_request_validation(self):
        challenge = self._challenge()
        self.client.request_validation(challenge)
        challb, response = self.acme.answer_challenge.call_args[0]
        assert challb is challenge.handle.challb
        assert isinstance(response, challenges.DNS01Response)
        assert challenge.handle.answered

    def test_request_validation_already_valid(self):
        challenge = self._challenge(messages.STATUS_VALID)
        self.client.request_validation(challenge)
        assert not self.acme.answer_challenge.called

    def test_request_validation_refused(self):
        challenge = self._challenge()
        self.acme.answer_challenge.side_effect = acme_errors.Error('boom')
        with pytest.raises(errors.AuthorizationError):
            self.client.request_validation(challenge)

    def test_poll_validation(self):
        challenge = self._challenge()
        for acme_status, expected in ((messages.STATUS_PENDING, interfaces.STATUS_PENDING),
                                      (messages.STATUS_PROCESSING, interfaces.STATUS_PENDING),
                                      (messages.STATUS_VALID, interfaces.STATUS_VALID),
                                      (messages.STATUS_INVALID, interfaces.STATUS_INVALID),
                                      (messages.STATUS_DEACTIVATED, interfaces.STATUS_INVALID)):
            self.acme.poll.return_value = (_authzr('example.com', status=acme_status), None)
            assert self.client.poll_validation(challenge) == expected

    def test_poll_validation_error(self):
        challenge = self._challenge()
        self.acme.poll.side_effect = requests.exceptions.Timeout()
        with pytest.raises(errors.AuthorizationError):
            self.client.poll_validation(challenge)

    def test_submit_certificate_request(self):
        artifact = test_util.make_artifact(domains=('example.com', 'www.example.com'))
        orderr = mock.MagicMock(fullchain_pem=artifact.fullchain.decode())
        self.acme.poll_and_finalize.return_value = orderr

        result = self.client.submit_certificate_request(['example.com', 'www.example.com'])

        self.acme.poll_and_finalize.assert_called_once_with(self.acme.new_order.return_value)
        assert result.privkey == self.client.cert_key_pem
        assert result.cert == artifact.cert
        assert result.chain == artifact.chain
        assert result.fullchain == artifact.cert + artifact.chain

    def test_submit_certificate_request_declined(self):
        self.acme.poll_and_finalize.side_effect = acme_errors.ValidationError([])
        with pytest.raises(errors.IssuanceError):
            self.client.submit_certificate_request(['example.com'])


if __name__ == "__main__":
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
