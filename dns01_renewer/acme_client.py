"""CA client speaking ACME v2 through the ``acme`` library."""
import logging
from typing import Any
from typing import Optional
from typing import Sequence

import josepy as jose
import requests

from acme import challenges
from acme import client as acme_client
from acme import errors as acme_errors
from acme import messages
import dns01_renewer
from dns01_renewer import constants
from dns01_renewer import crypto_util
from dns01_renewer import errors
from dns01_renewer import interfaces

logger = logging.getLogger(__name__)

_ACME_ERRORS = (acme_errors.Error, messages.Error, requests.exceptions.RequestException)

_TERMINAL_INVALID = (messages.STATUS_INVALID, messages.STATUS_DEACTIVATED,
                     messages.STATUS_REVOKED)


class _PendingAuthorization:
    """ACME state behind an `.interfaces.Challenge`."""

    def __init__(self, authzr: messages.AuthorizationResource,
                 challb: messages.ChallengeBody) -> None:
        self.authzr = authzr
        self.challb = challb
        self.answered = False


def user_agent() -> str:
    """User agent sent to the CA."""
    return 'dns01-renewer/{0}'.format(dns01_renewer.__version__)


def acme_from_key(key: jose.JWK, endpoint: str) -> acme_client.ClientV2:
    """Wrangle ACME client construction"""
    if key.typ == 'EC':
        alg = {256: jose.ES256, 384: jose.ES384, 521: jose.ES512}.get(key.key.key_size)
        if alg is None:
            raise errors.AccountKeyError(
                "No matching signing algorithm can be found for the key")
    else:
        alg = jose.RS256
    net = acme_client.ClientNetwork(key, alg=alg, user_agent=user_agent())
    directory = acme_client.ClientV2.get_directory(endpoint, net)
    return acme_client.ClientV2(directory, net)


class AcmeCAClient(interfaces.CAClient):
    """ACME implementation of the CA client capability.

    Challenges are obtained through a single domain order per domain; the
    final order naming every domain reuses the authorizations validated
    that way.

    :ivar jose.JWK key: the account key
    :ivar acme.client.ClientV2 acme: ACME client API

    """

    def __init__(self, key_pem: bytes, endpoint: str,
                 acme: Optional[acme_client.ClientV2] = None) -> None:
        try:
            self.key = jose.JWK.load(key_pem)
        except (ValueError, TypeError, jose.errors.Error) as error:
            raise errors.AccountKeyError(f'Invalid account key: {error}') from error
        self.endpoint = endpoint
        if acme is None:
            try:
                acme = acme_from_key(self.key, endpoint)
            except _ACME_ERRORS as error:
                raise errors.RegistrationError(
                    f'Unable to reach the CA directory at {endpoint}: {error}') from error
        self.acme = acme
        self._cert_key_pem: Optional[bytes] = None

    @property
    def cert_key_pem(self) -> bytes:
        """Private key of the certificate requested during this run."""
        if self._cert_key_pem is None:
            self._cert_key_pem = crypto_util.make_key(constants.CERT_KEY_SIZE)
        return self._cert_key_pem

    def register_account(self, contact: str) -> messages.RegistrationResource:
        logger.info('Registering a new account for %s at %s', contact, self.endpoint)
        new_reg = messages.NewRegistration.from_data(
            email=contact, terms_of_service_agreed=True)
        try:
            return self.acme.new_account(new_reg)
        except _ACME_ERRORS as error:
            logger.debug('Account registration failed', exc_info=True)
            raise errors.RegistrationError(
                f'The CA rejected the account registration: {error}') from error

    def find_account(self) -> Optional[str]:
        """Bind the client to the account already registered for the key.

        :returns: the account URL, or ``None`` if the CA knows no account
            for this key

        :raises .RegistrationError: on any other CA failure

        """
        try:
            regr = self.acme.new_account(messages.NewRegistration(only_return_existing=True))
        except acme_errors.ConflictError as conflict:
            regr = messages.RegistrationResource(uri=conflict.location,
                                                 body=messages.Registration())
        except messages.Error as error:
            if error.code == 'accountDoesNotExist':
                return None
            raise errors.RegistrationError(f'Unable to look up the account: {error}') from error
        except _ACME_ERRORS as error:
            raise errors.RegistrationError(f'Unable to look up the account: {error}') from error
        self.acme.net.account = regr
        return regr.uri

    def request_challenge(self, domain: str) -> interfaces.Challenge:
        csr_pem = crypto_util.make_csr(self.cert_key_pem, [domain])
        try:
            orderr = self.acme.new_order(csr_pem)
        except _ACME_ERRORS as error:
            raise errors.ChallengeError(
                f'The CA rejected an order for {domain}: {error}', domain) from error

        for authzr in orderr.authorizations:
            for challb in authzr.body.challenges:
                if isinstance(challb.chall, challenges.DNS01):
                    return self._to_challenge(authzr, challb)
        raise errors.ChallengeError(f'The CA offered no dns-01 challenge for {domain}', domain)

    def _to_challenge(self, authzr: messages.AuthorizationResource,
                      challb: messages.ChallengeBody) -> interfaces.Challenge:
        chall: Any = challb.chall
        return interfaces.Challenge(
            domain=authzr.body.identifier.value,
            record_name=chall.LABEL,
            record_type=constants.CHALLENGE_RECORD_TYPE,
            record_content=chall.validation(self.key),
            handle=_PendingAuthorization(authzr, challb),
        )

    def request_validation(self, challenge: interfaces.Challenge) -> None:
        pending: _PendingAuthorization = challenge.handle
        if pending.authzr.body.status == messages.STATUS_VALID:
            logger.debug('Authorization for %s is already valid', challenge.domain)
            return
        try:
            self.acme.answer_challenge(pending.challb, pending.challb.chall.response(self.key))
        except _ACME_ERRORS as error:
            raise errors.AuthorizationError(
                f'The CA refused the challenge answer for {challenge.domain}: {error}',
                challenge.domain) from error
        pending.answered = True

    def poll_validation(self, challenge: interfaces.Challenge) -> str:
        pending: _PendingAuthorization = challenge.handle
        try:
            pending.authzr, _ = self.acme.poll(pending.authzr)
        except _ACME_ERRORS as error:
            raise errors.AuthorizationError(
                f'Unable to poll the authorization of {challenge.domain}: {error}',
                challenge.domain) from error
        status = pending.authzr.body.status
        if status == messages.STATUS_VALID:
            return interfaces.STATUS_VALID
        if status in _TERMINAL_INVALID:
            for challb in pending.authzr.body.challenges:
                if challb.error is not None:
                    logger.info('%s: %s', challenge.domain, challb.error)
            return interfaces.STATUS_INVALID
        return interfaces.STATUS_PENDING

    def submit_certificate_request(self, domains: Sequence[str]
                                   ) -> interfaces.CertificateArtifact:
        csr_pem = crypto_util.make_csr(self.cert_key_pem, list(domains))
        try:
            orderr = self.acme.new_order(csr_pem)
            orderr = self.acme.poll_and_finalize(orderr)
        except _ACME_ERRORS as error:
            logger.debug('Certificate order failed', exc_info=True)
            raise errors.IssuanceError(
                'The CA declined to issue a certificate for {0}: {1}'.format(
                    ', '.join(domains), error)) from error

        fullchain = orderr.fullchain_pem.encode()
        try:
            cert, chain = crypto_util.cert_and_chain_from_fullchain(fullchain)
        except (errors.Error, ValueError) as error:
            raise errors.IssuanceError(f'The CA returned an unusable chain: {error}') from error
        return interfaces.CertificateArtifact(
            privkey=self.cert_key_pem, cert=cert, chain=chain, fullchain=cert + chain)
