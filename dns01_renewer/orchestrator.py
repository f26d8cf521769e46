"""Drives the dns-01 exchange for every domain of a zone configuration."""
import datetime
import logging
from typing import Callable
from typing import List
from typing import Optional

from dns01_renewer import cancel as cancel_mod
from dns01_renewer import errors
from dns01_renewer import interfaces
from dns01_renewer.configuration import ZoneConfig
from dns01_renewer.directives import CLEAR
from dns01_renewer.directives import DirectiveRecord
from dns01_renewer.propagation import PropagationVerifier
from dns01_renewer.renewal import days_remaining
from dns01_renewer.renewal import is_renewal_due
from dns01_renewer.renewal import RenewalManager

logger = logging.getLogger(__name__)

Emit = Callable[[str], None]


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class AuthorizationOrchestrator:
    """Authorizes the domains of one zone and renews its certificate.

    Domains are authorized one after the other. For each one a challenge
    is requested, its record published through ``emit`` and awaited on the
    nameservers, then the CA is asked to validate it. Once every domain
    has been attempted a single clear directive is emitted, and only if
    every domain validated is a certificate requested.

    :ivar last_outcomes: outcome of each domain attempted by the latest
        call to `authorize`
    :ivar bool issued: whether the latest call published a certificate

    """

    def __init__(self, config: ZoneConfig, ca_client: interfaces.CAClient,
                 verifier: Optional[PropagationVerifier] = None,
                 renewal: Optional[RenewalManager] = None,
                 clock: Optional[Callable[[], datetime.datetime]] = None) -> None:
        self.config = config
        self.ca_client = ca_client
        self._verifier = verifier
        self.renewal = renewal or RenewalManager(ca_client, config.certdir, config.certnames)
        self.clock = clock or _utcnow
        self.last_outcomes: List[interfaces.AuthorizationOutcome] = []
        self.issued = False

    @property
    def verifier(self) -> PropagationVerifier:
        """Propagation verifier, built from the configuration on first use."""
        if self._verifier is None:
            self._verifier = PropagationVerifier(
                self.config.nameservers,
                interval=self.config.propagation_interval,
                max_attempts=self.config.propagation_attempts)
        return self._verifier

    def authorize(self, emit: Emit, cancel: Optional[cancel_mod.CancelToken] = None) -> int:
        """Run one authorization batch.

        :param emit: consumer of directive texts, see `.directives`
        :param .CancelToken cancel: cooperative cancellation token

        :returns: number of domains the CA validated, 0 when the current
            certificate is not due for renewal
        :rtype: int

        :raises .Cancelled: if cancelled, after the clear directive
        :raises .IssuanceError: if every domain validated but the CA
            declined to issue
        :raises .PersistError: if the issued bundle could not be published

        """
        cancel = cancel or cancel_mod.CancelToken()
        config = self.config
        self.last_outcomes = []
        self.issued = False

        now = self.clock()
        if not is_renewal_due(config.certdir, config.certnames, config.margin_days, now):
            logger.info('Certificate under %s is valid for more than %d days, skip update',
                        config.certdir, config.margin_days)
            return 0

        # nameserver host names are resolved before any record is published
        verifier = self.verifier

        completed = False
        try:
            for domain in config.domains:
                self.last_outcomes.append(self._authorize_domain(domain, emit, verifier, cancel))
            completed = True
        finally:
            self._clear(emit, raise_errors=completed)

        valid = sum(1 for outcome in self.last_outcomes if outcome.valid)
        if valid != len(config.domains):
            logger.error('%d of %d domains validated, no certificate issued this run',
                         valid, len(config.domains))
            self._warn_expiry(now)
            return valid

        try:
            self.renewal.renew(config.domains)
        except (errors.IssuanceError, errors.PersistError) as error:
            logger.error('Renewal failed: %s', error)
            raise
        self.issued = True
        return valid

    def _authorize_domain(self, domain: str, emit: Emit, verifier: PropagationVerifier,
                          cancel: cancel_mod.CancelToken) -> interfaces.AuthorizationOutcome:
        try:
            return self._attempt(domain, emit, verifier, cancel)
        except errors.Cancelled as error:
            logger.warning('%s: authorization cancelled (%s)', domain, error)
            self.last_outcomes.append(interfaces.AuthorizationOutcome(
                domain, interfaces.STATUS_INVALID, 'cancelled', str(error)))
            raise

    def _attempt(self, domain: str, emit: Emit, verifier: PropagationVerifier,
                 cancel: cancel_mod.CancelToken) -> interfaces.AuthorizationOutcome:
        cancel.raise_if_cancelled()
        try:
            challenge = self.ca_client.request_challenge(domain)
        except errors.AuthorizationError as error:
            return _failed(domain, 'challenge', error)

        record = DirectiveRecord.upsert(challenge)
        cancel.raise_if_cancelled()
        try:
            emit(record.format())
        except errors.PluginError as error:
            return _failed(domain, 'directive', error)

        try:
            verifier.wait_for_record(challenge.fqdn, challenge.record_content, cancel)
        except errors.PropagationTimeout as error:
            return _failed(domain, 'propagation', error)

        try:
            cancel.raise_if_cancelled()
            self.ca_client.request_validation(challenge)
            status = self._poll(challenge, cancel)
        except errors.AuthorizationError as error:
            return _failed(domain, 'validation', error)

        if status != interfaces.STATUS_VALID:
            logger.error('%s: validation ended with status %s', domain, status)
            return interfaces.AuthorizationOutcome(domain, status)
        logger.info('%s: validated', domain)
        return interfaces.AuthorizationOutcome(domain, status)

    def _poll(self, challenge: interfaces.Challenge, cancel: cancel_mod.CancelToken) -> str:
        attempts = self.config.validation_attempts
        for attempt in range(1, attempts + 1):
            cancel.sleep(self.config.validation_interval)
            status = self.ca_client.poll_validation(challenge)
            logger.debug('%s: validation status %s (poll %d/%d)',
                         challenge.domain, status, attempt, attempts)
            if status != interfaces.STATUS_PENDING:
                return status
        raise errors.ValidationTimeout(
            f'Validation still pending after {attempts} polls', challenge.domain)

    def _clear(self, emit: Emit, raise_errors: bool) -> None:
        logger.debug('Clearing challenge records')
        try:
            emit(CLEAR.format())
        except errors.Error as error:
            logger.error('Unable to clear challenge records: %s', error)
            if raise_errors:
                raise

    def _warn_expiry(self, now: datetime.datetime) -> None:
        remaining = days_remaining(self.config.certdir, self.config.certnames, now)
        if remaining is not None and remaining < self.config.warning_days:
            logger.warning('The certificate under %s expires in %d days',
                           self.config.certdir, max(int(remaining), 0))


def _failed(domain: str, stage: str,
            error: errors.Error) -> interfaces.AuthorizationOutcome:
    logger.error('%s: %s failed: %s', domain, stage, error)
    return interfaces.AuthorizationOutcome(
        domain, interfaces.STATUS_INVALID, stage, str(error))
