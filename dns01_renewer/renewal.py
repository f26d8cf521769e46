"""Renewal timing and issuance of the certificate bundle."""
import datetime
import logging
from typing import Mapping
from typing import Optional
from typing import Sequence

from dns01_renewer import constants
from dns01_renewer import crypto_util
from dns01_renewer import interfaces
from dns01_renewer import storage

logger = logging.getLogger(__name__)


def days_remaining(certdir: str, certnames: Mapping[str, str] = constants.DEFAULT_CERT_NAMES,
                   now: Optional[datetime.datetime] = None) -> Optional[float]:
    """Days until the current certificate expires.

    :returns: remaining days (negative once expired), or ``None`` if there
        is no readable current certificate
    :rtype: float

    """
    paths = storage.CertificateStore(certdir, certnames).current_paths()
    if paths is None:
        return None
    try:
        expiry = crypto_util.notAfter(paths['cert'])
    except (OSError, ValueError) as error:
        logger.warning('Unable to read the current certificate %s: %s', paths['cert'], error)
        return None
    now = now or datetime.datetime.now(datetime.timezone.utc)
    return (expiry - now).total_seconds() / 86400


def is_renewal_due(certdir: str, certnames: Mapping[str, str] = constants.DEFAULT_CERT_NAMES,
                   margin_days: int = constants.DEFAULT_MARGIN_DAYS,
                   now: Optional[datetime.datetime] = None) -> bool:
    """Should the certificate be renewed?

    True if no certificate is published under ``current``, or if it
    expires in less than ``margin_days``.

    """
    remaining = days_remaining(certdir, certnames, now)
    if remaining is None:
        logger.debug('No current certificate under %s', certdir)
        return True
    logger.debug('Current certificate under %s expires in %.1f days', certdir, remaining)
    return remaining < margin_days


class RenewalManager:
    """Requests a certificate and publishes it to the store."""

    def __init__(self, ca_client: interfaces.CAClient, certdir: str,
                 certnames: Mapping[str, str] = constants.DEFAULT_CERT_NAMES,
                 store: Optional[storage.CertificateStore] = None) -> None:
        self.ca_client = ca_client
        self.store = store or storage.CertificateStore(certdir, certnames)

    def renew(self, domains: Sequence[str]) -> interfaces.CertificateArtifact:
        """Issue a certificate naming all domains and make it current.

        :raises .IssuanceError: if the CA declines to issue
        :raises .PersistError: if the bundle cannot be published

        """
        logger.info('Requesting a certificate for %s', ', '.join(domains))
        artifact = self.ca_client.submit_certificate_request(list(domains))
        self.store.publish(artifact)
        return artifact
