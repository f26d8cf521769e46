"""Waits for challenge records to become visible on the nameservers."""
import logging
from typing import List
from typing import Optional
from typing import Sequence

import dns.exception
import dns.resolver

from dns01_renewer import cancel as cancel_mod
from dns01_renewer import constants
from dns01_renewer import errors
from dns01_renewer import util

logger = logging.getLogger(__name__)

_MISSES = (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer, dns.resolver.NoNameservers,
           dns.exception.Timeout)


class PropagationVerifier:
    """Polls nameservers until an expected TXT record is served.

    The verifier holds no per-domain state and is reused for every domain
    of a run.

    :param nameservers: addresses or host names of the nameservers to
        query. When empty the system resolver configuration is used.
    :param float interval: seconds slept before each query
    :param int max_attempts: queries made before giving up

    """

    def __init__(self, nameservers: Sequence[str] = (),
                 interval: float = constants.DEFAULT_PROPAGATION_INTERVAL,
                 max_attempts: int = constants.DEFAULT_PROPAGATION_ATTEMPTS,
                 resolver: Optional[dns.resolver.Resolver] = None) -> None:
        self.interval = interval
        self.max_attempts = max_attempts
        if resolver is None:
            resolver = _make_resolver(nameservers)
        self.resolver = resolver

    def wait_for_record(self, fqdn: str, expected: str,
                        cancel: Optional[cancel_mod.CancelToken] = None) -> int:
        """Block until ``fqdn`` serves a TXT record equal to ``expected``.

        :param str fqdn: record name, with or without the trailing dot
        :param str expected: record content, compared byte for byte with
            the first record of the answer
        :param .CancelToken cancel: checked around every sleep

        :returns: number of queries it took
        :rtype: int

        :raises .PropagationTimeout: if the record was not seen within
            ``max_attempts`` queries
        :raises .Cancelled: if cancellation was requested while waiting

        """
        cancel = cancel or cancel_mod.CancelToken()
        for attempt in range(1, self.max_attempts + 1):
            cancel.sleep(self.interval)
            found = self._first_txt(fqdn)
            if found == expected.encode():
                logger.debug('%s served the expected record after %d queries', fqdn, attempt)
                return attempt
            logger.debug('Waiting for %s (attempt %d/%d), got %r',
                         fqdn, attempt, self.max_attempts, found)
        raise errors.PropagationTimeout(
            'TXT record {0} was not observed after {1} queries'.format(fqdn, self.max_attempts),
            fqdn)

    def _first_txt(self, fqdn: str) -> Optional[bytes]:
        try:
            answer = self.resolver.resolve(fqdn, 'TXT')
        except _MISSES as error:
            logger.debug('TXT lookup of %s failed: %s', fqdn, error)
            return None
        for rdata in answer:
            return b''.join(rdata.strings)
        return None


def _make_resolver(nameservers: Sequence[str]) -> dns.resolver.Resolver:
    if not nameservers:
        resolver = dns.resolver.Resolver()
    else:
        resolver = dns.resolver.Resolver(configure=False)
        resolver.nameservers = _addresses(nameservers)
    resolver.lifetime = constants.DNS_QUERY_TIMEOUT
    return resolver


def _addresses(nameservers: Sequence[str]) -> List[str]:
    addresses: List[str] = []
    for nameserver in nameservers:
        if util.is_ipaddress(nameserver):
            addresses.append(nameserver)
            continue
        found = []
        for rdtype in ('A', 'AAAA'):
            try:
                found.extend(rdata.address for rdata in dns.resolver.resolve(nameserver, rdtype))
            except _MISSES:
                continue
        if not found:
            raise errors.ConfigError(f'Unable to resolve nameserver {nameserver}')
        logger.debug('Nameserver %s resolves to %s', nameserver, ', '.join(found))
        addresses.extend(found)
    return addresses
