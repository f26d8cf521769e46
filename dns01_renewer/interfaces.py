"""dns01_renewer interfaces and the value types crossing them."""
from abc import ABCMeta
from abc import abstractmethod
from typing import Any
from typing import NamedTuple
from typing import Optional
from typing import Sequence
from typing import TYPE_CHECKING

from dns01_renewer import constants

if TYPE_CHECKING:
    from dns01_renewer.directives import DirectiveRecord

STATUS_PENDING = 'pending'
STATUS_VALID = 'valid'
STATUS_INVALID = 'invalid'


class Challenge(NamedTuple):
    """A dns-01 challenge for one domain, valid for one authorization attempt.

    :ivar str domain: domain the TXT record proves control of (without
        any wildcard label)
    :ivar str record_name: owner name of the record, relative to ``domain``
    :ivar str record_type: always ``TXT``
    :ivar str record_content: value the CA expects to find
    :ivar handle: CA client specific state, opaque to the orchestrator

    """
    domain: str
    record_name: str
    record_type: str
    record_content: str
    handle: Any = None

    @property
    def fqdn(self) -> str:
        """Fully qualified record name, without the trailing dot."""
        return '{0}.{1}'.format(self.record_name, self.domain)


class CertificateArtifact(NamedTuple):
    """An issued certificate bundle, each member in PEM form."""
    privkey: bytes
    cert: bytes
    chain: bytes
    fullchain: bytes


class AuthorizationOutcome(NamedTuple):
    """Result of one domain's authorization attempt.

    :ivar str stage: the stage where the attempt ended: ``challenge``, ``directive``,
        ``propagation``, ``validation`` or ``cancelled``
    :ivar str error: message of the error that ended the attempt, if any

    """
    domain: str
    status: str
    stage: str = 'validation'
    error: Optional[str] = None

    @property
    def valid(self) -> bool:
        """Did the CA validate the domain?"""
        return self.status == STATUS_VALID


class CAClient(metaclass=ABCMeta):
    """Certificate Authority client capability, bound to one account key."""

    @abstractmethod
    def register_account(self, contact: str) -> Any:  # pragma: no cover
        """Register a new account for the bound key.

        :param str contact: contact e-mail address
        :raises .RegistrationError: if the CA rejects the registration

        """
        raise NotImplementedError()

    @abstractmethod
    def request_challenge(self, domain: str) -> Challenge:  # pragma: no cover
        """Obtain a dns-01 challenge for a domain.

        :raises .ChallengeError: if the CA rejects the domain

        """
        raise NotImplementedError()

    @abstractmethod
    def request_validation(self, challenge: Challenge) -> None:  # pragma: no cover
        """Tell the CA the challenge record is in place."""
        raise NotImplementedError()

    @abstractmethod
    def poll_validation(self, challenge: Challenge) -> str:  # pragma: no cover
        """Fetch the current validation status of a challenge.

        :returns: one of `STATUS_PENDING`, `STATUS_VALID` or `STATUS_INVALID`
        :rtype: str

        """
        raise NotImplementedError()

    @abstractmethod
    def submit_certificate_request(self, domains: Sequence[str]
                                   ) -> CertificateArtifact:  # pragma: no cover
        """Request a certificate naming all domains.

        The first domain is the subject common name.

        :raises .IssuanceError: if the CA declines to issue

        """
        raise NotImplementedError()


class DNSProvider(metaclass=ABCMeta):
    """Consumer of record directives backed by some DNS system."""

    record_type = constants.CHALLENGE_RECORD_TYPE

    @abstractmethod
    def apply_upsert(self, record: 'DirectiveRecord') -> None:  # pragma: no cover
        """Make the record resolvable before returning.

        :raises .PluginError: if the record could not be added

        """
        raise NotImplementedError()

    @abstractmethod
    def apply_clear(self) -> None:  # pragma: no cover
        """Remove every record added since the last clear."""
        raise NotImplementedError()
