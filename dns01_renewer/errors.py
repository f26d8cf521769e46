"""dns01_renewer errors."""
from typing import Optional


class Error(Exception):
    """Generic dns01_renewer error."""


class ConfigError(Error):
    """Zone configuration is missing a value or holds an unusable one."""


# Account bootstrap errors
class AccountKeyError(Error):
    """The account key file exists but cannot be read as a private key."""


class RegistrationError(Error):
    """The CA rejected the account registration."""


# Per-domain authorization errors
class AuthorizationError(Error):
    """Authorization error for a single domain.

    :ivar str domain: Domain being authorized, if known.

    """
    def __init__(self, message: str, domain: Optional[str] = None) -> None:
        super().__init__(message)
        self.domain = domain


class ChallengeError(AuthorizationError):
    """The CA refused to hand out a dns-01 challenge for a domain."""


class PropagationTimeout(AuthorizationError):
    """The challenge TXT record was not observed on the nameservers in time."""


class ValidationTimeout(AuthorizationError):
    """The CA did not reach a terminal validation status in time."""


class Cancelled(Error):
    """The run was cancelled cooperatively."""


# Renewal errors
class IssuanceError(Error):
    """The CA declined to issue the certificate."""


class PersistError(Error):
    """The issued certificate could not be written or published."""


# Adapter errors
class DirectiveError(Error):
    """A record directive could not be parsed."""


class PluginError(Error):
    """DNS provider adapter error."""


class SubprocessError(PluginError):
    """A configured shell command failed."""
