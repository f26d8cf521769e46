"""Zone configuration loading and normalization."""
import logging
import os
import sys
import types
from typing import Any
from typing import Iterable
from typing import Mapping
from typing import NamedTuple
from typing import Optional
from typing import Tuple

import configobj

from dns01_renewer import constants
from dns01_renewer import errors

logger = logging.getLogger(__name__)

# Keys consumed by normalize(); anything else is kept in ZoneConfig.extra
# for the DNS provider adapters (zone file path, API credentials, ...).
_KNOWN_KEYS = frozenset((
    'domains', 'domain', 'nameservers', 'nameserver', 'commands', 'command',
    'authkey', 'certdir', 'certname', 'logfile', 'margin_days', 'warning_days',
    'endpoint', 'mail', 'propagation_interval', 'propagation_attempts',
    'validation_interval', 'validation_attempts',
))


class ZoneConfig(NamedTuple):
    """Normalized configuration of one zone.

    Instances are immutable: sequences are tuples and mappings are
    read-only proxies.

    """
    domains: Tuple[str, ...]
    nameservers: Tuple[str, ...]
    authkey: str
    certdir: str
    certnames: Mapping[str, str]
    logfile: Optional[str]
    margin_days: int
    warning_days: int
    endpoint: str
    mail: str
    commands: Tuple[str, ...]
    propagation_interval: float
    propagation_attempts: int
    validation_interval: float
    validation_attempts: int
    extra: Mapping[str, Any]


def normalize(raw: Mapping[str, Any]) -> ZoneConfig:
    """Validate a loosely typed configuration and fill in defaults.

    :param raw: configuration as read from a file or built in code.
        Scalars are accepted wherever a list is expected.

    :returns: the normalized configuration
    :rtype: ZoneConfig

    :raises .ConfigError: if domains are missing or a path or number
        is unusable

    """
    domains = _domain_list(_first_of(raw, 'domains', 'domain'))
    if not domains:
        raise errors.ConfigError('At least one domain must be configured.')

    authkey = raw.get('authkey')
    if not authkey:
        raise errors.ConfigError('The account key path (authkey) is not configured.')
    authkey = os.path.abspath(os.path.expanduser(str(authkey)))
    if os.path.isdir(authkey):
        raise errors.ConfigError(f'Account key path {authkey} is a directory.')

    certdir = raw.get('certdir') or os.path.dirname(os.path.abspath(sys.argv[0]))
    certdir = os.path.abspath(os.path.expanduser(str(certdir)))
    if os.path.exists(certdir) and not os.path.isdir(certdir):
        raise errors.ConfigError(f'Certificate directory {certdir} is not a directory.')

    logfile = raw.get('logfile') or None
    if logfile is not None:
        logfile = os.path.abspath(os.path.expanduser(str(logfile)))

    return ZoneConfig(
        domains=domains,
        nameservers=tuple(str(ns).strip() for ns in _as_list(
            _first_of(raw, 'nameservers', 'nameserver')) if str(ns).strip()),
        authkey=authkey,
        certdir=certdir,
        certnames=_cert_names(raw.get('certname')),
        logfile=logfile,
        margin_days=_number(raw, 'margin_days', constants.DEFAULT_MARGIN_DAYS, int, 0),
        warning_days=_number(raw, 'warning_days', constants.DEFAULT_WARNING_DAYS, int, 0),
        endpoint=str(raw.get('endpoint') or constants.ACME_STAGING_DIRECTORY),
        mail=str(raw.get('mail') or constants.DEFAULT_MAIL),
        commands=tuple(str(c) for c in _as_list(_first_of(raw, 'commands', 'command'))),
        propagation_interval=_number(raw, 'propagation_interval',
                                     constants.DEFAULT_PROPAGATION_INTERVAL, float, 0),
        propagation_attempts=_number(raw, 'propagation_attempts',
                                     constants.DEFAULT_PROPAGATION_ATTEMPTS, int, 1),
        validation_interval=_number(raw, 'validation_interval',
                                    constants.DEFAULT_VALIDATION_INTERVAL, float, 0),
        validation_attempts=_number(raw, 'validation_attempts',
                                    constants.DEFAULT_VALIDATION_ATTEMPTS, int, 1),
        extra=types.MappingProxyType(
            {key: value for key, value in raw.items() if key not in _KNOWN_KEYS}),
    )


def load_config(path: str) -> ZoneConfig:
    """Read and normalize a zone configuration INI file.

    :param str path: path to the file

    :raises .ConfigError: if the file cannot be read or normalized

    """
    if not os.path.isfile(path):
        raise errors.ConfigError(f'Configuration file {path} not found.')
    try:
        conf = configobj.ConfigObj(path, encoding='utf-8', file_error=True)
    except (configobj.ConfigObjError, IOError) as error:
        logger.debug('Error parsing zone configuration %s: %s', path, error, exc_info=True)
        raise errors.ConfigError(
            f'Error parsing zone configuration {path}: {error}') from error
    return normalize(conf.dict())


def _first_of(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (str, bytes)):
        return [value]
    if isinstance(value, Iterable):
        return list(value)
    return [value]


def _domain_list(value: Any) -> Tuple[str, ...]:
    domains = []
    for item in _as_list(value):
        domain = str(item).strip().lower().rstrip('.')
        if not domain:
            continue
        if any(c.isspace() for c in domain):
            raise errors.ConfigError(f'Invalid domain name: {item!r}')
        if domain not in domains:
            domains.append(domain)
    return tuple(domains)


def _cert_names(value: Optional[Mapping[str, Any]]) -> Mapping[str, str]:
    names = dict(constants.DEFAULT_CERT_NAMES)
    if value is None:
        return types.MappingProxyType(names)
    if not isinstance(value, Mapping):
        raise errors.ConfigError('certname must be a mapping of privkey/cert/chain/fullchain.')
    unknown = set(value) - set(constants.CERT_KINDS)
    if unknown:
        raise errors.ConfigError(
            'Unknown certname entries: {0}'.format(', '.join(sorted(unknown))))
    for kind, filename in value.items():
        if filename:
            if os.path.basename(str(filename)) != str(filename):
                raise errors.ConfigError(f'certname {kind} must be a bare file name.')
            names[kind] = str(filename)
    if len(set(names.values())) != len(names):
        raise errors.ConfigError('certname entries must be distinct.')
    return types.MappingProxyType(names)


def _number(raw: Mapping[str, Any], key: str, default: Any, typ: type, minimum: int) -> Any:
    value = raw.get(key)
    if value is None or value == '':
        return default
    try:
        number = typ(value)
    except (TypeError, ValueError) as error:
        raise errors.ConfigError(f'{key} must be a number, got {value!r}') from error
    if number < minimum:
        raise errors.ConfigError(f'{key} must be at least {minimum}, got {value!r}')
    return number
