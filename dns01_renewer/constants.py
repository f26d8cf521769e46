"""dns01_renewer constants."""
import logging

ACME_STAGING_DIRECTORY = 'https://acme-staging-v02.api.letsencrypt.org/directory'
"""Default CA endpoint. Issuance against production must be asked for."""

ACME_PRODUCTION_DIRECTORY = 'https://acme-v02.api.letsencrypt.org/directory'

DEFAULT_MAIL = 'root@example.com'

DEFAULT_MARGIN_DAYS = 30
DEFAULT_WARNING_DAYS = 7

CERT_KINDS = ('privkey', 'cert', 'chain', 'fullchain')
"""The four members of an issued bundle, in the order they are written."""

DEFAULT_CERT_NAMES = {
    'privkey': 'privkey.pem',
    'cert': 'cert.pem',
    'chain': 'chain.pem',
    'fullchain': 'fullchain.pem',
}

CURRENT_LINK = 'current'
"""Name of the symlink under the certificate directory pointing at the
latest issuance directory."""

ISSUANCE_ID_FORMAT = '%Y%m%d%H%M%S'

ACCOUNT_KEY_SIZE = 4096
CERT_KEY_SIZE = 2048

ACCOUNT_KEY_MODE = 0o400
ACCOUNT_DIR_MODE = 0o700
PRIVKEY_MODE = 0o600
PUBLIC_FILE_MODE = 0o644
ISSUANCE_DIR_MODE = 0o755

CHALLENGE_RECORD_NAME = '_acme-challenge'
CHALLENGE_RECORD_TYPE = 'TXT'

DEFAULT_PROPAGATION_INTERVAL = 3
DEFAULT_PROPAGATION_ATTEMPTS = 100
DEFAULT_VALIDATION_INTERVAL = 5
DEFAULT_VALIDATION_ATTEMPTS = 60

DNS_QUERY_TIMEOUT = 10
"""Seconds a single TXT lookup may take before it counts as a miss."""

LOG_MAX_BYTES = 2 ** 20
LOG_BACKUP_COUNT = 5

DEFAULT_LOGGING_LEVEL = logging.INFO
QUIET_LOGGING_LEVEL = logging.ERROR
