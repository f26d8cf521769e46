"""Loads or creates the CA account key."""
import logging
import os
from typing import Callable

from dns01_renewer import constants
from dns01_renewer import crypto_util
from dns01_renewer import errors
from dns01_renewer import interfaces
from dns01_renewer import util
from dns01_renewer.acme_client import AcmeCAClient

logger = logging.getLogger(__name__)

CAClientFactory = Callable[[bytes, str], interfaces.CAClient]


def ensure_account(path: str, contact_email: str, endpoint: str,
                   ca_factory: CAClientFactory = AcmeCAClient) -> interfaces.CAClient:
    """Return a CA client bound to the account key stored at ``path``.

    On the first run the key is generated, the account registered with
    the CA, and the key written to ``path`` readable by its owner only.
    Later runs load the key and reuse the account.

    :param str path: account key file
    :param str contact_email: contact address given at registration
    :param str endpoint: CA directory URL
    :param ca_factory: builds a CA client from a PEM key and an endpoint

    :raises .AccountKeyError: if the key file is unreadable or not a key
    :raises .RegistrationError: if the CA rejects the registration

    """
    if os.path.exists(path):
        key_pem = _read_key(path)
        client = ca_factory(key_pem, endpoint)
        if isinstance(client, AcmeCAClient) and client.find_account() is None:
            logger.warning('No account is registered at %s for the key %s, registering it',
                           endpoint, path)
            client.register_account(contact_email)
        logger.debug('Using account key %s', path)
        return client

    logger.info('Creating a new account key at %s', path)
    key_pem = crypto_util.make_key(constants.ACCOUNT_KEY_SIZE)
    client = ca_factory(key_pem, endpoint)
    client.register_account(contact_email)
    _write_key(path, key_pem)
    return client


def _read_key(path: str) -> bytes:
    try:
        with open(path, 'rb') as key_file:
            key_pem = key_file.read()
    except OSError as error:
        raise errors.AccountKeyError(f'Unable to read account key {path}: {error}') from error
    try:
        crypto_util.load_private_key(key_pem)
    except errors.Error as error:
        raise errors.AccountKeyError(f'{path} does not hold a usable key: {error}') from error
    return key_pem


def _write_key(path: str, key_pem: bytes) -> None:
    key_dir = os.path.dirname(path)
    try:
        if key_dir:
            util.make_or_verify_dir(key_dir, constants.ACCOUNT_DIR_MODE)
        with util.safe_open(path, 'wb', chmod=constants.ACCOUNT_KEY_MODE) as key_file:
            key_file.write(key_pem)
    except OSError as error:
        raise errors.AccountKeyError(
            f'Account registered, but its key could not be saved to {path}: {error}') from error
