"""On-disk certificate store.

Layout::

    <certdir>/<issuance-id>/{privkey,cert,chain,fullchain}.pem
    <certdir>/current -> <issuance-id>

Issuance directories are never modified once ``current`` points at them,
and are never deleted.

"""
import datetime
import logging
import os
from typing import Callable
from typing import Dict
from typing import Mapping
from typing import Optional

from dns01_renewer import constants
from dns01_renewer import errors
from dns01_renewer import interfaces
from dns01_renewer import util

logger = logging.getLogger(__name__)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class CertificateStore:
    """Certificate bundles of one zone configuration.

    :ivar str certdir: directory holding the issuance directories
    :ivar certnames: file name of each bundle member, keyed by kind

    """

    def __init__(self, certdir: str, certnames: Mapping[str, str] = constants.DEFAULT_CERT_NAMES,
                 clock: Callable[[], datetime.datetime] = _utcnow) -> None:
        self.certdir = certdir
        self.certnames = certnames
        self.clock = clock

    @property
    def current_link(self) -> str:
        """Path of the ``current`` symlink."""
        return os.path.join(self.certdir, constants.CURRENT_LINK)

    def current_paths(self) -> Optional[Dict[str, str]]:
        """Paths of the published bundle members.

        :returns: ``{kind: path}`` through the ``current`` link, or
            ``None`` if nothing has been published yet
        :rtype: dict

        """
        if not os.path.exists(self.current_link):
            return None
        return {kind: os.path.join(self.current_link, self.certnames[kind])
                for kind in constants.CERT_KINDS}

    def current_target(self) -> Optional[str]:
        """Issuance id ``current`` points at, if it is a symlink."""
        if not os.path.islink(self.current_link):
            return None
        return os.path.basename(os.readlink(self.current_link))

    def publish(self, artifact: interfaces.CertificateArtifact,
                issuance_id: Optional[str] = None) -> str:
        """Write a bundle to a new issuance directory and make it current.

        Until the final rename, ``current`` keeps pointing at the
        previous issuance.

        :param .CertificateArtifact artifact: bundle to write
        :param str issuance_id: directory name, derived from the clock if
            ``None``

        :returns: path of the new issuance directory
        :rtype: str

        :raises .PersistError: if the bundle cannot be written or
            ``current`` cannot be repointed

        """
        if os.path.isdir(self.current_link) and not os.path.islink(self.current_link):
            raise errors.PersistError(
                f'{self.current_link} is a directory, refusing to replace it')

        try:
            util.make_or_verify_dir(self.certdir, constants.ISSUANCE_DIR_MODE)
            issuance_dir = self._new_issuance_dir(issuance_id)
            self._write_members(issuance_dir, artifact)
        except OSError as error:
            raise errors.PersistError(
                f'Unable to write the certificate bundle under {self.certdir}: {error}') from error

        self._repoint(os.path.basename(issuance_dir))
        logger.info('Certificate published to %s', issuance_dir)
        return issuance_dir

    def _new_issuance_dir(self, issuance_id: Optional[str]) -> str:
        base = issuance_id or self.clock().strftime(constants.ISSUANCE_ID_FORMAT)
        candidate, suffix = base, 0
        while True:
            path = os.path.join(self.certdir, candidate)
            try:
                os.mkdir(path, constants.ISSUANCE_DIR_MODE)
            except FileExistsError:
                suffix += 1
                candidate = '{0}-{1}'.format(base, suffix)
                continue
            return path

    def _write_members(self, issuance_dir: str,
                       artifact: interfaces.CertificateArtifact) -> None:
        for kind in constants.CERT_KINDS:
            mode = (constants.PRIVKEY_MODE if kind == 'privkey'
                    else constants.PUBLIC_FILE_MODE)
            path = os.path.join(issuance_dir, self.certnames[kind])
            with util.safe_open(path, 'wb', chmod=mode) as f:
                logger.debug('Writing %s to %s.', kind, path)
                f.write(getattr(artifact, kind))

    def _repoint(self, issuance_id: str) -> None:
        tmp_link = os.path.join(self.certdir, '.{0}.{1}'.format(
            constants.CURRENT_LINK, issuance_id))
        try:
            os.symlink(issuance_id, tmp_link)
            os.replace(tmp_link, self.current_link)
        except OSError as error:
            if os.path.lexists(tmp_link):
                os.unlink(tmp_link)
            raise errors.PersistError(
                f'Unable to point {self.current_link} at {issuance_id}: {error}') from error
