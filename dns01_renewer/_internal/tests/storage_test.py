"""Tests for dns01_renewer.storage."""
import datetime
import os
import stat
import sys
from unittest import mock

import pytest

from dns01_renewer import constants
from dns01_renewer import errors
from dns01_renewer._internal.tests import util as test_util

NOW = datetime.datetime(2024, 3, 1, 4, 5, 6, tzinfo=datetime.timezone.utc)


class CertificateStoreTest(test_util.TempDirTestCase):
    """Tests for dns01_renewer.storage.CertificateStore."""

    def setUp(self):
        super().setUp()
        from dns01_renewer.storage import CertificateStore
        self.certdir = os.path.join(self.tempdir, 'certs')
        self.store = CertificateStore(self.certdir, constants.DEFAULT_CERT_NAMES,
                                      clock=lambda: NOW)
        self.artifact = test_util.make_artifact()

    def _read(self, path):
        with open(path, 'rb') as f:
            return f.read()

    def test_nothing_published(self):
        assert self.store.current_paths() is None
        assert self.store.current_target() is None

    def test_publish(self):
        path = self.store.publish(self.artifact)

        assert path == os.path.join(self.certdir, '20240301040506')
        assert self.store.current_target() == '20240301040506'
        paths = self.store.current_paths()
        for kind in constants.CERT_KINDS:
            assert self._read(paths[kind]) == getattr(self.artifact, kind)
            assert os.path.dirname(paths[kind]) == self.store.current_link
        assert stat.S_IMODE(os.stat(paths['privkey']).st_mode) == 0o600
        assert stat.S_IMODE(os.stat(paths['cert']).st_mode) == 0o644
        assert not os.path.isabs(os.readlink(self.store.current_link))

    def test_custom_names(self):
        from dns01_renewer.storage import CertificateStore
        names = dict(constants.DEFAULT_CERT_NAMES, cert='leaf.pem')
        store = CertificateStore(self.certdir, names, clock=lambda: NOW)
        path = store.publish(self.artifact)
        assert os.path.exists(os.path.join(path, 'leaf.pem'))
        assert not os.path.exists(os.path.join(path, 'cert.pem'))

    def test_issuance_ids_are_unique(self):
        first = self.store.publish(self.artifact)
        second = self.store.publish(test_util.make_artifact())
        assert first != second
        assert os.path.basename(second) == '20240301040506-1'
        assert self.store.current_target() == '20240301040506-1'
        assert os.path.isdir(first)

    def test_explicit_issuance_id(self):
        self.store.publish(self.artifact, issuance_id='0001')
        assert self.store.current_target() == '0001'

    def test_repoint_failure_keeps_previous(self):
        self.store.publish(self.artifact, issuance_id='old')
        with mock.patch('dns01_renewer.storage.os.replace', side_effect=OSError('EIO')):
            with pytest.raises(errors.PersistError):
                self.store.publish(test_util.make_artifact(), issuance_id='new')

        assert self.store.current_target() == 'old'
        assert self._read(self.store.current_paths()['cert']) == self.artifact.cert
        assert sorted(os.listdir(self.certdir)) == ['current', 'new', 'old']

    def test_write_failure_keeps_previous(self):
        self.store.publish(self.artifact, issuance_id='old')
        with mock.patch('dns01_renewer.storage.util.safe_open', side_effect=OSError('ENOSPC')):
            with pytest.raises(errors.PersistError):
                self.store.publish(test_util.make_artifact(), issuance_id='new')
        assert self.store.current_target() == 'old'

    def test_current_is_a_directory(self):
        os.makedirs(os.path.join(self.certdir, 'current'))
        with pytest.raises(errors.PersistError):
            self.store.publish(self.artifact)
        assert os.listdir(self.certdir) == ['current']


if __name__ == "__main__":
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
