"""Tests for dns01_renewer.crypto_util."""
import datetime
import os
import sys
import unittest

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID
import pytest

from dns01_renewer import errors
from dns01_renewer._internal.tests import util as test_util


class MakeKeyTest(unittest.TestCase):
    """Tests for dns01_renewer.crypto_util.make_key."""

    def test_rsa_2048(self):
        from dns01_renewer.crypto_util import load_private_key, make_key
        key = load_private_key(make_key(2048))
        assert isinstance(key, rsa.RSAPrivateKey)
        assert key.key_size == 2048

    def test_too_small(self):
        from dns01_renewer.crypto_util import make_key
        with pytest.raises(errors.Error):
            make_key(1024)


class LoadPrivateKeyTest(unittest.TestCase):
    """Tests for dns01_renewer.crypto_util.load_private_key."""

    def test_garbage(self):
        from dns01_renewer.crypto_util import load_private_key
        with pytest.raises(errors.Error):
            load_private_key(b'not a key')

    def test_certificate_is_not_a_key(self):
        from dns01_renewer.crypto_util import load_private_key
        with pytest.raises(errors.Error):
            load_private_key(test_util.make_cert_expiring_in(10))


class MakeCSRTest(unittest.TestCase):
    """Tests for dns01_renewer.crypto_util.make_csr."""

    @classmethod
    def setUpClass(cls):
        from dns01_renewer.crypto_util import make_key
        cls.key = make_key(2048)

    def _call(self, domains):
        from dns01_renewer.crypto_util import make_csr
        return x509.load_pem_x509_csr(make_csr(self.key, domains))

    def _sans(self, csr):
        ext = csr.extensions.get_extension_for_class(x509.SubjectAlternativeName)
        return ext.value.get_values_for_type(x509.DNSName)

    def test_single_domain(self):
        csr = self._call(['example.com'])
        assert self._sans(csr) == ['example.com']
        assert not csr.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
        assert csr.is_signature_valid

    def test_first_domain_is_common_name(self):
        csr = self._call(['example.com', 'www.example.com', 'mail.example.com'])
        common_name = csr.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value
        assert common_name == 'example.com'
        assert self._sans(csr) == ['example.com', 'www.example.com', 'mail.example.com']

    def test_no_domains(self):
        from dns01_renewer.crypto_util import make_csr
        with pytest.raises(errors.Error):
            make_csr(self.key, [])


class NotAfterTest(test_util.TempDirTestCase):
    """Tests for dns01_renewer.crypto_util.notAfter."""

    def test_not_after(self):
        from dns01_renewer.crypto_util import notAfter
        expiry = datetime.datetime(2031, 5, 17, 12, 0, tzinfo=datetime.timezone.utc)
        path = os.path.join(self.tempdir, 'cert.pem')
        with open(path, 'wb') as f:
            f.write(test_util.make_cert(expiry))
        assert notAfter(path) == expiry

    def test_not_a_certificate(self):
        from dns01_renewer.crypto_util import notAfter
        path = os.path.join(self.tempdir, 'cert.pem')
        with open(path, 'wb') as f:
            f.write(b'garbage')
        with pytest.raises(ValueError):
            notAfter(path)


class CertAndChainFromFullchainTest(unittest.TestCase):
    """Tests for dns01_renewer.crypto_util.cert_and_chain_from_fullchain."""

    def _call(self, fullchain):
        from dns01_renewer.crypto_util import cert_and_chain_from_fullchain
        return cert_and_chain_from_fullchain(fullchain)

    def test_split(self):
        artifact = test_util.make_artifact()
        cert, chain = self._call(artifact.fullchain.replace(b'\n', b'\r\n'))
        assert cert == artifact.cert
        assert chain == artifact.chain

    def test_single_certificate(self):
        with pytest.raises(errors.Error):
            self._call(test_util.make_cert_expiring_in(10))


if __name__ == "__main__":
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
