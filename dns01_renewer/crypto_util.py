"""Key, CSR and certificate helpers.

.. note:: Keys are handled as PEM encoded bytes at module boundaries;
    `cryptography` objects do not leave this module except through
    `load_private_key`.

"""
import datetime
import logging
import re
from typing import Sequence
from typing import Tuple
from typing import Union

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from dns01_renewer import errors

logger = logging.getLogger(__name__)

CERT_PEM_REGEX = re.compile(
    b"""-----BEGIN CERTIFICATE-----\r?
.+?\r?
-----END CERTIFICATE-----\r?
""",
    re.DOTALL  # DOTALL (/s) because the base64text may include newlines
)

PrivateKey = Union[rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey]


def make_key(bits: int = 2048) -> bytes:
    """Generate PEM encoded RSA key.

    :param int bits: Number of bits, at least 2048.

    :returns: new RSA key in PEM form with specified number of bits
    :rtype: bytes

    """
    if bits < 2048:
        raise errors.Error("Unsupported RSA key length: {}".format(bits))
    key = rsa.generate_private_key(public_exponent=65537, key_size=bits)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )


def load_private_key(pem: bytes) -> PrivateKey:
    """Load an unencrypted RSA or EC private key.

    :raises .errors.Error: if ``pem`` is not such a key

    """
    try:
        key = serialization.load_pem_private_key(pem, password=None)
    except (ValueError, TypeError) as error:
        raise errors.Error("Invalid private key: {0}".format(error)) from error
    if not isinstance(key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
        raise errors.Error("Unsupported private key type: {0}".format(type(key).__name__))
    return key


def make_csr(privkey_pem: bytes, domains: Sequence[str]) -> bytes:
    """Generate a CSR naming all domains.

    Every domain is a subjectAltName. When there is more than one domain
    the first one is also the subject common name.

    :param bytes privkey_pem: private key in PEM form
    :param list domains: domain names, at least one

    :returns: PEM encoded Certificate Signing Request
    :rtype: bytes

    """
    if not domains:
        raise errors.Error("A CSR must name at least one domain")
    subject = x509.Name([])
    if len(domains) > 1:
        subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, domains[0])])
    builder = (
        x509.CertificateSigningRequestBuilder()
        .subject_name(subject)
        .add_extension(
            x509.SubjectAlternativeName([x509.DNSName(d) for d in domains]),
            critical=False,
        )
    )
    csr = builder.sign(load_private_key(privkey_pem), hashes.SHA256())
    return csr.public_bytes(serialization.Encoding.PEM)


def notAfter(cert_path: str) -> datetime.datetime:
    """When does the cert at cert_path stop being valid?

    :param str cert_path: path to a cert in PEM format

    :returns: the notAfter value from the cert at cert_path
    :rtype: :class:`datetime.datetime`

    :raises ValueError: if the file does not hold a PEM certificate

    """
    with open(cert_path, "rb") as f:
        cert = x509.load_pem_x509_certificate(f.read())
    return cert.not_valid_after_utc


def cert_and_chain_from_fullchain(fullchain_pem: bytes) -> Tuple[bytes, bytes]:
    """Split fullchain_pem into cert_pem and chain_pem

    :param bytes fullchain_pem: concatenated cert + chain

    :returns: tuple of cert_pem and chain_pem
    :rtype: tuple

    :raises errors.Error: If there are less than 2 certificates in the chain.

    """
    certs = CERT_PEM_REGEX.findall(fullchain_pem)
    if len(certs) < 2:
        raise errors.Error("failed to parse fullchain into cert and chain: " +
                           "less than 2 certificates in chain")

    # Re-encoding normalizes line endings and whitespace.
    normalized = [x509.load_pem_x509_certificate(pem).public_bytes(serialization.Encoding.PEM)
                  for pem in certs]
    return normalized[0], b"".join(normalized[1:])
