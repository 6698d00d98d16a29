"""Digital signature verification over streamed data.

A :class:`SignatureVerifier` hashes data as it arrives and, once all of
it has been fed in, checks a signature against the public key of the
signer's X.509 certificate. RSA (PKCS#1 v1.5) and ECDSA keys are
supported, with SHA-1 or SHA-256 digests.
"""

from __future__ import annotations

import hashlib
import logging
from enum import IntEnum

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed

logger = logging.getLogger(__name__)

SHA1_DIGEST_BYTES = 20
SHA256_DIGEST_BYTES = 32


class HashAlgorithm(IntEnum):
    """Hash algorithm that was used when signing."""

    SHA1 = 1
    SHA256 = 2


class AsymmetricAlgorithm(IntEnum):
    """Public key cryptosystem of the signer."""

    RSA = 1
    ECDSA = 2


def _normalise_hash(value: int) -> HashAlgorithm:
    # Anything that is not SHA-1 is treated as SHA-256.
    return HashAlgorithm.SHA1 if value == HashAlgorithm.SHA1 else HashAlgorithm.SHA256


def _load_certificate(signer_certificate: str | bytes) -> x509.Certificate | None:
    data = (
        signer_certificate.encode("ascii", errors="replace")
        if isinstance(signer_certificate, str)
        else bytes(signer_certificate)
    )
    try:
        if b"-----BEGIN" in data:
            return x509.load_pem_x509_certificate(data.rstrip(b"\x00"))
        return x509.load_der_x509_certificate(data)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        logger.debug("Failed to parse signer certificate: %s", exc)
        return None


def verify_signature(
    signer_certificate: str | bytes,
    hash_algorithm: int,
    digest: bytes,
    signature: bytes,
) -> bool:
    """Check ``signature`` over a precomputed ``digest`` with the certificate's key.

    Returns ``False`` if the certificate cannot be parsed, the key type is
    not supported or the signature does not verify.
    """
    certificate = _load_certificate(signer_certificate)
    if certificate is None:
        return False

    chosen: hashes.HashAlgorithm = (
        hashes.SHA1() if _normalise_hash(hash_algorithm) is HashAlgorithm.SHA1 else hashes.SHA256()
    )
    prehashed = Prehashed(chosen)

    try:
        public_key = certificate.public_key()
        if isinstance(public_key, rsa.RSAPublicKey):
            public_key.verify(bytes(signature), bytes(digest), padding.PKCS1v15(), prehashed)
        elif isinstance(public_key, ec.EllipticCurvePublicKey):
            public_key.verify(bytes(signature), bytes(digest), ec.ECDSA(prehashed))
        else:
            logger.debug("Unsupported signer key type: %s", type(public_key).__name__)
            return False
    except (InvalidSignature, ValueError, TypeError, UnsupportedAlgorithm) as exc:
        logger.debug("Signature verification failed: %r", exc)
        return False
    return True


class SignatureVerifier:
    """Incremental signature verification.

    Feed the signed data with :meth:`update`, then call :meth:`verify`
    once. The verifier cannot be used after :meth:`verify`.
    """

    def __init__(
        self,
        asymmetric_algorithm: int = AsymmetricAlgorithm.RSA,
        hash_algorithm: int = HashAlgorithm.SHA256,
    ) -> None:
        self.asymmetric_algorithm = asymmetric_algorithm
        self.hash_algorithm = _normalise_hash(hash_algorithm)
        self._hash = (
            hashlib.sha1() if self.hash_algorithm is HashAlgorithm.SHA1 else hashlib.sha256()
        )
        self._finished = False

    def _ensure_active(self) -> None:
        if self._finished:
            raise RuntimeError("signature verifier has already been finished")

    def update(self, data: bytes) -> None:
        """Add ``data`` to the running hash."""
        self._ensure_active()
        self._hash.update(data)

    def verify(self, signer_certificate: str | bytes | None, signature: bytes | None) -> bool:
        """Finish the hash and verify ``signature`` with the signer's certificate.

        A missing or empty certificate or signature yields ``False``. The
        verifier is finished afterwards either way.
        """
        self._ensure_active()
        self._finished = True
        if not signer_certificate or not signature:
            return False
        digest = self._hash.digest()
        return verify_signature(signer_certificate, self.hash_algorithm, digest, signature)