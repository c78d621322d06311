# Copyright 2023 Jared Hendrickson
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Packages an issued key and certificate chain into the requested output format."""
import base64
import dataclasses
import logging
import pathlib
import re
import secrets
import tempfile

from cryptography import x509
from cryptography.hazmat.backends import default_backend
from cryptography.x509.oid import NameOID

from .. import errors
from ..tools import CommandRunner

logger = logging.getLogger(__name__)

CERT_TYPES = ["pem", "pfx"]
PEM_CERT_PATTERN = re.compile(r"-----BEGIN CERTIFICATE-----.+?-----END CERTIFICATE-----", re.DOTALL)


@dataclasses.dataclass(frozen=True)
class IssuedCertificate:
    """
    The output of a certificate generation run.

    Attributes:
        cert (str): The PEM certificate chain, or the base64 encoded PFX bundle.
        private_key (str): The PEM private key, or the PFX export passphrase.
        expiry_date_epoch_ms (int): The certificate expiry as milliseconds since the Unix epoch.
    """
    cert: str
    private_key: str
    expiry_date_epoch_ms: int


def get_expiry_epoch_ms(cert_pem, common_name: str) -> int:
    """
    Finds the certificate in a PEM chain whose subject common name is `common_name` and returns its expiry.

    Args:
        cert_pem (str|bytes): One or more PEM certificates.
        common_name (str): The subject common name of the leaf certificate.

    Returns:
        int: The `notAfter` date of the matching certificate as milliseconds since the Unix epoch, or 0 when no
            certificate in the chain has that subject.
    """
    if isinstance(cert_pem, bytes):
        cert_pem = cert_pem.decode()

    for block in PEM_CERT_PATTERN.findall(cert_pem):
        try:
            cert = x509.load_pem_x509_certificate(block.encode(), default_backend())
        except ValueError:
            logger.warning("Skipping unparsable certificate in the chain of '%s'", common_name)
            continue
        subjects = [attr.value for attr in cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)]
        if common_name in subjects:
            return int(cert.not_valid_after_utc.timestamp() * 1000)

    logger.warning("No certificate with subject '%s' found in the chain, reporting an expiry of 0", common_name)
    return 0


class CertificatePackager:
    """Converts a PEM key and certificate chain into a `pem` or `pfx` `IssuedCertificate`."""

    def __init__(self, runner: CommandRunner = None, openssl_path: str = "openssl") -> None:
        """
        Args:
            runner (CommandRunner): The command runner used to call OpenSSL for PFX exports.
            openssl_path (str): The OpenSSL executable.
        """
        self.runner = runner if runner else CommandRunner()
        self.openssl_path = openssl_path

    def package(self, private_key_pem, cert_pem, output_format: str, common_name: str) -> IssuedCertificate:
        """
        Packages a private key and certificate chain.

        Args:
            private_key_pem (str): The PEM encoded private key.
            cert_pem (str): The PEM encoded certificate chain.
            output_format (str): The requested output. Options are: [`pem`, `pfx`]
            common_name (str): The subject common name of the leaf certificate, used to find its expiry.

        Returns:
            IssuedCertificate: For `pem`, the unchanged key and chain. For `pfx`, the base64 encoded PKCS12 bundle
                and its export passphrase.

        Raises:
            acme_dns_certgen.errors.InvalidCertType: When `output_format` is unsupported.
            acme_dns_certgen.errors.CertificateExportFailed: When the PFX export fails.
        """
        if output_format == "pem":
            return IssuedCertificate(
                cert=cert_pem,
                private_key=private_key_pem,
                expiry_date_epoch_ms=get_expiry_epoch_ms(cert_pem, common_name)
            )
        if output_format == "pfx":
            return self.export_pfx(private_key_pem, cert_pem, common_name)

        raise errors.InvalidCertType(f"Unexpected certificate type '{output_format}'. Options {CERT_TYPES}")

    def export_pfx(self, private_key_pem, cert_pem, common_name: str) -> IssuedCertificate:
        """
        Exports a key and certificate chain to PKCS12 with a freshly generated passphrase. The working files only
        ever exist inside a temporary directory which is removed before this method returns or raises.
        """
        expiry = get_expiry_epoch_ms(cert_pem, common_name)

        try:
            workspace = tempfile.TemporaryDirectory(prefix="convertCert-")
        except OSError as exc:
            raise errors.CertificateExportFailed(f"Failed to create temp directory. ({exc.errno}) - {exc}") from exc

        with workspace as folder:
            folder = pathlib.Path(folder)
            key_path = folder.joinpath("pem.key")
            cert_path = folder.joinpath("pem.cert")
            pass_path = folder.joinpath("pass.txt")
            pfx_path = folder.joinpath("out.pfx")
            passphrase = secrets.token_hex(64)

            # The passphrase is passed by file, never on the command line
            try:
                _write(key_path, private_key_pem)
                _write(cert_path, cert_pem)
                _write(pass_path, passphrase)
            except OSError as exc:
                raise errors.CertificateExportFailed(f"Failed to write PEM files. ({exc.errno}) - {exc}") from exc

            result = self.runner.run([
                self.openssl_path, "pkcs12", "-export",
                "-out", str(pfx_path),
                "-passout", f"file:{pass_path}",
                "-inkey", str(key_path),
                "-in", str(cert_path),
            ])
            if not result.success:
                raise errors.CertificateExportFailed(
                    f"Failed to generate PFX. ({result.exit_code}) - {result.error_message}"
                )

            try:
                pfx = pfx_path.read_bytes()
            except OSError as exc:
                raise errors.CertificateExportFailed(f"Failed to read PFX. ({exc.errno}) - {exc}") from exc

        logger.info("Exported certificate for '%s' to PFX", common_name)
        return IssuedCertificate(
            cert=base64.b64encode(pfx).decode(),
            private_key=passphrase,
            expiry_date_epoch_ms=expiry
        )


def _write(path: pathlib.Path, data) -> None:
    if isinstance(data, str):
        data = data.encode()
    path.write_bytes(data)
