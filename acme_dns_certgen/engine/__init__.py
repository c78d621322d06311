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
"""
ACME engine used by the challenge orchestrator. This wraps the `acme` client library with the account, order and
challenge operations a DNS-01 issuance run needs, plus private key and CSR generation for the order.
"""
import datetime
import logging
import time

import OpenSSL
import josepy as jose
from acme import challenges
from acme import client
from acme import errors as acme_errors
from acme import messages
from cryptography import x509
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa, ec
from cryptography.hazmat.primitives.serialization import Encoding, PrivateFormat, NoEncryption
from cryptography.x509.oid import NameOID

from .. import errors
from .. import tools
from ..config import Settings
from ..planner import DNS_LABEL

logger = logging.getLogger(__name__)

DIRECTORIES = {
    "staging": "https://acme-staging-v02.api.letsencrypt.org/directory",
    "production": "https://acme-v02.api.letsencrypt.org/directory",
}
KEY_TYPES = ["ec256", "ec384", "rsa2048", "rsa4096"]
USER_AGENT = "acme_dns_certgen/1.0"


def directory_url_for(mode: str, override: str = None) -> str:
    """
    Selects the ACME directory URL for a Let's Encrypt mode.

    Args:
        mode (str): Either `staging` or `production`.
        override (str): A directory URL to use instead of the Let's Encrypt URL (e.g. a Pebble test server). The
            mode is still validated.

    Returns:
        str: The ACME directory URL.

    Raises:
        acme_dns_certgen.errors.InvalidMode: When `mode` is not a supported Let's Encrypt mode.
    """
    if mode not in DIRECTORIES:
        raise errors.InvalidMode(f"Invalid input. Unsupported letsEncryptMode '{mode}'. Options {list(DIRECTORIES)}")
    return override or DIRECTORIES[mode]


def generate_private_key(key_type: str = "rsa2048") -> bytes:
    """
    Generates a new RSA or EC private key for the certificate.

    Args:
        key_type (str): The requested key type. Options are: [`ec256`, `ec384`, `rsa2048`, `rsa4096`]

    Returns:
        bytes: The PEM encoded private key data bytes-string.

    Raises:
        acme_dns_certgen.errors.InvalidKeyType: When an unknown/unsupported `key_type` is requested.
    """
    if key_type in ("ec256", "ec384"):
        curve = ec.SECP256R1() if key_type == "ec256" else ec.SECP384R1()
        key = ec.generate_private_key(curve, default_backend())
        return key.private_bytes(
            encoding=Encoding.PEM,
            format=PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=NoEncryption()
        )

    if key_type in ("rsa2048", "rsa4096"):
        key = OpenSSL.crypto.PKey()
        key.generate_key(OpenSSL.crypto.TYPE_RSA, 2048 if key_type == "rsa2048" else 4096)
        return OpenSSL.crypto.dump_privatekey(OpenSSL.crypto.FILETYPE_PEM, key)

    raise errors.InvalidKeyType(f"Invalid private key type '{key_type}'. Options {KEY_TYPES}")


def generate_csr(private_key_pem: bytes, common_name: str, names: list) -> bytes:
    """
    Generates a CSR whose subject is `common_name` and whose SANs are `names`.

    Args:
        private_key_pem (bytes): The PEM encoded private key to sign the CSR with.
        common_name (str): The certificate subject common name.
        names (list): The DNS names to list as subject alternative names.

    Returns:
        bytes: The PEM encoded CSR data bytes-string.
    """
    key = serialization.load_pem_private_key(private_key_pem, password=None, backend=default_backend())
    builder = x509.CertificateSigningRequestBuilder().subject_name(
        x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    ).add_extension(
        x509.SubjectAlternativeName([x509.DNSName(name) for name in names]),
        critical=False
    )
    return builder.sign(key, hashes.SHA256(), default_backend()).public_bytes(Encoding.PEM)


class ACMEEngine:
    """
    Drives the ACME account, order and DNS-01 challenge exchange for a single certificate.
    """

    def __init__(self, directory: str, settings: Settings = None) -> None:
        """
        Args:
            directory (str): The ACME directory URL to interact with.
            settings (Settings): Polling, timeout and DNS lookup settings. Defaults are used when omitted.
        """
        self.directory = directory
        self.settings = settings if settings else Settings()
        self.account_key = None
        self.account = None
        self.net = None
        self._acme_client = None

    def create_account(self, email: str) -> messages.RegistrationResource:
        """
        Registers a new ACME account at the `directory` URL. By running this method, you are agreeing to the
        ACME server's terms of use.

        Args:
            email (str): The contact address for the account.

        Returns:
            acme.messages.RegistrationResource: The new account registration.
        """
        rsa_key = rsa.generate_private_key(public_exponent=65537, key_size=2048, backend=default_backend())
        self.account_key = jose.JWKRSA(key=rsa_key)

        self.net = client.ClientNetwork(self.account_key, user_agent=USER_AGENT, verify_ssl=self.settings.verify_ssl)
        directory_obj = messages.Directory.from_json(self.net.get(self.directory).json())
        self._acme_client = client.ClientV2(directory_obj, net=self.net)

        registration = messages.NewRegistration.from_data(email=email, terms_of_service_agreed=True)
        self.account = self._acme_client.new_account(registration)
        logger.info("Registered ACME account at %s", self.directory)
        return self.account

    def create_order(self, identifiers: list, csr_pem: bytes) -> messages.OrderResource:
        """
        Creates a new order. The ACME client derives the order identifiers from the CSR, which must list
        exactly `identifiers`.
        """
        logger.info("Creating ACME order for %s", [identifier.value for identifier in identifiers])
        return self.acme_client.new_order(csr_pem)

    @staticmethod
    def get_authorizations(order: messages.OrderResource) -> list:
        return list(order.authorizations)

    @staticmethod
    def get_identifier(authorization: messages.AuthorizationResource) -> str:
        return authorization.body.identifier.value

    @staticmethod
    def get_challenges(authorization: messages.AuthorizationResource) -> list:
        return list(authorization.body.challenges)

    def get_challenge_key_authorization(self, challenge: messages.ChallengeBody) -> str:
        """
        Computes the TXT value for a DNS-01 challenge from the account key.

        Returns:
            str: The base64url encoded SHA-256 digest of the challenge key authorization.
        """
        if not isinstance(challenge.chall, challenges.DNS01):
            raise errors.ChallengeUnavailable(f"Challenge type '{challenge.chall.typ}' is not DNS-01.")
        return challenge.chall.validation(self._require_account_key())

    def verify_challenge(self, authorization: messages.AuthorizationResource, challenge: messages.ChallengeBody):
        """
        Checks locally that the challenge TXT value is resolvable before the ACME server is asked to validate.
        Skipped when `settings.local_verification` is disabled.

        Raises:
            acme_dns_certgen.errors.ChallengeVerificationFailed: When the value is not found before
                `settings.dns_timeout` elapses.
        """
        if not self.settings.local_verification:
            return

        fqdn = f"{DNS_LABEL}.{self.get_identifier(authorization)}"
        expected = self.get_challenge_key_authorization(challenge)
        query = tools.DNSQuery(
            fqdn,
            rtype="TXT",
            nameservers=self.settings.nameservers,
            authoritative=self.settings.authoritative_dns,
            round_robin=True
        )
        deadline = datetime.datetime.now() + datetime.timedelta(seconds=self.settings.dns_timeout)

        while True:
            if expected in query.resolve():
                logger.info("Found challenge TXT value for '%s' via %s", fqdn, query.last_nameserver)
                return
            if datetime.datetime.now() >= deadline:
                raise errors.ChallengeVerificationFailed(
                    f"Challenge TXT value for '{fqdn}' not found in {query.values} after "
                    f"{self.settings.dns_timeout} seconds."
                )
            time.sleep(self.settings.dns_interval)

    def complete_challenge(self, challenge: messages.ChallengeBody) -> None:
        """Tells the ACME server the challenge is ready to be validated."""
        self.acme_client.answer_challenge(challenge, challenge.response(self._require_account_key()))

    def wait_for_valid_status(self, authorization: messages.AuthorizationResource) -> messages.AuthorizationResource:
        """
        Polls an authorization until the ACME server reports it valid.

        Returns:
            acme.messages.AuthorizationResource: The updated, valid authorization.

        Raises:
            acme_dns_certgen.errors.ChallengeVerificationFailed: When the authorization becomes invalid.
            acme_dns_certgen.errors.ACMETimeout: When the authorization is still pending after `settings.acme_timeout`.
        """
        deadline = datetime.datetime.now() + datetime.timedelta(seconds=self.settings.acme_timeout)

        while True:
            authorization, _ = self.acme_client.poll(authorization)
            status = authorization.body.status

            if status == messages.STATUS_VALID:
                return authorization
            if status == messages.STATUS_INVALID:
                details = [str(chall.error) for chall in authorization.body.challenges if chall.error]
                raise errors.ChallengeVerificationFailed(
                    f"Authorization for '{self.get_identifier(authorization)}' is invalid: {details}"
                )
            if datetime.datetime.now() >= deadline:
                raise errors.ACMETimeout(
                    f"Authorization for '{self.get_identifier(authorization)}' still '{status}' after "
                    f"{self.settings.acme_timeout} seconds."
                )
            time.sleep(self.settings.poll_interval)

    def finalize_order(self, order: messages.OrderResource) -> messages.OrderResource:
        """
        Submits the order's CSR and waits for the certificate to be issued.

        Returns:
            acme.messages.OrderResource: The finalized order containing the certificate chain.

        Raises:
            acme_dns_certgen.errors.ACMETimeout: When the certificate is not issued within `settings.acme_timeout`.
        """
        deadline = datetime.datetime.now() + datetime.timedelta(seconds=self.settings.acme_timeout)
        try:
            return self.acme_client.finalize_order(order, deadline)
        except acme_errors.TimeoutError as exc:
            raise errors.ACMETimeout(f"Certificate was not issued within {self.settings.acme_timeout} seconds.") from exc

    @staticmethod
    def get_certificate(order: messages.OrderResource) -> str:
        return order.fullchain_pem

    @property
    def acme_client(self) -> client.ClientV2:
        """
        Getter for the `acme_client` property. This checks that the ACME client is set up whenever it's referenced.

        Raises:
            acme_dns_certgen.errors.InvalidAccount: When no account registration is configured for this object.
        """
        if not isinstance(self._acme_client, client.ClientV2):
            msg = "No account registration found. You must register a new account first."
            raise errors.InvalidAccount(msg)

        return self._acme_client

    def _require_account_key(self) -> jose.JWKRSA:
        if self.account_key is None:
            raise errors.InvalidAccount("No account key found. You must register a new account first.")
        return self.account_key
