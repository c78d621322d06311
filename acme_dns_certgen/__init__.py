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
acme_dns_certgen issues a single TLS certificate from Let's Encrypt using the ACME DNS-01 challenge. Challenge TXT
records are published to an Azure DNS zone through the `az` CLI and removed again once validated, and the issued
certificate is returned either as PEM or as a base64 encoded PFX bundle.
"""
import dataclasses
import logging

import validators

from . import errors
from . import tools
from .config import Settings
from .engine import ACMEEngine, DIRECTORIES, directory_url_for, generate_csr, generate_private_key
from .orchestrator import ChallengeOrchestrator
from .packager import CERT_TYPES, CertificatePackager, IssuedCertificate
from .planner import WILDCARD, plan_identifiers
from .records import AzureDnsPublisher, DnsProviderRef

__pdoc__ = {"tests": False}    # Excludes 'tests' submodule from documentation
__all__ = [
    "CertificateGenerator",
    "DnsProviderRef",
    "GenerateCertRequest",
    "IssuedCertificate",
    "Settings",
    "errors",
    "generate_cert",
]

logger = logging.getLogger(__name__)

# Upper bound on the X.509 subject common name length
MAX_COMMON_NAME_LENGTH = 64


@dataclasses.dataclass(frozen=True)
class GenerateCertRequest:
    """
    The input of a certificate generation run.

    Attributes:
        domain (str): The DNS zone the certificate is issued under (e.g. `example.com`).
        sub_domain (str): An empty string for the zone apex, a label such as `www`, or `*` for a wildcard
            certificate which also covers the apex.
        cert_type (str): The output format. Options are: [`pem`, `pfx`]
        lets_encrypt_mode (str): The Let's Encrypt environment. Options are: [`staging`, `production`]
        dns_provider (DnsProviderRef): The Azure subscription and resource group hosting the DNS zone.
        notify_email (str): The ACME account contact address.
    """
    domain: str
    dns_provider: DnsProviderRef
    notify_email: str
    sub_domain: str = ""
    cert_type: str = "pem"
    lets_encrypt_mode: str = "staging"

    def validate(self) -> None:
        """
        Checks every field of the request.

        Raises:
            acme_dns_certgen.errors.InvalidMode: When `lets_encrypt_mode` is unsupported.
            acme_dns_certgen.errors.InvalidCertType: When `cert_type` is unsupported.
            acme_dns_certgen.errors.InvalidDomain: When `domain` or `sub_domain` do not form a valid DNS name, or
                the resulting common name is longer than 64 characters.
            acme_dns_certgen.errors.InvalidEmail: When `notify_email` is not a valid email address.
        """
        if self.lets_encrypt_mode not in DIRECTORIES:
            msg = f"Invalid input. Unsupported letsEncryptMode '{self.lets_encrypt_mode}'. Options {list(DIRECTORIES)}"
            raise errors.InvalidMode(msg)

        if self.cert_type not in CERT_TYPES:
            raise errors.InvalidCertType(f"Invalid input. Unsupported certType '{self.cert_type}'. Options {CERT_TYPES}")

        if not self.domain or not validators.domain(self.domain):
            raise errors.InvalidDomain(f"Invalid domain name '{self.domain}'. Domain name must adhere to RFC2181.")

        # The wildcard marker is checked as the apex; any other label must form a valid name with the domain
        if self.sub_domain and self.sub_domain != WILDCARD and not validators.domain(f"{self.sub_domain}.{self.domain}"):
            raise errors.InvalidDomain(f"Invalid subdomain '{self.sub_domain}' for domain '{self.domain}'.")

        common_name = plan_identifiers(self.domain, self.sub_domain).common_name
        if len(common_name) > MAX_COMMON_NAME_LENGTH:
            raise errors.InvalidDomain(
                f"Invalid domain name '{common_name}'. Certificate common names are limited to "
                f"{MAX_COMMON_NAME_LENGTH} characters."
            )

        if not validators.email(self.notify_email or ""):
            raise errors.InvalidEmail(f"Value '{self.notify_email}' is not a valid email address.")


class CertificateGenerator:
    """
    Runs the full issuance flow: plan identifiers, register an account, order, authorize every identifier via
    DNS-01, finalize, and package the certificate.
    """

    def __init__(
            self,
            settings: Settings = None,
            runner: tools.CommandRunner = None,
            engine_factory=ACMEEngine,
            packager: CertificatePackager = None
    ) -> None:
        """
        Args:
            settings (Settings): Run settings. Defaults to `Settings()`.
            runner (tools.CommandRunner): The command runner shared by the DNS publisher and the packager.
            engine_factory: A callable taking `(directory, settings)` and returning an ACME engine.
            packager (CertificatePackager): The certificate packager. Defaults to one using `runner`.

        Examples:
            >>> generator = acme_dns_certgen.CertificateGenerator(settings=acme_dns_certgen.Settings.from_env())
        """
        self.settings = settings if settings else Settings()
        self.runner = runner if runner else tools.CommandRunner()
        self.engine_factory = engine_factory
        self.packager = packager if packager else CertificatePackager(self.runner, self.settings.openssl_path)

    def generate(self, request: GenerateCertRequest) -> IssuedCertificate:
        """
        Issues a certificate for a request.

        Args:
            request (GenerateCertRequest): The certificate to issue.

        Returns:
            IssuedCertificate: The packaged certificate. There is no partial result: any fatal error is raised.

        Raises:
            acme_dns_certgen.errors.CertGenError: When validation, any ACME step, DNS publishing or packaging fails.
        """
        request.validate()
        plan = plan_identifiers(request.domain, request.sub_domain)
        logger.info("Generating %s certificate for %s", request.cert_type, plan.names)

        engine = self.engine_factory(directory_url_for(request.lets_encrypt_mode, self.settings.directory), self.settings)
        engine.create_account(request.notify_email)

        private_key = generate_private_key(self.settings.key_type)
        csr = generate_csr(private_key, plan.common_name, plan.names)
        order = engine.create_order(plan.identifiers, csr)

        publisher = AzureDnsPublisher(self.runner, request.dns_provider, self.settings.az_path)
        orchestrator = ChallengeOrchestrator(
            engine,
            publisher,
            propagation_delay=self.settings.propagation_delay,
            record_ttl=self.settings.record_ttl
        )
        orchestrator.authorize(order, plan)

        order = engine.finalize_order(order)
        cert = engine.get_certificate(order)
        logger.info("Certificate issued for '%s'", plan.common_name)

        return self.packager.package(private_key.decode(), cert, request.cert_type, plan.common_name)


def generate_cert(request: GenerateCertRequest, settings: Settings = None, **kwargs) -> IssuedCertificate:
    """
    Issues a certificate for a request with a default `CertificateGenerator`.

    Examples:
        >>> cert = acme_dns_certgen.generate_cert(acme_dns_certgen.GenerateCertRequest(
        ...     domain="example.com",
        ...     dns_provider=acme_dns_certgen.DnsProviderRef("00000000-0000-0000-0000-000000000000", "dns-rg"),
        ...     notify_email="admin@example.com",
        ...     cert_type="pfx"
        ... ))
        >>> cert.expiry_date_epoch_ms
        1767225600000
    """
    return CertificateGenerator(settings=settings, **kwargs).generate(request)
