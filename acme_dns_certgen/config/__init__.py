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
"""Tunable settings for certificate generation runs."""
import dataclasses
import os

DEFAULT_PROPAGATION_DELAY = 30
DEFAULT_RECORD_TTL = 20


@dataclasses.dataclass
class Settings:
    """
    Settings shared by every component of a certificate generation run.

    Attributes:
        propagation_delay (float): Seconds to wait after publishing a TXT value before asking for validation.
        record_ttl (int): TTL (in seconds) of the challenge TXT record set.
        directory (str): An ACME directory URL overriding the Let's Encrypt URL selected by mode.
        key_type (str): The certificate private key type. Options are: [`ec256`, `ec384`, `rsa2048`, `rsa4096`]
        acme_timeout (float): Seconds to wait for the ACME server to validate a challenge or issue the certificate.
        poll_interval (float): Seconds between ACME status polls.
        local_verification (bool): Look up the TXT value locally before asking the ACME server to validate.
        dns_timeout (float): Seconds to keep retrying the local TXT lookup.
        dns_interval (float): Seconds between local TXT lookups.
        nameservers (list): Nameservers to use for the local TXT lookup. Defaults to the system resolvers.
        authoritative_dns (bool): Send the local TXT lookup to the zone's authoritative nameservers instead.
        verify_ssl (bool): Verify the ACME server's TLS certificate.
        az_path (str): The Azure CLI executable.
        openssl_path (str): The OpenSSL executable used for PFX exports.
    """
    # pylint: disable=too-many-instance-attributes
    propagation_delay: float = DEFAULT_PROPAGATION_DELAY
    record_ttl: int = DEFAULT_RECORD_TTL
    directory: str = None
    key_type: str = "rsa2048"
    acme_timeout: float = 300
    poll_interval: float = 2
    local_verification: bool = True
    dns_timeout: float = 120
    dns_interval: float = 5
    nameservers: list = None
    authoritative_dns: bool = False
    verify_ssl: bool = True
    az_path: str = "az"
    openssl_path: str = "openssl"

    @classmethod
    def from_env(cls, environ: dict = None) -> "Settings":
        """
        Builds settings from environment variables, falling back to the defaults for unset values.

        Args:
            environ (dict): The mapping to read from. Defaults to `os.environ`.

        Returns:
            Settings: The populated settings object.

        Raises:
            ValueError: When a numeric variable cannot be parsed.

        Examples:
            >>> Settings.from_env({"ACME_DNS_PROPAGATION_DELAY": "60"}).propagation_delay
            60.0
        """
        environ = os.environ if environ is None else environ
        defaults = cls()

        nameservers = environ.get("ACME_DNS_NAMESERVERS")
        if nameservers:
            nameservers = [server.strip() for server in nameservers.split(",") if server.strip()]

        return cls(
            propagation_delay=float(environ.get("ACME_DNS_PROPAGATION_DELAY", defaults.propagation_delay)),
            record_ttl=int(environ.get("ACME_DNS_RECORD_TTL", defaults.record_ttl)),
            directory=environ.get("ACME_DIRECTORY") or None,
            key_type=environ.get("ACME_KEY_TYPE", defaults.key_type),
            acme_timeout=float(environ.get("ACME_TIMEOUT", defaults.acme_timeout)),
            poll_interval=float(environ.get("ACME_POLL_INTERVAL", defaults.poll_interval)),
            local_verification=_to_bool(environ.get("ACME_DNS_LOCAL_VERIFICATION"), defaults.local_verification),
            dns_timeout=float(environ.get("ACME_DNS_TIMEOUT", defaults.dns_timeout)),
            dns_interval=float(environ.get("ACME_DNS_INTERVAL", defaults.dns_interval)),
            nameservers=nameservers or None,
            authoritative_dns=_to_bool(environ.get("ACME_DNS_AUTHORITATIVE"), defaults.authoritative_dns),
            verify_ssl=_to_bool(environ.get("ACME_VERIFY_SSL"), defaults.verify_ssl),
            az_path=environ.get("AZ_CLI_PATH", defaults.az_path),
            openssl_path=environ.get("OPENSSL_PATH", defaults.openssl_path)
        )


def _to_bool(value: str, default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")
