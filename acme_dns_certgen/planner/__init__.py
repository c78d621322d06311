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
"""Plans the DNS identifiers and the shared challenge record set for a certificate request."""
import dataclasses

from .. import errors

DNS_LABEL = "_acme-challenge"
WILDCARD = "*"


@dataclasses.dataclass(frozen=True)
class Identifier:
    """An ACME identifier to authorize."""
    value: str
    kind: str = "dns"


@dataclasses.dataclass(frozen=True)
class IdentifierPlan:
    """The identifiers to order and the record set their DNS-01 challenges are published to."""
    zone: str
    identifiers: tuple
    record_set_name: str
    common_name: str

    @property
    def record_fqdn(self) -> str:
        """The fully qualified name of the challenge record set."""
        return f"{self.record_set_name}.{self.zone}"

    @property
    def names(self) -> list:
        """The identifier values, in order."""
        return [identifier.value for identifier in self.identifiers]


def plan_identifiers(domain: str, sub_domain: str = "") -> IdentifierPlan:
    """
    Computes the identifiers to authorize for a domain/subdomain pair and the record set name they share.

    Args:
        domain (str): The DNS zone (e.g. `example.com`).
        sub_domain (str): An empty string for the zone apex, a label such as `www`, or `*` for a wildcard
            certificate which also covers the apex.

    Returns:
        IdentifierPlan: The ordered identifiers, the relative record set name and the certificate common name.

    Raises:
        acme_dns_certgen.errors.InvalidDomain: When `domain` is empty.

    Examples:
        >>> plan_identifiers("example.com", "*").names
        ['*.example.com', 'example.com']
    """
    if not domain:
        raise errors.InvalidDomain("A domain is required to plan certificate identifiers.")

    sub_domain = sub_domain or ""

    # Apex only
    if not sub_domain:
        return IdentifierPlan(
            zone=domain,
            identifiers=(Identifier(domain),),
            record_set_name=DNS_LABEL,
            common_name=domain
        )

    common_name = f"{sub_domain}.{domain}"

    # Wildcards are validated against the apex record set, so the apex can be covered by the same record set
    if sub_domain == WILDCARD:
        return IdentifierPlan(
            zone=domain,
            identifiers=(Identifier(common_name), Identifier(domain)),
            record_set_name=DNS_LABEL,
            common_name=common_name
        )

    return IdentifierPlan(
        zone=domain,
        identifiers=(Identifier(common_name),),
        record_set_name=f"{DNS_LABEL}.{sub_domain}",
        common_name=common_name
    )
