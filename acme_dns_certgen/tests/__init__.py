"""Unit tests and testing tools for the acme_dns_certgen package."""

from acme_dns_certgen.records import DnsProviderRef

TEST_DOMAIN = "example.com"
TEST_EMAIL = "admin@example.com"
TEST_DNS_PROVIDER = DnsProviderRef(subscription_id="00000000-0000-0000-0000-000000000000", resource_group="dns-rg")
