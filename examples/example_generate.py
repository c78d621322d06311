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

import logging
import sys

import acme_dns_certgen

logging.basicConfig(level=logging.DEBUG if "--verbose" in sys.argv else logging.INFO)

# Log in with `az login` and select the subscription hosting the DNS zone before running this example.
# Settings such as the propagation delay can be overridden with environment variables (e.g. ACME_DNS_PROPAGATION_DELAY).
request = acme_dns_certgen.GenerateCertRequest(
    domain="example.com",
    sub_domain="",  # Use a label (e.g. "www") for a subdomain, or "*" for a wildcard that also covers example.com
    cert_type="pfx",
    lets_encrypt_mode="staging",
    dns_provider=acme_dns_certgen.DnsProviderRef(
        subscription_id="00000000-0000-0000-0000-000000000000",
        resource_group="dns-rg",
    ),
    notify_email="user@example.com",
)

print("Generating certificate, please wait ...")
try:
    cert = acme_dns_certgen.generate_cert(request, settings=acme_dns_certgen.Settings.from_env())
except acme_dns_certgen.errors.CertGenError as exc:
    print(f"Failed to issue certificate for {request.domain}: {exc.message}")
    sys.exit(1)

print(f"Expiry MS epoch: {cert.expiry_date_epoch_ms}")
print(f"Passphrase: {cert.private_key}")
print(f"Certificate:\n{cert.cert}\n")
