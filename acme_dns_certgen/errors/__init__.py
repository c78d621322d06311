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
"""Custom exception classes for acme_dns_certgen."""


class CertGenError(Exception):
    """Base class for every error raised while generating a certificate."""
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidMode(CertGenError):
    """Error occurs when the requested Let's Encrypt mode is not 'staging' or 'production'"""


class InvalidCertType(CertGenError):
    """Error occurs when the requested certificate output type is unsupported"""


class InvalidDomain(CertGenError):
    """Error occurs when the requested domain or subdomain is not a valid DNS name"""


class InvalidEmail(CertGenError):
    """Error occurs when the notification email is not a valid email address"""


class InvalidKeyType(CertGenError):
    """Error occurs when the requested private key type is unsupported"""


class InvalidDuration(CertGenError):
    """Error occurs when a pause is requested for a non-positive amount of time"""


class InvalidAccount(CertGenError):
    """Error occurs when requests are made to the ACME server without registration"""


class ChallengeUnavailable(CertGenError):
    """Error occurs when an authorization does not offer the DNS-01 challenge"""


class DNSPublishFailed(CertGenError):
    """Error occurs when the DNS provider command fails to create or populate the TXT record set"""


class ChallengeVerificationFailed(CertGenError):
    """Error occurs when the ACME server (or the local DNS check) rejects a DNS-01 challenge"""


class ACMETimeout(CertGenError):
    """Error occurs when the max time has been exceeded waiting for an ACME server event"""


class CertificateExportFailed(CertGenError):
    """Error occurs when the certificate cannot be converted into the requested output format"""
