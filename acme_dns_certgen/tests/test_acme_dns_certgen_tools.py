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
"""Tests tools used by the acme_dns_certgen package and tests."""
import sys
import unittest
from unittest import mock

import dns.exception
import dns.resolver

from acme_dns_certgen import errors
from acme_dns_certgen import tools
from acme_dns_certgen.tests.tools import is_cert, make_certificate


class FakeTXTRdata:
    """A TXT answer split into several character-strings."""
    # pylint: disable=too-few-public-methods

    def __init__(self, *strings: bytes) -> None:
        self.strings = strings


class TestCommandRunner(unittest.TestCase):
    """Checks that every process outcome is normalized into a CommandResult."""

    def test_success(self):
        """A zero exit status is a success and stdout is captured."""
        result = tools.CommandRunner().run([sys.executable, "-c", "print('hello')"])

        self.assertTrue(result.success)
        self.assertEqual(result.exit_code, 0)
        self.assertEqual(result.stdout.strip(), "hello")
        self.assertEqual(result.error_message, "")

    def test_nonzero_exit(self):
        """A nonzero exit status is reported without raising."""
        script = "import sys; sys.stderr.write('bad things'); sys.exit(3)"
        result = tools.CommandRunner().run([sys.executable, "-c", script])

        self.assertFalse(result.success)
        self.assertEqual(result.exit_code, 3)
        self.assertEqual(result.stderr, "bad things")
        self.assertEqual(result.error_message, "bad things")

    def test_missing_executable(self):
        """A command which cannot be started is reported without raising."""
        result = tools.CommandRunner().run(["acme-dns-certgen-does-not-exist"])

        self.assertFalse(result.success)
        self.assertEqual(result.exit_code, -1)
        self.assertTrue(result.error_message)

    def test_empty_command(self):
        """An empty command is reported without raising."""
        for command in ([], ""):
            result = tools.CommandRunner().run(command)
            self.assertFalse(result.success)
            self.assertEqual(result.exit_code, -1)

    def test_string_command(self):
        """String commands are split using shell-like syntax."""
        result = tools.CommandRunner().run(f'"{sys.executable}" -c "print(42)"')

        self.assertTrue(result.success)
        self.assertEqual(result.stdout.strip(), "42")

    def test_timeout(self):
        """A command exceeding the runner timeout is reported as a failure."""
        result = tools.CommandRunner(timeout=0.5).run([sys.executable, "-c", "import time; time.sleep(10)"])

        self.assertFalse(result.success)
        self.assertEqual(result.exit_code, -1)
        self.assertIn("timed out", result.error_message)


class TestPause(unittest.TestCase):
    """Checks the propagation pause."""

    def test_non_positive_duration(self):
        """Zero and negative durations are rejected immediately."""
        for seconds in (0, -1, -0.5):
            with mock.patch.object(tools.time, "sleep") as sleep:
                with self.assertRaises(errors.InvalidDuration):
                    tools.pause(seconds)
                sleep.assert_not_called()

    def test_positive_duration(self):
        """Positive durations sleep for exactly that long."""
        with mock.patch.object(tools.time, "sleep") as sleep:
            tools.pause(30)
        sleep.assert_called_once_with(30)


class TestDNSQuery(unittest.TestCase):
    """Checks TXT lookups without touching the network."""

    def test_resolve_joins_txt_strings(self):
        """Multi-string TXT answers are joined into a single value."""
        # Variables
        answer = [FakeTXTRdata(b"abc", b"def"), FakeTXTRdata(b"xyz")]
        query = tools.DNSQuery("_acme-challenge.example.com", nameservers=["192.0.2.1"])

        with mock.patch.object(tools.DNSQuery, "_query", return_value=answer):
            self.assertEqual(query.resolve(), ["abcdef", "xyz"])
        self.assertEqual(query.last_nameserver, "192.0.2.1")

    def test_resolve_missing_name(self):
        """A missing name resolves to no values."""
        query = tools.DNSQuery("_acme-challenge.example.com", nameservers=["192.0.2.1"])

        with mock.patch.object(tools.DNSQuery, "_query", side_effect=dns.resolver.NXDOMAIN):
            self.assertEqual(query.resolve(), [])

    def test_round_robin(self):
        """Round-robin mode rotates the nameservers after each query."""
        query = tools.DNSQuery("example.com", nameservers=["192.0.2.1", "192.0.2.2"], round_robin=True)

        with mock.patch.object(tools.DNSQuery, "_query", return_value=[]):
            query.resolve()
            self.assertEqual(query.last_nameserver, "192.0.2.1")
            query.resolve()
            self.assertEqual(query.last_nameserver, "192.0.2.2")

    def test_authoritative_nameservers(self):
        """Authoritative mode walks up to the zone with NS records and queries its nameserver addresses."""
        # Variables
        ns_answer = [mock.Mock(target="ns1.example.com.")]
        a_answer = [mock.Mock(address="198.51.100.53")]

        def fake_query(domain, rtype, nameservers):
            # pylint: disable=unused-argument
            if rtype == "NS" and domain == "example.com":
                return ns_answer
            if rtype == "A" and domain == "ns1.example.com.":
                return a_answer
            raise dns.resolver.NoAnswer

        with mock.patch.object(tools.DNSQuery, "_query", side_effect=fake_query):
            query = tools.DNSQuery("_acme-challenge.example.com", nameservers=["192.0.2.1"], authoritative=True)

        self.assertEqual(query.nameservers, ["198.51.100.53"])

    def test_authoritative_nameservers_not_found(self):
        """Authoritative mode keeps the configured nameservers when no zone can be found."""
        with mock.patch.object(tools.DNSQuery, "_query", side_effect=dns.resolver.NXDOMAIN):
            query = tools.DNSQuery("_acme-challenge.example.invalid", nameservers=["192.0.2.1"], authoritative=True)

        self.assertEqual(query.nameservers, ["192.0.2.1"])

    def test_authoritative_nameservers_unreachable(self):
        """Authoritative mode keeps the configured nameservers when the lookup fails or times out."""
        for error in (dns.resolver.NoNameservers, dns.exception.Timeout):
            with mock.patch.object(tools.DNSQuery, "_query", side_effect=error):
                with self.assertLogs("acme_dns_certgen.tools", level="WARNING"):
                    query = tools.DNSQuery(
                        "_acme-challenge.example.com", nameservers=["192.0.2.1"], authoritative=True
                    )

                self.assertEqual(query.nameservers, ["192.0.2.1"])
                self.assertEqual(query.resolve(), [])


class TestTestingTools(unittest.TestCase):
    """Tests the testing tools themselves."""

    def test_is_cert(self):
        """Tests the is_cert testing tools function"""
        # Variables
        _, good_cert = make_certificate("example.com")
        bad_cert = "-----BEGIN CERTIFICATE REQUEST-----MPJQRfevIpoy3hsvKMzvZ..."

        # Ensure the good cert returns true and the bad cert returns false
        self.assertTrue(is_cert(good_cert))
        self.assertFalse(is_cert(bad_cert))


if __name__ == "__main__":
    unittest.main()
