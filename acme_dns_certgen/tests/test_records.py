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
"""Tests the Azure DNS record publisher."""
import unittest

from acme_dns_certgen.records import AzureDnsPublisher, ChallengeRecord, DnsOperation, TxtRecordRequest
from acme_dns_certgen.tests import TEST_DNS_PROVIDER
from acme_dns_certgen.tests.tools import FakeCommandRunner

ZONE_ARGS = [
    "--subscription", "00000000-0000-0000-0000-000000000000",
    "--resource-group", "dns-rg",
    "--zone-name", "example.com",
]


class TestAzureDnsPublisher(unittest.TestCase):
    """Checks the Azure CLI commands built for each record set intent."""

    def setUp(self):
        """Creates a publisher backed by a fake runner."""
        self.runner = FakeCommandRunner()
        self.publisher = AzureDnsPublisher(self.runner, TEST_DNS_PROVIDER)
        self.record = ChallengeRecord(record_set_name="_acme-challenge", ttl_seconds=20, value="txt-value")

    def test_create_command(self):
        """Record set creation names the set and its TTL."""
        self.publisher.create_record_set("example.com", "_acme-challenge", 20)

        self.assertEqual(
            self.runner.calls[0],
            ["az", "network", "dns", "record-set", "txt", "create", *ZONE_ARGS, "--name", "_acme-challenge",
             "--ttl", "20"]
        )

    def test_add_command(self):
        """Adding a value targets the record set by name and passes the value unquoted."""
        self.publisher.add_record("example.com", self.record)

        self.assertEqual(
            self.runner.calls[0],
            ["az", "network", "dns", "record-set", "txt", "add-record", *ZONE_ARGS,
             "--record-set-name", "_acme-challenge", "--value", "txt-value"]
        )

    def test_remove_command(self):
        """Removing a value keeps the (possibly empty) record set."""
        self.publisher.remove_record("example.com", self.record)

        self.assertEqual(
            self.runner.calls[0],
            ["az", "network", "dns", "record-set", "txt", "remove-record", *ZONE_ARGS,
             "--record-set-name", "_acme-challenge", "--value", "txt-value", "--keep-empty-record-set"]
        )

    def test_delete_command(self):
        """Deleting a record set does not prompt for confirmation."""
        self.publisher.delete_record_set("example.com", "_acme-challenge")

        self.assertEqual(
            self.runner.calls[0],
            ["az", "network", "dns", "record-set", "txt", "delete", *ZONE_ARGS, "--name", "_acme-challenge", "--yes"]
        )

    def test_custom_executable(self):
        """The Azure CLI executable can be replaced."""
        publisher = AzureDnsPublisher(self.runner, TEST_DNS_PROVIDER, az_path="/opt/az/bin/az")
        command = publisher.build_command(TxtRecordRequest(DnsOperation.DELETE, "example.com", "_acme-challenge"))

        self.assertEqual(command[0], "/opt/az/bin/az")

    def test_missing_value(self):
        """Value based operations require a value."""
        for operation in (DnsOperation.ADD, DnsOperation.REMOVE):
            with self.assertRaises(ValueError):
                self.publisher.build_command(TxtRecordRequest(operation, "example.com", "_acme-challenge"))

    def test_missing_ttl(self):
        """Record set creation requires a TTL."""
        with self.assertRaises(ValueError):
            self.publisher.build_command(TxtRecordRequest(DnsOperation.CREATE, "example.com", "_acme-challenge"))

    def test_results_are_returned(self):
        """Command failures are returned to the caller rather than raised."""
        runner = FakeCommandRunner(fail={"add-record"})
        result = AzureDnsPublisher(runner, TEST_DNS_PROVIDER).add_record("example.com", self.record)

        self.assertFalse(result.success)
        self.assertEqual(result.exit_code, 1)

    def test_multi_value_record_set(self):
        """Values added to the same record set accumulate and can be removed one at a time."""
        # Variables
        second = ChallengeRecord(record_set_name="_acme-challenge", ttl_seconds=20, value="txt-other")

        self.publisher.create_record_set("example.com", "_acme-challenge", 20)
        self.publisher.add_record("example.com", self.record)
        self.publisher.add_record("example.com", second)
        self.assertEqual(self.runner.record_sets["_acme-challenge"], ["txt-value", "txt-other"])

        self.publisher.remove_record("example.com", self.record)
        self.assertEqual(self.runner.record_sets["_acme-challenge"], ["txt-other"])


if __name__ == "__main__":
    unittest.main()
