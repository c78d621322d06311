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
"""Publishes and removes DNS-01 TXT records through the Azure CLI."""
import dataclasses
import enum
import logging

from ..tools import CommandResult, CommandRunner

logger = logging.getLogger(__name__)


class DnsOperation(enum.Enum):
    """The TXT record set operations the publisher knows how to perform."""
    CREATE = "create"
    ADD = "add-record"
    REMOVE = "remove-record"
    DELETE = "delete"


@dataclasses.dataclass(frozen=True)
class DnsProviderRef:
    """Locates the DNS zone within the provider. Authentication is expected to already be in place."""
    subscription_id: str
    resource_group: str


@dataclasses.dataclass(frozen=True)
class ChallengeRecord:
    """A single TXT value published for one DNS-01 challenge."""
    record_set_name: str
    ttl_seconds: int
    value: str


@dataclasses.dataclass(frozen=True)
class TxtRecordRequest:
    """One intended change to a TXT record set."""
    operation: DnsOperation
    zone: str
    record_set_name: str
    value: str = None
    ttl: int = None


class AzureDnsPublisher:
    """Translates `TxtRecordRequest` intents into `az network dns record-set txt` commands."""

    def __init__(self, runner: CommandRunner, dns_provider: DnsProviderRef, az_path: str = "az") -> None:
        """
        Args:
            runner (CommandRunner): The command runner used to execute the Azure CLI.
            dns_provider (DnsProviderRef): The subscription and resource group hosting the DNS zone.
            az_path (str): The Azure CLI executable.
        """
        self.runner = runner
        self.dns_provider = dns_provider
        self.az_path = az_path

    def build_command(self, request: TxtRecordRequest) -> list:
        """
        Builds the Azure CLI argv for a record set request.

        Args:
            request (TxtRecordRequest): The record set change to perform.

        Returns:
            list: The argv list to execute.

        Raises:
            ValueError: When a value-based operation is requested without a value, or a create without a TTL.
        """
        argv = [
            self.az_path, "network", "dns", "record-set", "txt", request.operation.value,
            "--subscription", self.dns_provider.subscription_id,
            "--resource-group", self.dns_provider.resource_group,
            "--zone-name", request.zone,
        ]

        if request.operation is DnsOperation.CREATE:
            if request.ttl is None:
                raise ValueError("A TTL is required to create a TXT record set.")
            argv += ["--name", request.record_set_name, "--ttl", str(request.ttl)]
        elif request.operation is DnsOperation.DELETE:
            argv += ["--name", request.record_set_name, "--yes"]
        else:
            if request.value is None:
                raise ValueError(f"A TXT value is required for '{request.operation.value}'.")
            argv += ["--record-set-name", request.record_set_name, "--value", request.value]
            # Removing the last value must not remove the record set other challenges may still share
            if request.operation is DnsOperation.REMOVE:
                argv.append("--keep-empty-record-set")

        return argv

    def execute(self, request: TxtRecordRequest) -> CommandResult:
        """
        Runs a record set request.

        Args:
            request (TxtRecordRequest): The record set change to perform.

        Returns:
            CommandResult: The result of the Azure CLI invocation. Failures are not raised.
        """
        logger.debug(
            "%s TXT record set '%s' in zone '%s'", request.operation.name, request.record_set_name, request.zone
        )
        return self.runner.run(self.build_command(request))

    def create_record_set(self, zone: str, record_set_name: str, ttl: int) -> CommandResult:
        """Creates (or updates) an empty TXT record set."""
        return self.execute(TxtRecordRequest(DnsOperation.CREATE, zone, record_set_name, ttl=ttl))

    def add_record(self, zone: str, record: ChallengeRecord) -> CommandResult:
        """Appends a TXT value to a record set."""
        return self.execute(TxtRecordRequest(DnsOperation.ADD, zone, record.record_set_name, value=record.value))

    def remove_record(self, zone: str, record: ChallengeRecord) -> CommandResult:
        """Removes a TXT value, keeping the record set even when it becomes empty."""
        return self.execute(TxtRecordRequest(DnsOperation.REMOVE, zone, record.record_set_name, value=record.value))

    def delete_record_set(self, zone: str, record_set_name: str) -> CommandResult:
        """Deletes a whole TXT record set."""
        return self.execute(TxtRecordRequest(DnsOperation.DELETE, zone, record_set_name))
