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
"""Process, timing and DNS lookup tools used while driving ACME DNS-01 challenges."""
import dataclasses
import logging
import shlex
import subprocess
import time

import dns.exception
import dns.resolver

from .. import errors

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class CommandResult:
    """The outcome of a single external process invocation."""
    success: bool
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    error_message: str = ""


class CommandRunner:
    """Runs external commands and normalizes every outcome into a `CommandResult`."""

    def __init__(self, timeout: float = None) -> None:
        """
        Args:
            timeout (float): Optional number of seconds to allow each command to run. When unset, commands may
                run indefinitely.
        """
        self.timeout = timeout

    def run(self, command) -> CommandResult:
        """
        Executes a command and captures its output. This method never raises for a failing command; the
        failure is encoded in the returned result instead.

        Args:
            command (list|str): The argv list to execute. Strings are split using shell-like syntax.

        Returns:
            CommandResult: The captured exit code, stdout and stderr of the command.

        Examples:
            >>> CommandRunner().run(["openssl", "version"])
            CommandResult(success=True, exit_code=0, stdout='OpenSSL 3.0.13 30 Jan 2024\\n', ...)
        """
        argv = shlex.split(command) if isinstance(command, str) else list(command)
        if not argv:
            return CommandResult(success=False, exit_code=-1, error_message="No command given")
        logger.debug("Running command: %s", argv[0])

        try:
            proc = subprocess.run(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self.timeout,
                check=False
            )
        except subprocess.TimeoutExpired as exc:
            return CommandResult(
                success=False,
                exit_code=-1,
                error_message=f"Command timed out after {exc.timeout} seconds"
            )
        except (OSError, ValueError) as exc:
            # The process could not be started at all
            return CommandResult(success=False, exit_code=-1, error_message=str(exc))

        # Prefer stderr as the error message
        error_message = ""
        if proc.returncode != 0:
            error_message = proc.stderr.strip() or f"Command exited with status {proc.returncode}"

        return CommandResult(
            success=proc.returncode == 0,
            exit_code=proc.returncode,
            stdout=proc.stdout,
            stderr=proc.stderr,
            error_message=error_message
        )


def pause(seconds: float) -> None:
    """
    Blocks for a fixed amount of time.

    Args:
        seconds (float): The number of seconds to wait. Must be greater than zero.

    Raises:
        acme_dns_certgen.errors.InvalidDuration: When `seconds` is zero or negative.
    """
    if seconds <= 0:
        raise errors.InvalidDuration(f"Invalid pause duration '{seconds}'. Duration must be > 0.")
    time.sleep(seconds)


class DNSQuery:
    """A basic class to make TXT (or other) DNS queries"""

    def __init__(
        self,
        domain: str,
        rtype: str = "TXT",
        nameservers: list = None,
        authoritative: bool = False,
        round_robin: bool = False
    ) -> None:
        """
        Args:
            domain (str): The fully qualified name to query.
            rtype (str): The DNS request type (e.g. `TXT`, `A`, `SOA`).
            nameservers (list): Nameserver IPs to query. Defaults to the system resolvers.
            authoritative (bool): Query the domain's authoritative nameservers instead of `nameservers`.
            round_robin (bool): Rotate between each nameserver after every query.
        """
        self.domain = domain
        self.type = rtype.upper()
        self.round_robin = round_robin
        self.nameservers = nameservers if nameservers else dns.resolver.Resolver().nameservers
        if authoritative:
            self.nameservers = self.authoritative_nameservers()
        self.values = []
        self.last_nameserver = ""

    def resolve(self) -> list:
        """
        Queries the nameservers and stores the parsed answer values.

        Returns:
            list: The record values found. Missing names and empty answers yield an empty list.
        """
        try:
            answer = self._query(self.domain, self.type, self.nameservers)
            self.values = [self._parse_value(rdata) for rdata in answer]
        except (dns.resolver.NoAnswer, dns.resolver.NXDOMAIN, dns.resolver.NoNameservers, dns.exception.Timeout):
            self.values = []

        self.last_nameserver = self.nameservers[0] if self.nameservers else ""

        # Rotate the nameservers if round-robin mode is enabled
        if self.round_robin and len(self.nameservers) > 1:
            self.nameservers = self.nameservers[1:] + [self.nameservers[0]]

        return self.values

    def authoritative_nameservers(self) -> list:
        """
        Walks up the domain's labels until a zone with an NS record is found and resolves those nameservers.

        Returns:
            list: The IP addresses of the authoritative nameservers, or the configured nameservers if none were found.
        """
        labels = self.domain.rstrip(".").split(".")

        while labels:
            zone = ".".join(labels)
            try:
                hosts = [str(rdata.target) for rdata in self._query(zone, "NS", self.nameservers)]
                break
            except (dns.resolver.NoAnswer, dns.resolver.NXDOMAIN):
                labels.pop(0)
            except (dns.resolver.NoNameservers, dns.exception.Timeout):
                logger.warning("Could not look up the nameservers of '%s', using the configured nameservers", zone)
                return self.nameservers
        else:
            return self.nameservers

        addresses = []
        for host in hosts:
            try:
                addresses.extend(rdata.address for rdata in self._query(host, "A", self.nameservers))
            except (dns.resolver.NoAnswer, dns.resolver.NXDOMAIN, dns.resolver.NoNameservers, dns.exception.Timeout):
                continue

        return addresses or self.nameservers

    @staticmethod
    def _query(domain: str, rtype: str, nameservers: list):
        resolver = dns.resolver.Resolver()
        resolver.nameservers = nameservers if nameservers else resolver.nameservers
        return resolver.resolve(domain, rtype)

    @staticmethod
    def _parse_value(rdata) -> str:
        # TXT data may be split into several character-strings; join them back into one value
        strings = getattr(rdata, "strings", None)
        if strings is not None:
            return "".join(chunk.decode() for chunk in strings)
        return rdata.to_text()
