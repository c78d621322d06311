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
Drives the DNS-01 challenge of every authorization in an ACME order, one at a time: publish the TXT value, wait for
it to propagate, have the ACME server validate it, then retract it again.
"""
import logging

from acme import challenges

from .. import errors
from .. import tools
from ..config import DEFAULT_PROPAGATION_DELAY, DEFAULT_RECORD_TTL
from ..planner import IdentifierPlan
from ..records import AzureDnsPublisher, ChallengeRecord

logger = logging.getLogger(__name__)


class ChallengeOrchestrator:
    """Authorizes an ACME order by completing each DNS-01 challenge against a shared TXT record set."""

    def __init__(
            self,
            engine,
            publisher: AzureDnsPublisher,
            propagation_delay: float = DEFAULT_PROPAGATION_DELAY,
            record_ttl: int = DEFAULT_RECORD_TTL
    ) -> None:
        """
        Args:
            engine: The ACME engine (see `acme_dns_certgen.engine.ACMEEngine`) owning the order.
            publisher (AzureDnsPublisher): The DNS record publisher for the order's zone.
            propagation_delay (float): Seconds to wait between publishing a TXT value and validating it.
            record_ttl (int): TTL (in seconds) of the challenge record set.
        """
        self.engine = engine
        self.publisher = publisher
        self.propagation_delay = propagation_delay
        self.record_ttl = record_ttl

    def authorize(self, order, plan: IdentifierPlan) -> None:
        """
        Completes the DNS-01 challenge of every authorization in `order`. The challenge record set is deleted
        afterwards on a best-effort basis, whether or not the authorizations succeeded.

        Args:
            order: The ACME order to authorize.
            plan (IdentifierPlan): The identifier plan the order was created from.

        Raises:
            acme_dns_certgen.errors.DNSPublishFailed: When the record set cannot be created or a value cannot be added.
            acme_dns_certgen.errors.ChallengeUnavailable: When an authorization does not offer DNS-01.
            acme_dns_certgen.errors.ChallengeVerificationFailed: When a challenge is rejected.
        """
        result = self.publisher.create_record_set(plan.zone, plan.record_set_name, self.record_ttl)
        if not result.success:
            raise errors.DNSPublishFailed(
                f"Failed to create TXT record set '{plan.record_fqdn}': ({result.exit_code}) - {result.error_message}"
            )

        try:
            for authorization in self.engine.get_authorizations(order):
                self.authorize_one(authorization, plan)
        finally:
            self.delete_record_set(plan)

    def authorize_one(self, authorization, plan: IdentifierPlan) -> None:
        """
        Runs the select, publish, settle, verify and retract steps for one authorization. The TXT value is retracted
        whenever it was published, even if verification fails.
        """
        identifier = self.engine.get_identifier(authorization)
        challenge = self.select_challenge(authorization)
        record = ChallengeRecord(
            record_set_name=plan.record_set_name,
            ttl_seconds=self.record_ttl,
            value=self.engine.get_challenge_key_authorization(challenge)
        )

        result = self.publisher.add_record(plan.zone, record)
        if not result.success:
            raise errors.DNSPublishFailed(
                f"Failed to set DNS TXT record for '{identifier}' challenge: "
                f"({result.exit_code}) - {result.error_message}"
            )
        logger.info("Published challenge TXT value for '%s' to '%s'", identifier, plan.record_fqdn)

        try:
            logger.info("Waiting %s seconds for DNS propagation", self.propagation_delay)
            tools.pause(self.propagation_delay)
            self.engine.verify_challenge(authorization, challenge)
            self.engine.complete_challenge(challenge)
            self.engine.wait_for_valid_status(authorization)
            logger.info("Authorization for '%s' is valid", identifier)
        finally:
            self.retract(plan, record)

    def select_challenge(self, authorization):
        """
        Finds the DNS-01 challenge among those offered by an authorization.

        Raises:
            acme_dns_certgen.errors.ChallengeUnavailable: When no DNS-01 challenge is offered.
        """
        for challenge in self.engine.get_challenges(authorization):
            if challenge.typ == challenges.DNS01.typ:
                return challenge

        raise errors.ChallengeUnavailable(
            f"Failed to find DNS-01 challenge for authorization '{self.engine.get_identifier(authorization)}'."
        )

    def retract(self, plan: IdentifierPlan, record: ChallengeRecord) -> bool:
        """Removes a published TXT value, keeping the record set. Failures are only logged."""
        result = self.publisher.remove_record(plan.zone, record)
        if not result.success:
            logger.warning(
                "Failed to remove DNS TXT record from '%s': (%s) - %s",
                plan.record_fqdn, result.exit_code, result.error_message
            )
        return result.success

    def delete_record_set(self, plan: IdentifierPlan) -> bool:
        """Deletes the challenge record set. Failures are only logged."""
        result = self.publisher.delete_record_set(plan.zone, plan.record_set_name)
        if not result.success:
            logger.warning(
                "Failed to delete TXT record set '%s': (%s) - %s",
                plan.record_fqdn, result.exit_code, result.error_message
            )
        return result.success
