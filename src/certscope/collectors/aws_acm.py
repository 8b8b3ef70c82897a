"""
AWS Certificate Manager collector for certscope.

Lists every certificate in a region through the ACM JSON API and describes
each one. Requests are signed with Signature Version 4 directly, so no AWS
SDK is needed and the shared proxy convention applies.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable

from certscope.cloud.aws_signing import AwsCredentials, sign_request
from certscope.collectors.base import BaseCollector, ItemOutcome, SourceError
from certscope.crypto.decoder import decode_certificate
from certscope.models import CertificateRecord
from certscope.transport import HttpClient, HttpResponse, TransportError

logger = logging.getLogger(__name__)

SERVICE = "acm"
DEFAULT_REGION = "us-east-1"
LIST_TARGET = "CertificateManager.ListCertificates"
DESCRIBE_TARGET = "CertificateManager.DescribeCertificate"
GET_TARGET = "CertificateManager.GetCertificate"
PAGE_SIZE = 100


class AwsAcmCollector(BaseCollector):
    """
    Collects certificates from AWS Certificate Manager.

    Configuration:
        access_key_id: AWS access key ID (required)
        secret_access_key: AWS secret access key (required)
        region: AWS region (default: us-east-1)
        include_certificate_body: Also fetch the PEM body for fingerprints
    """

    name = "aws-acm"
    description = "Extract certificates from AWS Certificate Manager"
    required_params = ("access_key_id", "secret_access_key")

    def __init__(
        self,
        client: HttpClient | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """
        Initialize the collector.

        Args:
            client: HTTP client (default: proxy settings from environment)
            clock: Source of the signing time (default: current UTC time)
        """
        self._client = client
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def client(self) -> HttpClient:
        if self._client is None:
            self._client = HttpClient.from_env()
        return self._client

    async def _call(
        self,
        target: str,
        body: dict[str, Any],
        region: str,
        credentials: AwsCredentials,
    ) -> dict[str, Any]:
        """
        Perform one signed ACM API call.

        Raises:
            TransportError: On connection failure
            SourceError: On an error status or malformed response
        """
        payload = json.dumps(body)
        signed = sign_request(
            SERVICE, target, payload, region, credentials, self._clock()
        )
        response = await self.client.fetch(
            "POST",
            f"https://{signed.host}/",
            headers=signed.headers(),
            body=payload,
        )
        return self._parse(target, response)

    def _parse(self, target: str, response: HttpResponse) -> dict[str, Any]:
        action = target.split(".")[-1]
        try:
            data = response.json()
        except ValueError as e:
            raise SourceError(self.name, f"Failed to parse {action} response", e) from e

        if not response.ok:
            message = ""
            if isinstance(data, dict):
                message = data.get("message") or data.get("Message") or data.get("__type", "")
            raise SourceError(
                self.name, f"{action} returned HTTP {response.status} {message}".rstrip()
            )
        if not isinstance(data, dict):
            raise SourceError(self.name, f"Unexpected {action} response")
        return data

    async def _list_arns(self, region: str, credentials: AwsCredentials) -> list[str]:
        arns: list[str] = []
        next_token: str | None = None

        while True:
            body: dict[str, Any] = {"MaxItems": PAGE_SIZE}
            if next_token:
                body["NextToken"] = next_token
            try:
                page = await self._call(LIST_TARGET, body, region, credentials)
            except TransportError as e:
                raise SourceError(self.name, "Failed to list certificates", e) from e

            for summary in page.get("CertificateSummaryList") or []:
                arn = summary.get("CertificateArn")
                if arn:
                    arns.append(arn)

            next_token = page.get("NextToken")
            if not next_token:
                break

        logger.debug(f"Found {len(arns)} ACM certificates in {region}")
        return arns

    async def _describe(
        self,
        arn: str,
        region: str,
        credentials: AwsCredentials,
        config: dict[str, Any],
    ) -> CertificateRecord:
        response = await self._call(
            DESCRIBE_TARGET, {"CertificateArn": arn}, region, credentials
        )
        cert = response["Certificate"]
        domain = cert.get("DomainName")

        data: dict[str, Any] = {
            "domain": domain,
            "issuer": cert.get("Issuer") or "Amazon",
            "expiration_date": cert.get("NotAfter"),
            "valid_from": cert.get("NotBefore"),
            "subject": cert.get("Subject") or domain,
            "san": cert.get("SubjectAlternativeNames") or [domain],
            "serial_number": cert.get("Serial"),
            "fallback_id": arn,
            "tags": {
                "aws_arn": arn,
                "aws_region": region,
                "aws_status": cert.get("Status"),
                "aws_type": cert.get("Type"),
                "aws_key_algorithm": cert.get("KeyAlgorithm"),
                "aws_in_use": bool(cert.get("InUseBy")),
            },
        }

        if config.get("include_certificate_body") and cert.get("Status") == "ISSUED":
            body = await self._call(GET_TARGET, {"CertificateArn": arn}, region, credentials)
            decoded = decode_certificate(body["Certificate"])
            data["fingerprint"] = decoded.fingerprint
            data["fingerprint256"] = decoded.fingerprint256

        return self.create_record(data, config)

    async def _gather(self, config: dict[str, Any]) -> list[ItemOutcome]:
        region = config.get("region") or DEFAULT_REGION
        credentials = AwsCredentials(
            access_key_id=config["access_key_id"],
            secret_access_key=config["secret_access_key"],
        )

        arns = await self._list_arns(region, credentials)

        outcomes = []
        for arn in arns:
            outcomes.append(
                await self.process_item_async(
                    arn, self._describe, arn, region, credentials, config
                )
            )
        return outcomes
