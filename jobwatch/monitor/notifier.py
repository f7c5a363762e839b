"""
Alert Notifier for Jobwatch Monitor

Hands threshold alerts to a delivery sink. The production sink posts a
Slack incoming-webhook message; any callable accepting the alert payload
and returning a DeliveryResult can take its place.

Delivery failures are logged and reported, never raised or retried.

Author: Jobwatch Team
SPDX-License-Identifier: BUSL-1.1
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import requests
from requests.exceptions import RequestException

from jobwatch.monitor.thresholds import AlertEvent, AlertKind, ThresholdConfig

logger = logging.getLogger(__name__)

ALERT_COLOR = "#FF0000"
DEFAULT_COLOR = "#CCCCCC"

ALERT_TITLES = {
    AlertKind.CPU_HIGH.value: "Jenkins Monitor Alert: High CPU Usage",
    AlertKind.MEM_HIGH.value: "Jenkins Monitor Alert: High Memory Usage",
}
DEFAULT_TITLE = "Jenkins Monitor Alert"


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of handing one alert to a sink."""

    ok: bool
    detail: str = ""

    @classmethod
    def success(cls, detail: str = "") -> "DeliveryResult":
        return cls(ok=True, detail=detail)

    @classmethod
    def error(cls, detail: str) -> "DeliveryResult":
        return cls(ok=False, detail=detail)


AlertSink = Callable[[dict[str, Any]], DeliveryResult]


def build_payload(event: AlertEvent, thresholds: ThresholdConfig) -> dict[str, Any]:
    """Flatten an alert event into the payload handed to a sink."""
    sample = event.sample
    return {
        "kind": event.kind.value,
        "job_name": sample.job_name,
        "pid": sample.pid,
        "build_id": sample.build_id,
        "stage_name": sample.stage_name,
        "workspace": sample.workspace,
        "cpu_percent": sample.cpu_percent,
        "mem_percent": sample.mem_percent,
        "cpu_threshold": thresholds.cpu_percent,
        "mem_threshold": thresholds.mem_percent,
        "timestamp": event.observed_at.isoformat(),
    }


class AlertDispatcher:
    """
    Dispatches alert events to a delivery sink.

    A slow sink only delays the current tick; errors are converted into
    DeliveryResult values so the monitor loop keeps running.
    """

    def __init__(
        self,
        thresholds: ThresholdConfig,
        sink: AlertSink | None = None,
        logger: logging.Logger | None = None,
    ):
        self.thresholds = thresholds
        self.sink = sink
        self.logger = logger or logging.getLogger(__name__)

    def dispatch(self, event: AlertEvent) -> DeliveryResult:
        """
        Deliver a single alert event.

        Returns:
            DeliveryResult describing success or the failure detail
        """
        sample = event.sample
        if self.sink is None:
            self.logger.info(
                f"No alert sink configured. Skipping {event.kind.value} alert "
                f"for job {sample.job_name} (PID {sample.pid})"
            )
            return DeliveryResult.error("no alert sink configured")

        payload = build_payload(event, self.thresholds)
        try:
            result = self.sink(payload)
        except Exception as e:
            result = DeliveryResult.error(f"sink raised {type(e).__name__}: {e}")

        if not isinstance(result, DeliveryResult):
            result = DeliveryResult.error(
                f"sink returned {type(result).__name__}, expected DeliveryResult"
            )

        if result.ok:
            self.logger.info(
                f"Alert {event.kind.value} delivered for job {sample.job_name} (PID {sample.pid})"
            )
        else:
            self.logger.error(
                f"Failed to deliver {event.kind.value} alert for job {sample.job_name} "
                f"(PID {sample.pid}): {result.detail}"
            )
        return result


class SlackNotifier:
    """
    Slack incoming-webhook alert sink.

    Example:
        notifier = SlackNotifier("https://hooks.slack.com/services/...", channel="#ci")
        dispatcher = AlertDispatcher(thresholds, sink=notifier)
    """

    def __init__(
        self,
        webhook_url: str,
        channel: str = "",
        username: str = "",
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ):
        self.webhook_url = webhook_url
        self.channel = channel
        self.username = username
        self.timeout = timeout
        self._session = session or requests.Session()

    def build_message(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Render an alert payload as a Slack message with one attachment."""
        kind = payload.get("kind", "")
        title = ALERT_TITLES.get(kind, DEFAULT_TITLE)
        color = ALERT_COLOR if kind in ALERT_TITLES else DEFAULT_COLOR

        def field(text: str) -> dict[str, str]:
            return {"type": "mrkdwn", "text": text}

        blocks = [
            {"type": "header", "text": {"type": "plain_text", "text": title}},
            {"type": "divider"},
            {
                "type": "section",
                "fields": [
                    field(f"*Job Name:*\n{payload['job_name']}"),
                    field(f"*PID:*\n{payload['pid']}"),
                    field(f"*Build ID:*\n{payload['build_id']}"),
                    field(f"*Stage Name:*\n{payload['stage_name']}"),
                ],
            },
            {
                "type": "section",
                "fields": [field(f"*Workspace:*\n{payload['workspace']}")],
            },
            {
                "type": "section",
                "fields": [
                    field(
                        f"*CPU Usage:*\n{payload['cpu_percent']:.2f}% "
                        f"(Threshold: {payload['cpu_threshold']:.2f}%)"
                    ),
                    field(
                        f"*Memory Usage:*\n{payload['mem_percent']:.2f}% "
                        f"(Threshold: {payload['mem_threshold']:.2f}%)"
                    ),
                ],
            },
            {
                "type": "context",
                "elements": [field(f"Timestamp: {payload['timestamp']}")],
            },
        ]

        message: dict[str, Any] = {"attachments": [{"color": color, "blocks": blocks}]}
        if self.channel:
            message["channel"] = self.channel
        if self.username:
            message["username"] = self.username
        return message

    def __call__(self, payload: dict[str, Any]) -> DeliveryResult:
        if not self.webhook_url:
            return DeliveryResult.error("Slack webhook URL is not configured")

        try:
            response = self._session.post(
                self.webhook_url,
                json=self.build_message(payload),
                timeout=self.timeout,
            )
        except RequestException as e:
            return DeliveryResult.error(f"Slack request failed: {e}")

        if response.status_code >= 300:
            return DeliveryResult.error(
                f"Slack returned {response.status_code}: {response.text}"
            )
        return DeliveryResult.success()
