from __future__ import annotations

import json
import os
import time
from typing import Any

import boto3
from pydantic import ValidationError

from shared.constants import (
    DEFAULT_BRANCH_PREFIX,
    DEFAULT_GITHUB_API_BASE,
    DEFAULT_ON_MERGE_ACTIONS,
    DEFAULT_REGION,
    DEFAULT_SYNC_LABEL,
)
from shared.github_client import GitHubClient
from shared.logging import get_logger
from shared.schema import MergedPullRequestEvent, SpliceJob
from worker.merge_callback import handle_merged_pull_request, parse_on_merge_actions
from worker.splice_job import run_splice_job

logger = get_logger("splice_worker")

_cloudwatch = boto3.client("cloudwatch", region_name=os.getenv("AWS_REGION", DEFAULT_REGION))

GITHUB_API_BASE = os.getenv("GITHUB_API_BASE", DEFAULT_GITHUB_API_BASE)
SPLICE_BRANCH_PREFIX = os.getenv("SPLICE_BRANCH_PREFIX", DEFAULT_BRANCH_PREFIX)
ON_MERGE_ACTIONS = os.getenv("ON_MERGE_ACTIONS", DEFAULT_ON_MERGE_ACTIONS)
SYNC_LABEL = os.getenv("SYNC_LABEL", DEFAULT_SYNC_LABEL)


def _emit_metric(metric_name: str, value: float, unit: str = "Count") -> None:
    namespace = os.getenv("METRICS_NAMESPACE", "SpliceBot")
    try:
        _cloudwatch.put_metric_data(
            Namespace=namespace,
            MetricData=[
                {
                    "MetricName": metric_name,
                    "Unit": unit,
                    "Value": value,
                }
            ],
        )
    except Exception:  # noqa: BLE001
        logger.warning(
            "metric_emit_failed",
            extra={"extra": {"metric_name": metric_name, "namespace": namespace}},
        )


def _github_client() -> GitHubClient:
    token = os.environ["GITHUB_TOKEN"]
    return GitHubClient(token_provider=lambda: token, api_base=GITHUB_API_BASE)


def _dry_run() -> bool:
    return os.getenv("DRY_RUN", "false").lower() == "true"


def _process_splice(message: dict[str, Any], gh: GitHubClient) -> None:
    job = SpliceJob.model_validate(message)
    result = run_splice_job(gh, job, branch_prefix=SPLICE_BRANCH_PREFIX, dry_run=_dry_run())
    if result.deferred:
        _emit_metric("splices_deferred", 1)
        return
    if not result.success:
        _emit_metric("splices_rejected", 1)
        logger.info(
            "splice_not_created",
            extra={"repo": job.repo_full_name, "pr_number": job.pr_number, "batch_id": job.batch_id,
                   "extra": {"error": result.error}},
        )
        return
    _emit_metric("splices_created", 1)


def _process_merged(message: dict[str, Any], gh: GitHubClient) -> None:
    event = MergedPullRequestEvent.model_validate(message)
    owner, repo = event.repo_full_name.split("/", maxsplit=1)
    handled = handle_merged_pull_request(
        gh,
        owner,
        repo,
        action=event.action,
        pr=event.pull_request,
        actions=parse_on_merge_actions(ON_MERGE_ACTIONS),
        sync_label=SYNC_LABEL,
    )
    if handled:
        _emit_metric("merge_callbacks", 1)


def _process_record(record: dict[str, Any]) -> None:
    started = time.time()
    message = json.loads(record["body"])
    message_type = message.get("type", "splice")
    gh = _github_client()

    if message_type == "splice":
        _process_splice(message, gh)
    elif message_type == "merged":
        _process_merged(message, gh)
    else:
        raise ValueError(f"Unsupported message type: {message_type}")

    duration_ms = (time.time() - started) * 1000
    _emit_metric("duration_ms", duration_ms, unit="Milliseconds")


def lambda_handler(event: dict[str, Any], _context: Any) -> dict[str, Any]:
    failures: list[dict[str, str]] = []

    for record in event.get("Records", []):
        message_id = record.get("messageId", "unknown")
        try:
            _process_record(record)
        except ValidationError:
            # Malformed messages are dropped, not redelivered.
            logger.exception("record_invalid", extra={"message_id": message_id})
            _emit_metric("splices_failed", 1)
        except Exception:  # noqa: BLE001
            logger.exception("record_processing_failed", extra={"message_id": message_id})
            _emit_metric("splices_failed", 1)
            failures.append({"itemIdentifier": message_id})

    return {"batchItemFailures": failures}
