from __future__ import annotations

from typing import Any, Iterable

from shared.github_client import GitHubClient
from shared.logging import get_logger
from shared.schema import parse_splice_metadata

logger = get_logger("splice_merge_callback")


def parse_on_merge_actions(value: str) -> set[str]:
    return {action.strip().lower() for action in (value or "").split(",") if action.strip()}


def handle_merged_pull_request(
    gh: GitHubClient,
    owner: str,
    repo: str,
    action: str,
    pr: dict[str, Any],
    actions: Iterable[str],
    sync_label: str,
) -> bool:
    """Tell the original PR that one of its spliced PRs was merged.

    Returns True when the merged PR was a spliced one. Notification failures
    are logged and never raised.
    """
    if action != "closed" or not pr.get("merged"):
        logger.info("pr_closed_without_merge", extra={"extra": {"pr_number": pr.get("number")}})
        return False

    metadata = parse_splice_metadata(pr.get("body") or "")
    if metadata is None:
        logger.info("not_a_spliced_pr", extra={"extra": {"pr_number": pr.get("number")}})
        return False

    original = metadata.original_pr
    base_ref = (pr.get("base") or {}).get("ref") or "the base branch"
    wanted = set(actions)
    logger.info(
        "spliced_pr_merged",
        extra={"extra": {"pr_number": pr.get("number"), "original_pr": original, "base": base_ref}},
    )

    if "comment" in wanted:
        message = (
            f"🔀 Spliced PR #{pr.get('number')} has been merged into `{base_ref}`.\n\n"
            f"You may want to merge `{base_ref}` into this PR to incorporate those changes and avoid duplicates."
        )
        try:
            gh.create_issue_comment(owner, repo, original, message)
        except Exception:  # noqa: BLE001
            logger.warning("merge_notification_failed", extra={"extra": {"original_pr": original}})

    if "label" in wanted:
        try:
            gh.add_labels(owner, repo, original, [sync_label])
        except Exception:  # noqa: BLE001
            logger.warning("sync_label_failed", extra={"extra": {"original_pr": original, "label": sync_label}})

    return True
