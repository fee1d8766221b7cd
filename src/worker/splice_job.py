"""Turn a batch of review-comment selections into a new pull request.

A single comment is a batch of one with a synthetic ``c<comment id>`` id,
so both paths share the same steps: collect, extract, rebuild the files on
the base branch, commit, open the PR, and reply on the triggering comment.
"""

from __future__ import annotations

from typing import Any, Optional

from shared.constants import DEFAULT_BRANCH_PREFIX, ERROR_MARKER, SUCCESS_MARKER
from shared.github_client import GitHubClient
from shared.logging import get_logger
from shared.schema import CommentContext, SpliceInstruction, SpliceJob, SpliceResult
from splice.diff_model import Side
from splice.extract import extract_all_hunks, extract_entire_hunk
from splice.hunks import ExtractedChange, Hunk
from splice.merge import Selection, merge_selections
from splice.naming import branch_name_base, default_title, next_available_name
from worker.commit import SpliceError, build_file_updates, commit_changes
from worker.description import generate_batch_description

logger = get_logger("splice_worker")


def _reply(gh: GitHubClient, owner: str, repo: str, pr_number: int, trigger: CommentContext, message: str) -> None:
    if trigger.path:
        gh.reply_to_review_comment(owner, repo, pr_number, trigger.comment_id, message)
    else:
        gh.create_issue_comment(owner, repo, pr_number, message)


def _selections(comments: list[CommentContext], local_logger: Any) -> list[Selection]:
    selections: list[Selection] = []
    for comment in comments:
        selection = comment.to_selection()
        if selection is None:
            local_logger.warning(
                "comment_lines_unresolved",
                extra={"extra": {"comment_id": comment.comment_id, "path": comment.path}},
            )
            continue
        selections.append(selection)
    return selections


def _whole_hunk_changes(
    selections: list[Selection],
    patches: dict[str, Optional[str]],
    entire_file: bool,
) -> dict[str, ExtractedChange]:
    hunks_by_path: dict[str, dict[tuple[int, int], Hunk]] = {}

    for selection in selections:
        patch = patches.get(selection.file_path)
        if not patch:
            continue

        if entire_file:
            found = extract_all_hunks(patch)
        elif selection.side is Side.NEW:
            hunk = extract_entire_hunk(patch, selection.range_end)
            found = [hunk] if hunk else []
        else:
            changes = merge_selections([selection], patches)
            found = changes[selection.file_path].hunks if selection.file_path in changes else []

        bucket = hunks_by_path.setdefault(selection.file_path, {})
        for hunk in found:
            bucket.setdefault(hunk.span, hunk)

    return {
        path: ExtractedChange(path=path, hunks=[bucket[key] for key in sorted(bucket)])
        for path, bucket in hunks_by_path.items()
        if bucket
    }


def collect_changes(
    gh: GitHubClient,
    owner: str,
    repo: str,
    pr_number: int,
    comments: list[CommentContext],
    instruction: SpliceInstruction,
    local_logger: Any = None,
) -> list[ExtractedChange]:
    log = local_logger or logger
    selections = _selections(comments, log)
    if not selections:
        return []

    wanted = {selection.file_path for selection in selections}
    patches: dict[str, Optional[str]] = {
        file_obj.get("filename"): file_obj.get("patch")
        for file_obj in gh.get_pull_request_files(owner, repo, pr_number)
        if file_obj.get("filename") in wanted
    }

    if instruction.entire_file or instruction.entire_hunk:
        changes = _whole_hunk_changes(selections, patches, instruction.entire_file)
    else:
        changes = merge_selections(selections, patches)

    log.info(
        "changes_collected",
        extra={"extra": {"files": sorted(changes), "selections": len(selections)}},
    )
    return [changes[path] for path in sorted(changes)]


def _fail(
    gh: GitHubClient, owner: str, repo: str, job: SpliceJob, message: str, details: str = "",
) -> SpliceResult:
    _reply(gh, owner, repo, job.pr_number, job.trigger, f"{ERROR_MARKER}\n\n{message}{details}")
    return SpliceResult(success=False, error=message)


def run_splice_job(
    gh: GitHubClient,
    job: SpliceJob,
    branch_prefix: str = DEFAULT_BRANCH_PREFIX,
    dry_run: bool = False,
) -> SpliceResult:
    owner, repo = job.repo_full_name.split("/", maxsplit=1)
    instruction = job.instruction
    local_logger = logger.bind(
        repo=job.repo_full_name,
        pr_number=job.pr_number,
        batch_id=job.batch_id,
        comment_id=job.trigger.comment_id,
        correlation_id=f"{job.repo_full_name}:{job.pr_number}:{job.batch_id}",
    )

    if instruction.batch and not instruction.ship:
        local_logger.info("batch_waiting_for_ship", extra={"extra": {"batch": instruction.batch}})
        return SpliceResult(success=True, deferred=True)

    try:
        comments = job.batch_comments()
        if not comments:
            return _fail(gh, owner, repo, job, f"No comments found in batch:{job.batch_id}")

        local_logger.info("splice_started", extra={"extra": {"comments": len(comments)}})
        changes = collect_changes(gh, owner, repo, job.pr_number, comments, instruction, local_logger)
        if not changes:
            return _fail(gh, owner, repo, job, f"Could not extract changes from batch:{job.batch_id}")

        pr = gh.get_pull_request(owner, repo, job.pr_number)
        base_ref = instruction.base or (pr.get("base") or {}).get("ref")
        if not base_ref:
            raise SpliceError(f"Could not determine base branch for PR #{job.pr_number}")

        updates, failed = build_file_updates(gh, owner, repo, changes, base_ref, local_logger)
        if not updates:
            return _fail(
                gh, owner, repo, job,
                f"Could not apply changes from batch:{job.batch_id}",
                "\n\nFailed files: " + ", ".join(f"`{path}`" for path in failed),
            )

        title = instruction.title or default_title(job.batch_id, job.pr_number)
        branch_base = instruction.branch or branch_name_base(branch_prefix, job.pr_number, job.batch_id)
        branch_name = next_available_name(branch_base, lambda name: gh.branch_exists(owner, repo, name))

        if dry_run:
            local_logger.info(
                "dry_run_splice",
                extra={
                    "extra": {
                        "branch": branch_name,
                        "base": base_ref,
                        "files": [u.path for u in updates],
                        "new_files": [u.path for u in updates if u.is_new],
                    }
                },
            )
            return SpliceResult(success=True, branch_name=branch_name)

        local_logger.info("creating_branch", extra={"extra": {"branch": branch_name, "base": base_ref}})
        gh.create_ref(owner, repo, f"refs/heads/{branch_name}", gh.get_branch_sha(owner, repo, base_ref))

        commit_changes(
            gh,
            owner,
            repo,
            branch_name=branch_name,
            base_ref=base_ref,
            updates=updates,
            message=title,
            original_pr_number=job.pr_number,
            author_name=job.trigger.author_login,
            author_email=job.trigger.author_email,
        )

        description = generate_batch_description(
            original_pr_number=job.pr_number,
            original_pr_title=pr.get("title") or "",
            batch_id=job.batch_id,
            file_paths=[update.path for update in updates],
            comment_id=job.trigger.comment_id,
            author_login=job.trigger.author_login,
            custom_description=instruction.description,
        )
        new_pr = gh.create_pull_request(
            owner=owner,
            repo=repo,
            title=title,
            head=branch_name,
            base=base_ref,
            body=description,
            draft=instruction.draft,
        )
        new_number = new_pr.get("number")
        new_url = new_pr.get("html_url")

        if instruction.labels:
            gh.add_labels(owner, repo, new_number, instruction.labels)
        if instruction.reviewers:
            gh.request_reviewers(owner, repo, new_number, instruction.reviewers)

        message = f"{SUCCESS_MARKER}\n [#{new_number} - {title}]({new_url})"
        if failed:
            message += "\n\nSkipped (hunks did not apply): " + ", ".join(f"`{path}`" for path in failed)
        _reply(gh, owner, repo, job.pr_number, job.trigger, message)

        local_logger.info(
            "splice_pr_created",
            extra={
                "extra": {
                    "splice_pr_number": new_number,
                    "branch": branch_name,
                    "new_files": [u.path for u in updates if u.is_new],
                }
            },
        )
        return SpliceResult(success=True, pr_url=new_url, pr_number=new_number, branch_name=branch_name)
    except Exception as exc:  # noqa: BLE001
        local_logger.exception("splice_failed")
        try:
            _reply(
                gh, owner, repo, job.pr_number, job.trigger,
                f"{ERROR_MARKER}\n\n{exc}\n\nPlease check the worker logs for more details.",
            )
        except Exception:  # noqa: BLE001
            local_logger.warning("error_reply_failed")
        return SpliceResult(success=False, error=str(exc))
