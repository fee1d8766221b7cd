import logging
from unittest.mock import MagicMock

import pytest

from shared.constants import ERROR_MARKER, SUCCESS_MARKER
from shared.schema import CommentContext, SpliceInstruction, SpliceJob, parse_splice_metadata
from splice.patch_apply import PatchApplyError
from worker.splice_job import collect_changes, run_splice_job

PATCH = (
    "@@ -1,4 +1,5 @@\n"
    " def run():\n"
    "     x = 1\n"
    "-    y = 2\n"
    "+    y = 3\n"
    "+    z = 4\n"
    "     return x + y"
)
BASE = "def run():\n    x = 1\n    y = 2\n    return x + y\n"


def _trigger(**overrides) -> dict:
    trigger = {
        "comment_id": 1001,
        "path": "src/app.py",
        "start_line": 4,
        "end_line": 4,
        "side": "RIGHT",
        "author_login": "octocat",
        "author_email": "1+octocat@users.noreply.github.com",
    }
    trigger.update(overrides)
    return trigger


def _job(**overrides) -> SpliceJob:
    payload = {
        "repo_full_name": "o/r",
        "pr_number": 42,
        "batch_id": "c1001",
        "trigger": _trigger(),
    }
    payload.update(overrides)
    return SpliceJob.model_validate(payload)


def _gh() -> MagicMock:
    gh = MagicMock()
    gh.get_pull_request_files.return_value = [
        {"filename": "src/app.py", "patch": PATCH},
        {"filename": "README.md", "patch": "@@ -1 +1 @@\n-a\n+b"},
    ]
    gh.get_pull_request.return_value = {"number": 42, "title": "Big PR", "base": {"ref": "main"}}
    gh.get_file_text.return_value = BASE
    gh.branch_exists.side_effect = lambda owner, repo, name: name == "splice/pr-42-c1001"
    gh.get_branch_sha.return_value = "base-sha"
    gh.get_commit.return_value = {"sha": "base-sha", "tree": {"sha": "base-tree"}}
    gh.create_blob.return_value = "blob-sha"
    gh.create_tree.return_value = "tree-sha"
    gh.create_commit.return_value = "commit-sha"
    gh.create_pull_request.return_value = {"number": 77, "html_url": "https://github.com/o/r/pull/77"}
    return gh


def test_run_splice_job_opens_pull_request() -> None:
    gh = _gh()

    result = run_splice_job(gh, _job())

    assert result.success is True
    assert result.pr_number == 77
    assert result.branch_name == "splice/pr-42-c1001-2"

    gh.create_ref.assert_called_once_with("o", "r", "refs/heads/splice/pr-42-c1001-2", "base-sha")
    gh.create_blob.assert_called_once_with(
        "o", "r", "def run():\n    x = 1\n    y = 2\n    z = 4\n    return x + y\n"
    )
    commit_kwargs = gh.create_commit.call_args.kwargs
    assert commit_kwargs["message"] == "[Splice] c1001 from PR #42\n\nSpliced from PR #42"
    assert commit_kwargs["parents"] == ["base-sha"]
    assert commit_kwargs["author"] == {"name": "octocat", "email": "1+octocat@users.noreply.github.com"}
    gh.update_ref.assert_called_once_with("o", "r", "heads/splice/pr-42-c1001-2", "commit-sha")

    pr_kwargs = gh.create_pull_request.call_args.kwargs
    assert pr_kwargs["title"] == "[Splice] c1001 from PR #42"
    assert pr_kwargs["head"] == "splice/pr-42-c1001-2"
    assert pr_kwargs["base"] == "main"
    assert pr_kwargs["draft"] is False
    assert "Spliced from #42 (Big PR)" in pr_kwargs["body"]
    metadata = parse_splice_metadata(pr_kwargs["body"])
    assert metadata is not None
    assert (metadata.original_pr, metadata.comment_id) == (42, 1001)

    gh.add_labels.assert_not_called()
    gh.request_reviewers.assert_not_called()
    args = gh.reply_to_review_comment.call_args.args
    assert args[:4] == ("o", "r", 42, 1001)
    assert args[4] == f"{SUCCESS_MARKER}\n [#77 - [Splice] c1001 from PR #42](https://github.com/o/r/pull/77)"


def test_run_splice_job_applies_instruction_options() -> None:
    gh = _gh()
    instruction = {
        "title": "Extract z",
        "base": "develop",
        "branch": "feature/z",
        "labels": ["refactor"],
        "reviewers": ["@alice"],
        "draft": True,
        "description": "Pulled out for review.",
    }

    result = run_splice_job(gh, _job(instruction=instruction))

    assert result.branch_name == "feature/z"
    gh.get_file_text.assert_called_once_with("o", "r", "src/app.py", "develop")
    pr_kwargs = gh.create_pull_request.call_args.kwargs
    assert pr_kwargs["title"] == "Extract z"
    assert pr_kwargs["base"] == "develop"
    assert pr_kwargs["draft"] is True
    assert "Pulled out for review." in pr_kwargs["body"]
    gh.add_labels.assert_called_once_with("o", "r", 77, ["refactor"])
    gh.request_reviewers.assert_called_once_with("o", "r", 77, ["alice"])


def test_run_splice_job_dry_run_creates_nothing() -> None:
    gh = _gh()

    result = run_splice_job(gh, _job(), dry_run=True)

    assert result.success is True
    assert result.branch_name == "splice/pr-42-c1001-2"
    gh.create_ref.assert_not_called()
    gh.create_pull_request.assert_not_called()
    gh.reply_to_review_comment.assert_not_called()


def test_run_splice_job_uses_branch_prefix() -> None:
    gh = _gh()
    result = run_splice_job(gh, _job(), branch_prefix="bots/splice")
    assert result.branch_name == "bots/splice/pr-42-c1001"


def test_run_splice_job_reports_empty_batch() -> None:
    gh = _gh()

    result = run_splice_job(gh, _job(batch_id="cleanup", synthetic=False, comments=[]))

    assert result.success is False
    assert result.error == "No comments found in batch:cleanup"
    gh.reply_to_review_comment.assert_called_once_with(
        "o", "r", 42, 1001, f"{ERROR_MARKER}\n\nNo comments found in batch:cleanup"
    )


def test_run_splice_job_reports_selection_outside_diff() -> None:
    gh = _gh()

    result = run_splice_job(gh, _job(trigger=_trigger(start_line=40, end_line=45)))

    assert result.success is False
    assert result.error == "Could not extract changes from batch:c1001"
    gh.create_ref.assert_not_called()


def test_run_splice_job_reports_files_that_do_not_apply(monkeypatch: pytest.MonkeyPatch) -> None:
    gh = _gh()

    def refuse(base_text, hunks):
        raise PatchApplyError("hunk out of order")

    monkeypatch.setattr("worker.commit.apply_hunks_to_text", refuse)

    result = run_splice_job(gh, _job())

    assert result.success is False
    reply = gh.reply_to_review_comment.call_args.args[4]
    assert "Could not apply changes from batch:c1001" in reply
    assert "`src/app.py`" in reply
    gh.create_ref.assert_not_called()


def test_run_splice_job_replies_with_unexpected_errors() -> None:
    gh = _gh()
    gh.get_pull_request.side_effect = RuntimeError("github is down")

    result = run_splice_job(gh, _job())

    assert result.success is False
    assert result.error == "github is down"
    reply = gh.reply_to_review_comment.call_args.args[4]
    assert reply.startswith(ERROR_MARKER)
    assert "github is down" in reply
    assert "Please check the worker logs for more details." in reply


def test_run_splice_job_survives_failing_error_reply() -> None:
    gh = _gh()
    gh.get_pull_request.side_effect = RuntimeError("github is down")
    gh.reply_to_review_comment.side_effect = RuntimeError("still down")

    result = run_splice_job(gh, _job())

    assert result.success is False


def test_batch_without_review_trigger_replies_on_issue() -> None:
    gh = _gh()
    job = _job(
        batch_id="cleanup",
        synthetic=False,
        trigger={"comment_id": 5, "body": "/splice batch:cleanup"},
        comments=[_trigger(comment_id=6)],
    )

    result = run_splice_job(gh, job)

    assert result.success is True
    gh.reply_to_review_comment.assert_not_called()
    assert gh.create_issue_comment.call_args.args[:3] == ("o", "r", 42)


def test_collect_changes_only_reads_commented_files() -> None:
    gh = _gh()
    comments = [CommentContext(comment_id=1, path="src/app.py", start_line=4, end_line=4)]

    changes = collect_changes(gh, "o", "r", 42, comments, SpliceInstruction())

    assert [change.path for change in changes] == ["src/app.py"]
    assert changes[0].hunks[0].body == ["+    z = 4"]


def test_collect_changes_entire_hunk() -> None:
    gh = _gh()
    comments = [CommentContext(comment_id=1, path="src/app.py", start_line=4, end_line=4)]

    changes = collect_changes(gh, "o", "r", 42, comments, SpliceInstruction(entire_hunk=True))

    assert len(changes[0].hunks) == 1
    assert changes[0].hunks[0].header == "@@ -1,4 +1,5 @@"


def test_collect_changes_skips_unresolvable_comments() -> None:
    gh = _gh()
    comments = [CommentContext(comment_id=1, path="src/app.py")]

    assert collect_changes(gh, "o", "r", 42, comments, SpliceInstruction()) == []
    gh.get_pull_request_files.assert_not_called()


def test_batch_without_ship_waits() -> None:
    gh = _gh()
    job = _job(batch_id="cleanup", instruction={"batch": "cleanup"})

    result = run_splice_job(gh, job)

    assert result.success is True
    assert result.deferred is True
    assert result.pr_number is None
    gh.get_pull_request_files.assert_not_called()
    gh.create_ref.assert_not_called()
    gh.reply_to_review_comment.assert_not_called()


def test_shipped_batch_runs() -> None:
    gh = _gh()
    job = _job(
        batch_id="cleanup",
        synthetic=False,
        comments=[_trigger()],
        instruction={"batch": "cleanup", "ship": True},
    )

    result = run_splice_job(gh, job)

    assert result.success is True
    assert result.deferred is False
    assert result.branch_name == "splice/pr-42-cleanup"


def test_dry_run_logs_new_files(caplog: pytest.LogCaptureFixture) -> None:
    gh = _gh()
    gh.get_file_text.return_value = None

    with caplog.at_level(logging.INFO, logger="splice_worker"):
        result = run_splice_job(gh, _job(), dry_run=True)

    assert result.success is True
    record = next(r for r in caplog.records if r.message == "dry_run_splice")
    assert record.extra["files"] == ["src/app.py"]
    assert record.extra["new_files"] == ["src/app.py"]
