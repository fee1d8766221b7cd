#!/usr/bin/env python3
import json
import os
import sys

sys.path.append("src")
from worker.app import lambda_handler  # noqa: E402


def main() -> int:
    os.environ.setdefault("DRY_RUN", "true")

    message = {
        "type": "splice",
        "repo_full_name": "example-org/example-repo",
        "pr_number": 42,
        "batch_id": "c1001",
        "trigger": {
            "comment_id": 1001,
            "path": "src/app.py",
            "start_line": 12,
            "end_line": 14,
            "side": "RIGHT",
            "body": "/splice title:\"Extract helper\"",
            "author_login": "octocat",
        },
        "instruction": {
            "title": "Extract helper",
            "labels": ["refactor"],
        },
    }

    event = {
        "Records": [
            {
                "messageId": "local-message-1",
                "body": json.dumps(message),
            }
        ]
    }

    out = lambda_handler(event, None)
    print(json.dumps(out, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
