"""Shared constants used across Lambda entrypoints."""

from __future__ import annotations

DEFAULT_REGION = "us-east-1"

DEFAULT_GITHUB_API_BASE = "https://api.github.com"

DEFAULT_BRANCH_PREFIX = "splice"

# Comma-separated actions taken on the original PR when a spliced PR merges
DEFAULT_ON_MERGE_ACTIONS = "comment,label"

DEFAULT_SYNC_LABEL = "needs-sync"

FALLBACK_AUTHOR_LOGIN = "github-actions[bot]"

# Leading markers for replies posted back to the triggering comment
SUCCESS_MARKER = "✅ **Splice Bot** created:"
ERROR_MARKER = "❌ **Splice Bot Error**"
