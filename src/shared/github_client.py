from __future__ import annotations

import base64
from typing import Callable, Optional

import requests


class GitHubClient:
    def __init__(
        self,
        token_provider: Callable[[], str],
        api_base: str = "https://api.github.com",
        session: Optional[requests.Session] = None,
    ) -> None:
        self._token_provider = token_provider
        self._api_base = api_base.rstrip("/")
        self._session = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self._api_base}{path}"
        headers = dict(kwargs.pop("headers", {}))
        headers.update(
            {
                "Authorization": f"token {self._token_provider()}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            }
        )
        response = self._session.request(method, url, headers=headers, timeout=20, **kwargs)
        response.raise_for_status()
        return response

    @staticmethod
    def _is_not_found(exc: requests.HTTPError) -> bool:
        return exc.response is not None and exc.response.status_code == 404

    # -- pulls -----------------------------------------------------------------

    def get_pull_request(self, owner: str, repo: str, pull_number: int) -> dict:
        response = self._request("GET", f"/repos/{owner}/{repo}/pulls/{pull_number}")
        return response.json()

    def get_pull_request_files(self, owner: str, repo: str, pull_number: int) -> list[dict]:
        page = 1
        files: list[dict] = []
        while True:
            response = self._request(
                "GET",
                f"/repos/{owner}/{repo}/pulls/{pull_number}/files",
                params={"per_page": 100, "page": page},
            )
            page_data = response.json()
            if not page_data:
                break
            files.extend(page_data)
            if len(page_data) < 100:
                break
            page += 1
        return files

    def create_pull_request(
        self,
        owner: str,
        repo: str,
        title: str,
        head: str,
        base: str,
        body: str,
        draft: bool = False,
    ) -> dict:
        response = self._request(
            "POST",
            f"/repos/{owner}/{repo}/pulls",
            json={
                "title": title,
                "head": head,
                "base": base,
                "body": body,
                "draft": draft,
            },
        )
        return response.json()

    def reply_to_review_comment(
        self, owner: str, repo: str, pull_number: int, comment_id: int, body: str,
    ) -> dict:
        response = self._request(
            "POST",
            f"/repos/{owner}/{repo}/pulls/{pull_number}/comments/{comment_id}/replies",
            json={"body": body},
        )
        return response.json()

    def request_reviewers(
        self, owner: str, repo: str, pull_number: int, reviewers: list[str],
    ) -> dict:
        response = self._request(
            "POST",
            f"/repos/{owner}/{repo}/pulls/{pull_number}/requested_reviewers",
            json={"reviewers": reviewers},
        )
        return response.json()

    # -- issues ----------------------------------------------------------------

    def create_issue_comment(
        self, owner: str, repo: str, issue_number: int, body: str,
    ) -> dict:
        """Post a comment on an issue or pull request."""
        response = self._request(
            "POST",
            f"/repos/{owner}/{repo}/issues/{issue_number}/comments",
            json={"body": body},
        )
        return response.json()

    def add_labels(
        self, owner: str, repo: str, issue_number: int, labels: list[str],
    ) -> list[dict]:
        response = self._request(
            "POST",
            f"/repos/{owner}/{repo}/issues/{issue_number}/labels",
            json={"labels": labels},
        )
        return response.json()

    # -- contents --------------------------------------------------------------

    def get_file_text(self, owner: str, repo: str, path: str, ref: str) -> Optional[str]:
        """Decoded file content at ``ref``, or None when the file does not exist there."""
        try:
            response = self._request("GET", f"/repos/{owner}/{repo}/contents/{path}", params={"ref": ref})
        except requests.HTTPError as exc:
            if self._is_not_found(exc):
                return None
            raise
        data = response.json()
        if not isinstance(data, dict) or data.get("type") != "file":
            return None
        encoded = data.get("content", "").replace("\n", "")
        return base64.b64decode(encoded).decode("utf-8")

    # -- git data --------------------------------------------------------------

    def get_ref(self, owner: str, repo: str, ref: str) -> dict:
        response = self._request("GET", f"/repos/{owner}/{repo}/git/ref/{ref}")
        return response.json()

    def create_ref(self, owner: str, repo: str, ref: str, sha: str) -> dict:
        response = self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/refs",
            json={"ref": ref, "sha": sha},
        )
        return response.json()

    def update_ref(self, owner: str, repo: str, ref: str, sha: str, force: bool = False) -> dict:
        response = self._request(
            "PATCH",
            f"/repos/{owner}/{repo}/git/refs/{ref}",
            json={"sha": sha, "force": force},
        )
        return response.json()

    def branch_exists(self, owner: str, repo: str, branch: str) -> bool:
        try:
            self.get_ref(owner, repo, f"heads/{branch}")
        except requests.HTTPError as exc:
            if self._is_not_found(exc):
                return False
            raise
        return True

    def get_branch_sha(self, owner: str, repo: str, branch: str) -> str:
        data = self.get_ref(owner, repo, f"heads/{branch}")
        sha = (data.get("object") or {}).get("sha")
        if not sha:
            raise ValueError(f"Branch {branch} has no commit SHA")
        return sha

    def get_commit(self, owner: str, repo: str, commit_sha: str) -> dict:
        response = self._request("GET", f"/repos/{owner}/{repo}/git/commits/{commit_sha}")
        return response.json()

    def create_blob(self, owner: str, repo: str, content: str) -> str:
        response = self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/blobs",
            json={"content": content, "encoding": "utf-8"},
        )
        return response.json()["sha"]

    def create_tree(self, owner: str, repo: str, base_tree: str, entries: list[dict]) -> str:
        response = self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/trees",
            json={"base_tree": base_tree, "tree": entries},
        )
        return response.json()["sha"]

    def create_commit(
        self,
        owner: str,
        repo: str,
        message: str,
        tree: str,
        parents: list[str],
        author: Optional[dict] = None,
    ) -> str:
        payload: dict = {"message": message, "tree": tree, "parents": parents}
        if author:
            payload["author"] = author
        response = self._request("POST", f"/repos/{owner}/{repo}/git/commits", json=payload)
        return response.json()["sha"]
