"""
Minimal GitHub client used for manual repository syncs.
Returns empty lists when no token is supplied so callers and tests stay deterministic.
"""
from typing import List, Dict, Any, Optional

from logging_config import get_logger
from storage.retry import perform_request_with_retries

log = get_logger(__name__)

FILE_STATUS_KEYS = {
    'added': 'added',
    'removed': 'removed',
    'modified': 'modified',
    'renamed': 'modified',
    'changed': 'modified',
    'copied': 'added',
}


class GitHubClient:
    """Fetch recent commits of a repository and reshape them like push-webhook commit entries."""

    def __init__(self, token: Optional[str], owner: str, base_url: str = None, max_retries: Optional[int] = None):
        self.token = token
        self.owner = owner
        self.base_url = (base_url or "https://api.github.com").rstrip('/')
        self.max_retries = max_retries
        self.headers = {
            "Authorization": f"Bearer {self.token}" if self.token else "",
            "Accept": "application/vnd.github+json",
        }

    def _repo_path(self, repo: str) -> str:
        return repo if '/' in repo else f"{self.owner}/{repo}"

    def _get(self, url: str, params: Dict[str, Any] = None) -> Optional[Any]:
        res = perform_request_with_retries(url, headers=self.headers, params=params, max_retries=self.max_retries)
        if res.get('status') != 200:
            log.warning('github_request_failed', url=url, status=res.get('status'))
            return None
        return res.get('response')

    def _commit_files(self, repo_path: str, sha: str) -> Dict[str, List[str]]:
        files: Dict[str, List[str]] = {'added': [], 'modified': [], 'removed': []}
        detail = self._get(f"{self.base_url}/repos/{repo_path}/commits/{sha}")
        if not isinstance(detail, dict):
            return files
        for f in detail.get('files') or []:
            key = FILE_STATUS_KEYS.get(f.get('status'), 'modified')
            if f.get('filename'):
                files[key].append(f['filename'])
        return files

    def get_recent_commits(self, repo: str, limit: int = 10) -> List[Dict[str, Any]]:
        """Most recent commits first, each shaped {id, message, timestamp, author, added, modified, removed}."""
        if not self.token:
            return []
        repo_path = self._repo_path(repo)
        data = self._get(f"{self.base_url}/repos/{repo_path}/commits", params={"per_page": limit})
        if not isinstance(data, list):
            return []

        commits: List[Dict[str, Any]] = []
        for item in data[:limit]:
            sha = item.get('sha')
            if not sha:
                continue
            info = item.get('commit') or {}
            author = info.get('author') or {}
            entry = {
                'id': sha,
                'message': info.get('message') or '',
                'timestamp': author.get('date') or '',
                'author': {'name': author.get('name') or '', 'email': author.get('email') or ''},
            }
            entry.update(self._commit_files(repo_path, sha))
            commits.append(entry)
        log.info('github_commits_fetched', repo=repo_path, count=len(commits))
        return commits
