"""
Git implementation of the versioned store.

Every operation shells out to the ``git`` binary inside the source tree.
Commands that signal "yes/no" through their exit code (``git diff --quiet``,
``git merge-tree``) are run unchecked and interpreted here; everything else
raises GitError on a non-zero exit.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from dotsync.core.vcs.base import CommitRelation, DiffScope, GitError

logger = logging.getLogger(__name__)


class GitStore:
    """
    VersionedStore backed by a git working tree.

    Example:
        >>> store = GitStore(Path("~/.local/share/chezmoi").expanduser())
        >>> if store.is_repository():
        ...     print(store.current_commit())
    """

    DEFAULT_TIMEOUT = 120

    def __init__(self, source_dir: Path, timeout: int = DEFAULT_TIMEOUT) -> None:
        """
        Initialize the store.

        Args:
            source_dir: Root of the git working tree.
            timeout: Per-command timeout in seconds.
        """
        self.source_dir = source_dir
        self.timeout = timeout

    def _execute(
        self,
        args: list[str],
        *,
        input_data: str | None = None,
    ) -> subprocess.CompletedProcess[str]:
        cmd = ["git"] + args

        logger.debug("Running git command: %s", " ".join(cmd))

        try:
            return subprocess.run(
                cmd,
                cwd=self.source_dir,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                input=input_data,
            )
        except subprocess.TimeoutExpired as e:
            raise GitError(f"Git command timed out: {' '.join(cmd)}", command=cmd) from e
        except FileNotFoundError as e:
            raise GitError("git not found in PATH", command=cmd) from e

    def _run_git(
        self,
        args: list[str],
        *,
        check: bool = True,
        input_data: str | None = None,
    ) -> str:
        """
        Run a git command and return its stdout.

        Args:
            args: Git command arguments (without "git" prefix).
            check: Whether to raise on non-zero exit code.
            input_data: Optional stdin data to pass to the command.

        Returns:
            Command stdout as string (stripped).

        Raises:
            GitError: If the command fails and check=True.
        """
        result = self._execute(args, input_data=input_data)

        if check and result.returncode != 0:
            stderr = result.stderr.strip() if result.stderr else ""
            raise GitError(
                f"Git command failed: git {' '.join(args)}",
                command=["git"] + args,
                stderr=stderr,
            )

        return result.stdout.strip() if result.stdout else ""

    def _exit_flag(self, args: list[str]) -> bool:
        """Run a ``--quiet`` style command: exit 1 means True, 0 means False."""
        result = self._execute(args)
        if result.returncode == 0:
            return False
        if result.returncode == 1:
            return True
        raise GitError(
            f"Git command failed: git {' '.join(args)}",
            command=["git"] + args,
            stderr=(result.stderr or "").strip(),
        )

    def is_repository(self) -> bool:
        """Check that the source tree exists and is a git work tree."""
        if not self.source_dir.is_dir():
            return False
        try:
            return self._run_git(["rev-parse", "--is-inside-work-tree"]) == "true"
        except GitError:
            return False

    def rev_parse(self, ref: str) -> str | None:
        """Resolve a ref to a commit SHA, or None if it doesn't exist."""
        try:
            return self._run_git(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"])
        except GitError:
            return None

    def current_commit(self) -> str | None:
        """SHA of HEAD, or None in a repository without commits."""
        return self.rev_parse("HEAD")

    def current_branch(self) -> str | None:
        """Name of the checked-out branch, or None when HEAD is detached."""
        try:
            branch = self._run_git(["branch", "--show-current"])
        except GitError:
            return None
        return branch or None

    def has_remote(self, remote: str) -> bool:
        """Check whether a remote with this name is configured."""
        try:
            self._run_git(["remote", "get-url", remote])
            return True
        except GitError:
            return False

    def fetch(self, remote: str, branch: str) -> str | None:
        """
        Fetch a branch into its remote-tracking ref.

        Returns:
            SHA of the fetched remote-tracking ref, or None if the remote
            or the branch doesn't exist.

        Raises:
            GitError: If the fetch fails for any other reason.
        """
        if not self.has_remote(remote):
            logger.info("No remote named %s is configured", remote)
            return None

        tracking_ref = f"refs/remotes/{remote}/{branch}"
        try:
            self._run_git([
                "fetch",
                remote,
                f"+refs/heads/{branch}:{tracking_ref}",
                "--no-tags",
            ])
        except GitError as e:
            if "couldn't find remote ref" in e.stderr.lower():
                logger.info("Remote branch %s/%s does not exist", remote, branch)
                return None
            raise

        return self.rev_parse(tracking_ref)

    def _rebase_in_progress(self) -> bool:
        for marker in ("rebase-merge", "rebase-apply"):
            try:
                git_path = self._run_git(["rev-parse", "--git-path", marker])
            except GitError:
                continue
            if (self.source_dir / git_path).exists():
                return True
        return False

    def rebase_pull(self, remote: str, branch: str) -> None:
        """
        Pull a branch with rebase and autostash.

        A failed rebase is aborted before the error propagates so the
        working tree is left as it was before the pull.

        Raises:
            GitError: If the pull fails.
        """
        try:
            self._run_git(["pull", "--rebase", "--autostash", remote, branch])
        except GitError:
            if self._rebase_in_progress():
                logger.warning("Aborting interrupted rebase onto %s/%s", remote, branch)
                self._run_git(["rebase", "--abort"], check=False)
            raise

    def push(self, remote: str, local_ref: str, remote_branch: str) -> None:
        """Push ``local_ref`` to ``remote_branch`` on the remote."""
        self._run_git(["push", remote, f"{local_ref}:refs/heads/{remote_branch}"])

    def has_unstaged_changes(self) -> bool:
        """True if tracked files differ from the index."""
        return self._exit_flag(["diff", "--quiet"])

    def has_staged_changes(self) -> bool:
        """True if the index differs from HEAD."""
        return self._exit_flag(["diff", "--cached", "--quiet"])

    def diff_names(self, scope: DiffScope) -> list[str]:
        """List changed paths for the given scope."""
        if scope is DiffScope.UNSTAGED:
            args = ["diff", "--name-only", "-z"]
        elif scope is DiffScope.STAGED:
            args = ["diff", "--cached", "--name-only", "-z"]
        else:
            args = ["ls-files", "--others", "--exclude-standard", "-z"]

        output = self._run_git(args)
        return [name for name in output.split("\0") if name]

    def stash_push(self, message: str) -> bool:
        """
        Stash local modifications.

        Returns:
            True if a stash entry was created, False if there was nothing to stash.
        """
        output = self._run_git(["stash", "push", "-m", message])
        return "no local changes to save" not in output.lower()

    def stash_pop(self) -> bool:
        """
        Re-apply and drop the latest stash entry.

        Returns:
            True on a clean pop. False if the pop conflicted; git keeps the
            stash entry in that case so nothing is lost.
        """
        result = self._execute(["stash", "pop"])
        if result.returncode != 0:
            logger.warning(
                "git stash pop failed: %s",
                (result.stderr or result.stdout or "").strip(),
            )
            return False
        return True

    def add_all(self) -> None:
        """Stage every change in the work tree, including deletions."""
        self._run_git(["add", "-A"])

    def commit(self, message: str) -> str:
        """Commit the index and return the new HEAD SHA."""
        self._run_git(["commit", "-m", message])
        return self._run_git(["rev-parse", "HEAD"])

    def reset_hard(self, commit: str) -> None:
        """Reset the branch, index and work tree to ``commit``."""
        self._run_git(["reset", "--hard", commit])

    def undo_last_commit(self) -> None:
        """Drop HEAD's commit but keep its changes in the work tree."""
        self._run_git(["reset", "--mixed", "HEAD~1"])

    def clean(self) -> None:
        """Remove untracked files and directories (ignored files are kept)."""
        self._run_git(["clean", "-fd"])

    def compare(self, local: str, remote: str) -> CommitRelation:
        """
        Determine how two commits relate using their merge base.

        Returns:
            CommitRelation from the point of view of ``local``.
        """
        if local == remote:
            return CommitRelation.UP_TO_DATE

        try:
            merge_base = self._run_git(["merge-base", local, remote])
        except GitError:
            # No common history
            return CommitRelation.DIVERGED

        if merge_base == local:
            return CommitRelation.BEHIND
        if merge_base == remote:
            return CommitRelation.AHEAD
        return CommitRelation.DIVERGED

    def ahead_behind(self, upstream: str = "@{u}") -> tuple[int, int] | None:
        """
        Count commits ahead of and behind ``upstream``.

        Returns:
            (ahead, behind), or None when there is no upstream.
        """
        try:
            output = self._run_git(["rev-list", "--left-right", "--count", f"HEAD...{upstream}"])
        except GitError:
            return None

        parts = output.split()
        if len(parts) != 2:
            return None
        return int(parts[0]), int(parts[1])

    def probe_conflicts(self, local: str, remote: str) -> bool | None:
        """
        Check whether merging ``remote`` into ``local`` would conflict.

        Uses ``git merge-tree --write-tree`` which never touches the work tree.

        Returns:
            True if conflicts are expected, False if the merge is clean,
            None if the probe could not run (e.g. an older git).
        """
        result = self._execute(["merge-tree", "--write-tree", "--name-only", local, remote])
        if result.returncode == 0:
            return False
        if result.returncode == 1:
            return True
        logger.debug("Conflict probe unavailable: %s", (result.stderr or "").strip())
        return None
