"""Record the proofs written by a build run as a Git commit.

The commit message names every guardian the run produced a record for and the
fields that were left as sentinels, so the history of a proofs repository
shows which approvals still need attention before submission.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, Sequence

from git import Repo


logger = logging.getLogger(__name__)


def proof_run_message(subject: str, processed: Sequence[str], degraded: Mapping[str, Sequence[str]]) -> str:
    lines = [subject, ""]
    lines.append(f"Guardians: {', '.join(processed) if processed else 'none'}")
    for key, fields in degraded.items():
        lines.append(f"Degraded: {key} ({', '.join(fields)})")
    return "\n".join(lines) + "\n"


def commit_proof_run(
    repo_path: str | Path,
    written: Sequence[str | Path],
    subject: str,
    *,
    processed: Sequence[str] = (),
    degraded: Mapping[str, Sequence[str]] | None = None,
    branch: str | None = "main",
) -> dict[str, Any]:
    """Stage the written proof files and commit them when they changed.

    Paths are taken as written, so relative ones are resolved against the
    working directory, and every file must live inside the repository work
    tree.  A rerun that reproduces identical proofs creates no commit.
    """

    root = Path(repo_path).resolve()
    repo = Repo(root)

    tracked: list[Path] = []
    for file_path in written:
        path = Path(file_path).resolve()
        if not path.is_relative_to(root):
            raise ValueError(f"{path} is outside the repository {root}")
        tracked.append(path)
    relative = [path.relative_to(root).as_posix() for path in tracked]

    repo.index.add([str(path) for path in tracked])
    if repo.head.is_valid():
        changed = repo.git.diff("--cached", "--name-only", "--", *relative).splitlines()
    else:
        changed = relative
    if not changed:
        logger.info("Proofs in %s unchanged, nothing to commit", root)
        return {"commit": None, "branch": None, "paths": relative, "changed": []}

    commit = repo.index.commit(proof_run_message(subject, processed, degraded or {}))
    moved: str | None = None
    if branch is not None and branch in repo.heads:
        repo.heads[branch].set_commit(commit)
        moved = branch
    logger.info("Committed %d proof files as %s", len(changed), commit.hexsha[:12])

    return {"commit": commit.hexsha, "branch": moved, "paths": relative, "changed": changed}


__all__ = [
    "commit_proof_run",
    "proof_run_message",
]
