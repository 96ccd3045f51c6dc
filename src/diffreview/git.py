from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from diffreview.errors import GitCommandError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120.0
DEFAULT_REMOTE = "origin"

# Paths in git output stay raw UTF-8 instead of C-style quoted octal escapes.
_CONFIG_ARGS = ("-c", "core.quotePath=false")


class GitRunner:
    """Runs git subprocesses without blocking the event loop.

    Every call gets its own timeout; a call that exceeds it is killed and
    reported as a ``GitCommandError``. Output has its final newline removed.
    """

    def __init__(
        self, cwd: Path | str | None = None, *, timeout: float = DEFAULT_TIMEOUT
    ) -> None:
        self.cwd = Path(cwd) if cwd is not None else None
        self.timeout = timeout

    def at(self, cwd: Path | str) -> GitRunner:
        return type(self)(cwd, timeout=self.timeout)

    async def run(self, *args: str) -> str:
        logger.debug("git %s", " ".join(args))
        try:
            proc = await asyncio.create_subprocess_exec(
                "git",
                *_CONFIG_ARGS,
                *args,
                cwd=self.cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise GitCommandError(args, None, message=f"Could not run git: {exc}") from exc

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=self.timeout
            )
        except TimeoutError as exc:
            proc.kill()
            await proc.wait()
            raise GitCommandError(
                args,
                None,
                message=f"git {' '.join(args)} timed out after {self.timeout:g}s",
            ) from exc
        except asyncio.CancelledError:
            proc.kill()
            await proc.wait()
            raise

        if proc.returncode != 0:
            raise GitCommandError(
                args, proc.returncode, stderr.decode("utf-8", errors="replace")
            )
        return stdout.decode("utf-8", errors="replace").removesuffix("\n")

    async def current_branch(self) -> str:
        return (await self.run("rev-parse", "--abbrev-ref", "HEAD")).strip()

    async def remote_url(self, remote: str = DEFAULT_REMOTE) -> str:
        return (await self.run("remote", "get-url", remote)).strip()

    async def repo_root(self) -> Path:
        return Path((await self.run("rev-parse", "--show-toplevel")).strip())

    async def ref_exists(self, ref: str) -> bool:
        try:
            await self.run("rev-parse", "--verify", "--quiet", ref)
        except GitCommandError as exc:
            if exc.returncode is None:
                raise
            return False
        return True

    async def fetch_branch(self, branch: str, remote: str = DEFAULT_REMOTE) -> None:
        await self.run("fetch", remote, branch)

    async def merge_base(self, ref: str, other: str = "HEAD") -> str:
        return (await self.run("merge-base", ref, other)).strip()

    async def reflog(self, branch: str) -> str:
        return await self.run("reflog", "show", "--no-abbrev-commit", branch)

    async def show_file(self, ref: str, path: str) -> str:
        return await self.run("show", f"{ref}:{path}")

    async def untracked_files(self) -> list[str]:
        output = await self.run("ls-files", "--others", "--exclude-standard")
        return [line for line in output.splitlines() if line.strip()]
