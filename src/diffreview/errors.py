from __future__ import annotations

from collections.abc import Sequence


class DiffReviewError(RuntimeError):
    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class GitCommandError(DiffReviewError):
    def __init__(
        self,
        args: Sequence[str],
        returncode: int | None,
        stderr: str = "",
        *,
        message: str | None = None,
    ) -> None:
        self.git_args = list(args)
        self.returncode = returncode
        self.stderr = stderr.strip()
        if message is None:
            message = self.stderr or f"git command failed: git {' '.join(self.git_args)}"
        super().__init__(message)


class BranchNotFoundError(DiffReviewError):
    pass


class ForkPointNotFoundError(DiffReviewError):
    pass


class FetchFailedError(DiffReviewError):
    pass


class ContentUnavailableError(DiffReviewError):
    pass


class ConfigError(DiffReviewError):
    pass


class ReviewApiError(DiffReviewError):
    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        data: object = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.data = data
