from __future__ import annotations


class InstallError(RuntimeError):
    """A step cannot continue; the run is aborted and rolled back."""

    exit_code = 1


class InstallInterrupted(BaseException):
    """Raised from a signal handler so the normal failure path runs."""

    def __init__(self, signum: int):
        super().__init__(f"Interrupted by signal {signum}")
        self.signum = signum
        self.exit_code = 128 + signum
