"""Custom exceptions for depsweep."""


class DepSweepError(Exception):
    """Base exception for all depsweep errors."""


class ManifestNotFoundError(DepSweepError):
    """Raised when no package.json exists between the start directory and the filesystem root."""

    def __init__(self, start_dir: str):
        self.start_dir = start_dir
        super().__init__(f"No package.json found in {start_dir} or any parent directory")


class InvalidManifestError(DepSweepError):
    """Raised when the project manifest cannot be read or is not a JSON object."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid manifest {path}: {reason}")
