"""Error taxonomy for package installation."""

from __future__ import annotations

from typing import Optional


class InstallError(Exception):
    """Base class for failures of a single package's installation."""

    kind = "install error"

    def __init__(self, package: str, message: str):
        super().__init__(f"{package}: {message}")
        self.package = package
        self.message = message


class MissingArtifactDescriptor(InstallError):
    """Package has neither a ``dist`` nor a ``source`` entry."""

    kind = "missing artifact descriptor"

    def __init__(self, package: str):
        super().__init__(package, "package has neither a dist nor a source descriptor")


class UnsupportedDistributionKind(InstallError):
    """Descriptor type is not one the installer can unpack."""

    kind = "unsupported distribution kind"

    def __init__(self, package: str, artifact_kind: str):
        super().__init__(package, f"unsupported distribution type '{artifact_kind}'")
        self.artifact_kind = artifact_kind


class NetworkFailure(InstallError):
    """Archive download failed or returned a non-2xx status."""

    kind = "network failure"

    def __init__(self, package: str, url: str, reason: str, status: Optional[int] = None):
        super().__init__(package, f"failed to download {url}: {reason}")
        self.url = url
        self.status = status


class ExtractionFailure(InstallError):
    """Archive is corrupt or could not be unpacked."""

    kind = "extraction failure"


class InstallTaskFault(InstallError):
    """Unexpected, non-domain exception escaped a package's unit of work."""

    kind = "task fault"

