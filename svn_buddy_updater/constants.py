from enum import StrEnum
from pathlib import Path
from typing import Self


class ReleaseStability(StrEnum):
    STABLE = "stable"
    SNAPSHOT = "snapshot"


class ArtifactKind(StrEnum):
    """Downloadable build outputs of a release (the phar and its detached signature)"""

    BINARY = "binary"
    SIGNATURE = "signature"

    @property
    def file_name(self) -> str:
        return ARTIFACT_FILE_NAMES[self]

    @property
    def column(self) -> str:
        return ARTIFACT_COLUMNS[self]

    @classmethod
    def from_file_name(cls, file_name: str) -> Self | None:
        """Returns artifact kind for a known asset's file name (None for unknown ones)"""
        for kind, known_name in ARTIFACT_FILE_NAMES.items():
            if known_name == file_name:
                return cls(kind)

        return None


APP_DIR = Path(__file__).parent
PHAR_FILE_NAME = "svn-buddy.phar"
SIGNATURE_FILE_NAME = "svn-buddy.phar.sig"
ARTIFACT_FILE_NAMES: dict[ArtifactKind, str] = {
    ArtifactKind.BINARY: PHAR_FILE_NAME,
    ArtifactKind.SIGNATURE: SIGNATURE_FILE_NAME,
}
ARTIFACT_COLUMNS: dict[ArtifactKind, str] = {
    ArtifactKind.BINARY: "phar_artifact_url",
    ArtifactKind.SIGNATURE: "signature_artifact_url",
}
SNAPSHOTS_PREFIX = "snapshots"
DOWNLOAD_PATH_TEMPLATE = "/download/{version}/" + PHAR_FILE_NAME
MIN_PHP_VERSION = 50300
CACHE_KEY_LATEST_VERSIONS = "latest_versions"
CACHE_TTL_LATEST_VERSIONS = 3600 * 24  # 1 day
