"""Ready stage: per-version datasets and zip archives."""

from readyaimshoot.ready.archive import ArchiveResult, create_version_zip, create_version_zips
from readyaimshoot.ready.sample import SampleResult, sample_versions, select_line_numbers

__all__ = [
    "ArchiveResult",
    "SampleResult",
    "create_version_zip",
    "create_version_zips",
    "sample_versions",
    "select_line_numbers",
]
