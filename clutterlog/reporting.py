from dataclasses import dataclass, field
from typing import List

from .models import BuildFailure, GalleryRecord


def format_size(num_bytes: int) -> str:
    kb = 1024
    mb = 1024 * kb
    gb = 1024 * mb

    if num_bytes >= gb:
        return f"{num_bytes / gb:.2f} GB"
    elif num_bytes >= mb:
        return f"{num_bytes / mb:.2f} MB"
    elif num_bytes >= kb:
        return f"{num_bytes / kb:.2f} KB"
    return f"{num_bytes} B"


def format_duration(seconds: float) -> str:
    if seconds < 1.0:
        return f"{seconds * 1000:.0f}ms"
    elif seconds < 60.0:
        return f"{seconds:.2f}s"
    mins = int(seconds // 60)
    return f"{mins}m {seconds - mins * 60:.2f}s"


@dataclass
class BuildReport:
    """
    End-of-run summary. Per-file failures are aggregated here instead of
    aborting the build.
    """
    records: List[GalleryRecord] = field(default_factory=list)
    failures: List[BuildFailure] = field(default_factory=list)
    added: int = 0
    removed: int = 0
    total_media_bytes: int = 0
    total_thumb_bytes: int = 0
    elapsed_seconds: float = 0.0

    @property
    def items_processed(self) -> int:
        return len(self.records)

    @property
    def items_failed(self) -> int:
        return len({f.filename for f in self.failures})

    @property
    def ok(self) -> bool:
        return not self.failures

    def add_failure(self, filename: str, stage: str, message: str) -> None:
        self.failures.append(BuildFailure(filename=filename, stage=stage, message=message))

    def format(self) -> str:
        lines = [
            "Build report:",
            f"  Metadata: {self.added} added, {self.removed} removed",
            f"  Items processed: {self.items_processed}",
            f"  Items failed: {self.items_failed}",
            f"  Total media size: {format_size(self.total_media_bytes)}",
            f"  Total thumbs size: {format_size(self.total_thumb_bytes)}",
            f"  Processing time: {format_duration(self.elapsed_seconds)}",
        ]
        if self.failures:
            lines.append("Failures:")
            for f in sorted(self.failures, key=lambda f: (f.filename, f.stage)):
                lines.append(f"  [{f.stage}] {f.filename}: {f.message}")
        return "\n".join(lines)
