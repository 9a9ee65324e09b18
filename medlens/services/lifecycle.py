"""Allowed status transitions for uploads and analyses. Terminal states have no outgoing edges."""
from medlens.core.errors import ConflictError
from medlens.models import AnalysisStatus, UploadStatus

UPLOAD_TRANSITIONS: dict[UploadStatus, frozenset[UploadStatus]] = {
    UploadStatus.pending: frozenset({UploadStatus.completed, UploadStatus.failed}),
    UploadStatus.completed: frozenset(),
    UploadStatus.failed: frozenset(),
}

ANALYSIS_TRANSITIONS: dict[AnalysisStatus, frozenset[AnalysisStatus]] = {
    AnalysisStatus.pending: frozenset({AnalysisStatus.processing}),
    AnalysisStatus.processing: frozenset({AnalysisStatus.completed, AnalysisStatus.failed}),
    AnalysisStatus.completed: frozenset(),
    AnalysisStatus.failed: frozenset(),
}


def can_transition(table: dict, current, target) -> bool:
    return target in table.get(current, frozenset())


def is_terminal(table: dict, status) -> bool:
    return not table.get(status)


def ensure_upload_transition(current: UploadStatus, target: UploadStatus) -> None:
    if not can_transition(UPLOAD_TRANSITIONS, UploadStatus(current), target):
        raise ConflictError(f"Upload cannot move from {UploadStatus(current).value} to {target.value}")


def ensure_analysis_transition(current: AnalysisStatus, target: AnalysisStatus) -> None:
    if not can_transition(ANALYSIS_TRANSITIONS, AnalysisStatus(current), target):
        raise ConflictError(f"Analysis cannot move from {AnalysisStatus(current).value} to {target.value}")
