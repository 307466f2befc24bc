from .audit import AuditLogger, HistoryPage, HistoryRecord
from .diff import compute_field_diff
from .snapshots import decode_snapshot, encode_snapshot, snapshot_of

__all__ = [
    "AuditLogger",
    "HistoryPage",
    "HistoryRecord",
    "compute_field_diff",
    "decode_snapshot",
    "encode_snapshot",
    "snapshot_of",
]
