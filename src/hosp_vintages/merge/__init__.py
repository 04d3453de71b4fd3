"""Cross-source merge: source ranking and authoritative-Version selection."""

from .registry import SourceRegistry
from .resolver import MergeResolver, issue_view, merged_view

__all__ = [
    'MergeResolver',
    'SourceRegistry',
    'issue_view',
    'merged_view',
]
