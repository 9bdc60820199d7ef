"""
ledger_services.document_posting_registry -- unposted / failed source documents.

Responsibility:
    Read-only aggregation over a SourceDocumentProvider: for each source
    document kind, the documents in a date range whose posting status is
    UNPOSTED or POSTING_FAILED, each with its error text.

Architecture position:
    Services -- consumed exclusively by ClosingValidator.  Never mutates.
"""

from __future__ import annotations

from uuid import UUID

from ledger_kernel.domain.collaborators import DocumentPostingStatus, SourceDocumentProvider
from ledger_kernel.domain.dtos import DateRange
from ledger_kernel.models.documents import DocumentKind


class DocumentPostingRegistry:
    """Groups documents needing attention by kind.

    Every DocumentKind is present in the result; kinds without problems map
    to an empty tuple.
    """

    def __init__(self, provider: SourceDocumentProvider):
        self._provider = provider

    def unposted_or_failed(
        self,
        company_id: UUID,
        date_range: DateRange,
    ) -> dict[DocumentKind, tuple[DocumentPostingStatus, ...]]:
        grouped: dict[DocumentKind, list[DocumentPostingStatus]] = {
            kind: [] for kind in DocumentKind
        }
        for status in self._provider.posting_status(company_id, date_range):
            if status.needs_attention:
                grouped[status.kind].append(status)
        return {kind: tuple(items) for kind, items in grouped.items()}

    def outstanding_count(self, company_id: UUID, date_range: DateRange) -> int:
        return sum(len(v) for v in self.unposted_or_failed(company_id, date_range).values())
