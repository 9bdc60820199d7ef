"""
DocumentVisibilityService -- the hidden-by-period tag on source documents.

Responsibility:
    SQL implementation of DocumentVisibilityGateway.  Closing a period tags
    every source document and commission record dated inside it with
    ``hidden_by_period_id``; reopening clears the tag.  Default listings
    (DocumentSelector) skip tagged rows.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by PeriodCloseService in the close/reopen write phase.

Invariants enforced:
    - One explicit attribute per row, never per-kind boolean flags.
    - Hide never overwrites a tag already set by another period.
    - Reveal clears the tag written by this period and any stale tag on
      rows dated inside its range, so an OPEN period never hides documents.
    - Bulk UPDATE statements: the closed-period guard listeners are not
      involved because only the visibility column changes.
    - Flush-only.
"""

from uuid import UUID

from sqlalchemy import and_, or_, update

from ledger_kernel.domain.collaborators import VisibilityChange
from ledger_kernel.domain.dtos import DateRange
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.documents import CommissionRecord, SourceDocument
from ledger_kernel.services.base import BaseService

logger = get_logger("services.document_visibility")


class DocumentVisibilityService(BaseService):
    """Bulk hide / reveal of documents belonging to one period."""

    def _set_tag(self, model, where, period_id: UUID | None) -> int:
        result = self.session.execute(
            update(model)
            .where(where)
            .values(hidden_by_period_id=period_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def hide_in_range(
        self,
        company_id: UUID,
        date_range: DateRange,
        period_id: UUID,
    ) -> VisibilityChange:
        documents = self._set_tag(
            SourceDocument,
            and_(
                SourceDocument.company_id == company_id,
                SourceDocument.issue_date >= date_range.start,
                SourceDocument.issue_date <= date_range.end,
                SourceDocument.hidden_by_period_id.is_(None),
            ),
            period_id,
        )
        commissions = self._set_tag(
            CommissionRecord,
            and_(
                CommissionRecord.company_id == company_id,
                CommissionRecord.commission_date >= date_range.start,
                CommissionRecord.commission_date <= date_range.end,
                CommissionRecord.hidden_by_period_id.is_(None),
            ),
            period_id,
        )

        logger.info(
            "documents_hidden",
            extra={"documents": documents, "commissions": commissions},
        )
        return VisibilityChange(documents=documents, commissions=commissions)

    def reveal_for_period(
        self,
        company_id: UUID,
        date_range: DateRange,
        period_id: UUID,
    ) -> VisibilityChange:
        documents = self._set_tag(
            SourceDocument,
            and_(
                SourceDocument.company_id == company_id,
                or_(
                    SourceDocument.hidden_by_period_id == period_id,
                    and_(
                        SourceDocument.issue_date >= date_range.start,
                        SourceDocument.issue_date <= date_range.end,
                        SourceDocument.hidden_by_period_id.is_not(None),
                    ),
                ),
            ),
            None,
        )
        commissions = self._set_tag(
            CommissionRecord,
            and_(
                CommissionRecord.company_id == company_id,
                or_(
                    CommissionRecord.hidden_by_period_id == period_id,
                    and_(
                        CommissionRecord.commission_date >= date_range.start,
                        CommissionRecord.commission_date <= date_range.end,
                        CommissionRecord.hidden_by_period_id.is_not(None),
                    ),
                ),
            ),
            None,
        )

        logger.info(
            "documents_revealed",
            extra={"documents": documents, "commissions": commissions},
        )
        return VisibilityChange(documents=documents, commissions=commissions)
