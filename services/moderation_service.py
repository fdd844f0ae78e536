# Moderation Gate for Collab Marketplace
# Screens submitted text against active content filters. A flagged result
# queues the content for manual review; it never blocks creation.

import re
import logging
from dataclasses import dataclass, field
from typing import List

from sqlalchemy.orm import Session

from config.app_config import MODERATION_FLAG_SEVERITY
from database.marketplace_models import ContentFilter, ModerationQueueItem, ModerationStatusDB
from schemas.metadata import FilterMatch, FilterMatchEvidence, dump_metadata

logger = logging.getLogger(__name__)


@dataclass
class ModerationResult:
    matches: List[FilterMatch] = field(default_factory=list)
    should_flag: bool = False

    @property
    def has_violations(self) -> bool:
        return bool(self.matches)

    @property
    def priority(self) -> int:
        return max((m.severity for m in self.matches), default=1)


class ModerationGate:
    """Interface of the moderation collaborator: ``check`` then ``submit``."""

    async def check(self, content: str, content_type: str) -> ModerationResult:
        return ModerationResult()

    async def submit(self, content_type: str, content_id: str, content: str) -> str:
        """Screen ``content`` and return the moderation status to store on the record."""
        result = await self.check(content, content_type)
        return ModerationStatusDB.PENDING.value if result.should_flag else ModerationStatusDB.APPROVED.value


class ContentFilterGate(ModerationGate):
    """Gate backed by the ``content_filters`` table.

    Content is flagged when any active filter of at least ``flag_severity`` matches.
    """

    def __init__(self, db: Session, flag_severity: int = MODERATION_FLAG_SEVERITY):
        self.db = db
        self.flag_severity = flag_severity

    def _active_filters(self) -> List[ContentFilter]:
        return self.db.query(ContentFilter).filter(ContentFilter.is_active == True).all()  # noqa: E712

    async def check(self, content: str, content_type: str) -> ModerationResult:
        matches = []
        for content_filter in self._active_filters():
            pattern = content_filter.pattern if content_filter.is_regex else re.escape(content_filter.pattern)
            try:
                found = re.search(pattern, content or "", re.IGNORECASE)
            except re.error as e:
                logger.warning(f"Skipping invalid content filter {content_filter.filter_name!r}: {e}")
                continue
            if found:
                matches.append(FilterMatch(
                    filter=content_filter.filter_name,
                    match=found.group(0),
                    severity=content_filter.severity or 1,
                ))

        should_flag = any(m.severity >= self.flag_severity for m in matches)
        return ModerationResult(matches=matches, should_flag=should_flag)

    async def submit(self, content_type: str, content_id: str, content: str) -> str:
        result = await self.check(content, content_type)
        if not result.should_flag:
            return ModerationStatusDB.APPROVED.value

        self.add_to_queue(content_type, content_id, result)
        logger.info(f"{content_type} {content_id} flagged for manual review ({len(result.matches)} matches)")
        return ModerationStatusDB.PENDING.value

    def add_to_queue(self, content_type: str, content_id: str, result: ModerationResult) -> ModerationQueueItem:
        item = ModerationQueueItem(
            content_type=content_type,
            content_id=content_id,
            status=ModerationStatusDB.PENDING.value,
            auto_flagged=True,
            priority=result.priority,
            evidence=dump_metadata(FilterMatchEvidence(matches=result.matches)),
        )
        self.db.add(item)
        self.db.flush()
        return item
