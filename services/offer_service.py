# Offer Lifecycle for Collab Marketplace
# Offers (advertiser proposals) and applications move through a small state
# machine. Every transition is a compare-and-set on the status column and is
# recorded as a history row, a system chat message and a notification.

import logging
import math
from typing import Dict, List, Optional, Set

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database.models import UserProfile, UserType, utcnow
from database.marketplace_models import (
    Campaign, InfluencerCard, ModerationStatusDB, Offer, OfferKindDB, OfferStatusDB, OfferStatusHistory,
)
from schemas.marketplace import OfferCreate, OfferResubmit
from schemas.metadata import OfferEventMetadata, dump_metadata
from services.chat_service import ChatService
from services.errors import (
    InvalidTransitionError, MarketplaceError, NotFoundError, PermissionDeniedError, StoreUnavailable, ValidationError,
)
from services.moderation_service import ModerationGate
from services.notification_service import NotificationService

logger = logging.getLogger(__name__)

PENDING = OfferStatusDB.PENDING.value
ACCEPTED = OfferStatusDB.ACCEPTED.value
DECLINED = OfferStatusDB.DECLINED.value
COUNTER = OfferStatusDB.COUNTER.value
INFO_REQUESTED = OfferStatusDB.INFO_REQUESTED.value
WITHDRAWN = OfferStatusDB.WITHDRAWN.value
COMPLETED = OfferStatusDB.COMPLETED.value

# Allowed source states per operation
RESPOND_FROM: Set[str] = {PENDING, COUNTER, INFO_REQUESTED}
RESPOND_TO: Set[str] = {ACCEPTED, DECLINED, COUNTER, INFO_REQUESTED}
RESUBMIT_FROM: Set[str] = {COUNTER, INFO_REQUESTED}
WITHDRAW_FROM: Set[str] = {PENDING, COUNTER, INFO_REQUESTED}
COMPLETE_FROM: Set[str] = {ACCEPTED}
TERMINAL: Set[str] = {DECLINED, WITHDRAWN, COMPLETED}

OFFER_KINDS = {k.value for k in OfferKindDB}

_SYSTEM_MESSAGES = {
    PENDING: "Offer updated and resubmitted",
    ACCEPTED: "Offer accepted",
    DECLINED: "Offer declined",
    COUNTER: "Counter offer requested",
    INFO_REQUESTED: "More information requested",
    WITHDRAWN: "Offer withdrawn",
    COMPLETED: "Collaboration marked as completed",
}


def _validate_terms(
    errors: List[str],
    proposed_rate=None,
    deliverables=None,
    timeline=None,
    description=None,
    required: bool = True,
):
    """Shared rules for the negotiable terms. With required=False only given values are checked."""
    if proposed_rate is not None or required:
        if proposed_rate is None or not math.isfinite(proposed_rate) or proposed_rate <= 0:
            errors.append("Proposed rate must be greater than 0")

    if deliverables is not None or required:
        if not deliverables:
            errors.append("At least one deliverable is required")
        elif any(not (d or "").strip() for d in deliverables):
            errors.append("Deliverables cannot be empty")

    if timeline is not None or required:
        if not (timeline or "").strip():
            errors.append("Timeline is required")

    if description is not None and len(description.strip()) < 20:
        errors.append("Description must be at least 20 characters")


def validate_offer_data(actor_id: Optional[str], data: OfferCreate) -> List[str]:
    """Collect every violated offer rule that can be checked without the store."""
    errors = []

    if not data.influencer_id:
        errors.append("Influencer ID is required")
    if not data.advertiser_id:
        errors.append("Advertiser ID is required")
    if data.influencer_id and data.influencer_id == data.advertiser_id:
        errors.append("Influencer and advertiser must be different users")
    if not actor_id:
        errors.append("Actor ID is required")
    elif actor_id not in (data.influencer_id, data.advertiser_id):
        errors.append("You must be a participant of the offer")

    if data.kind not in OFFER_KINDS:
        errors.append("Invalid offer kind")
    elif data.kind == OfferKindDB.OFFER.value and actor_id and actor_id != data.advertiser_id:
        errors.append("Only the advertiser can send an offer")

    _validate_terms(
        errors,
        proposed_rate=data.proposed_rate,
        deliverables=data.deliverables,
        timeline=data.timeline,
        description=data.description,
    )
    return errors


class OfferService:
    """
    Offer lifecycle operations. Construct per request.

    ``chat`` appends the system messages; its hub receives them after commit.
    """

    def __init__(
        self,
        db: Session,
        chat: ChatService,
        moderation: Optional[ModerationGate] = None,
        notifications: Optional[NotificationService] = None,
    ):
        self.db = db
        self.chat = chat
        self.moderation = moderation or ModerationGate()
        self.notifications = notifications or NotificationService(db)

    # =========================================================================
    # CREATE
    # =========================================================================

    async def create_offer(self, actor_id: str, data: OfferCreate) -> Offer:
        errors = validate_offer_data(actor_id, data)

        campaign = None
        try:
            self._check_party(errors, data.influencer_id, UserType.INFLUENCER, "Influencer")
            self._check_party(errors, data.advertiser_id, UserType.ADVERTISER, "Advertiser")
            if data.campaign_id:
                campaign = self.db.get(Campaign, data.campaign_id)
                if campaign is None or campaign.is_deleted:
                    errors.append(f"Campaign not found: {data.campaign_id}")
            if data.influencer_card_id:
                card = self.db.get(InfluencerCard, data.influencer_card_id)
                if card is None:
                    errors.append(f"Influencer card not found: {data.influencer_card_id}")
                elif data.influencer_id and card.user_id != data.influencer_id:
                    errors.append("Influencer card does not belong to the influencer")
        except SQLAlchemyError as e:
            raise StoreUnavailable("Failed to load offer references") from e

        if errors:
            raise ValidationError(errors)

        title = (data.title or "").strip() or (campaign.title if campaign else "Collaboration offer")
        offer = Offer(
            influencer_id=data.influencer_id,
            advertiser_id=data.advertiser_id,
            campaign_id=data.campaign_id,
            influencer_card_id=data.influencer_card_id,
            kind=data.kind,
            initiated_by=actor_id,
            title=title,
            description=data.description,
            proposed_rate=data.proposed_rate,
            currency=data.currency,
            deliverables=[d.strip() for d in data.deliverables],
            timeline=data.timeline.strip(),
            terms=data.terms,
            status=PENDING,
            moderation_status=ModerationStatusDB.APPROVED.value,
            created_at=utcnow(),
            message_count=1,
        )
        counterparty_id = offer.counterparty_of(actor_id)

        try:
            self.db.add(offer)
            self.db.flush()

            if campaign is not None:
                content = f"{offer.title} {offer.description or ''}"
                offer.moderation_status = await self.moderation.submit("offer", offer.id, content)
                if offer.moderation_status == ModerationStatusDB.PENDING.value:
                    self.notifications.notify_content_flagged(actor_id, "offer", offer.id)
                self.db.query(Campaign).filter(Campaign.id == campaign.id).update(
                    {Campaign.metrics_applicants: Campaign.metrics_applicants + 1},
                    synchronize_session=False,
                )

            self._record_history(offer.id, None, PENDING, actor_id, None)
            verb = "Application" if offer.kind == OfferKindDB.APPLICATION.value else "Offer"
            message = self.chat.add_system_message(
                actor_id,
                counterparty_id,
                f"{verb} sent: '{offer.title}' for {offer.currency} {offer.proposed_rate:,.2f}",
                metadata=dump_metadata(OfferEventMetadata(
                    offer_id=offer.id, previous_status=None, new_status=PENDING, changed_by=actor_id,
                )),
            )
            self.notifications.notify_offer_received(
                counterparty_id, offer.id, offer.title, offer.kind, offer.proposed_rate, offer.currency,
            )
            self.db.commit()
        except MarketplaceError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to create offer: {e}")
            raise StoreUnavailable("Failed to create offer") from e

        self.db.refresh(offer)
        self.chat.publish(message)
        logger.info(f"{offer.kind.title()} {offer.id} created by {actor_id} (moderation: {offer.moderation_status})")
        return offer

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    async def respond(self, offer_id: str, actor_id: str, new_status: str, reason: Optional[str] = None) -> Offer:
        """Accept, decline, counter or ask for more information."""
        offer = self._load(offer_id)
        self._require_participant(offer, actor_id)

        if new_status not in RESPOND_TO:
            raise InvalidTransitionError(
                f"Cannot respond with status '{new_status}'; allowed: {', '.join(sorted(RESPOND_TO))}",
                offer.status, new_status,
            )
        self._require_status(offer, RESPOND_FROM, new_status)
        if self._last_actor(offer) == actor_id:
            raise InvalidTransitionError(
                "You cannot respond to your own offer; wait for the other party", offer.status, new_status,
            )

        return await self._transition(offer, actor_id, new_status, reason)

    async def resubmit(self, offer_id: str, actor_id: str, changes: OfferResubmit) -> Offer:
        """Send a countered or queried offer back to pending with updated terms."""
        offer = self._load(offer_id)
        self._require_participant(offer, actor_id)
        self._require_status(offer, RESUBMIT_FROM, PENDING)
        if self._last_actor(offer) == actor_id:
            raise InvalidTransitionError(
                "Only the party that received the request can resubmit", offer.status, PENDING,
            )

        errors = []
        _validate_terms(
            errors,
            proposed_rate=changes.proposed_rate,
            deliverables=changes.deliverables,
            timeline=changes.timeline,
            description=changes.description,
            required=False,
        )
        if errors:
            raise ValidationError(errors)

        values = {}
        if changes.proposed_rate is not None:
            values[Offer.proposed_rate] = changes.proposed_rate
        if changes.deliverables is not None:
            values[Offer.deliverables] = [d.strip() for d in changes.deliverables]
        if changes.timeline is not None:
            values[Offer.timeline] = changes.timeline.strip()
        if changes.terms is not None:
            values[Offer.terms] = changes.terms
        if changes.description is not None:
            values[Offer.description] = changes.description

        return await self._transition(offer, actor_id, PENDING, changes.reason, values)

    async def withdraw(self, offer_id: str, actor_id: str, reason: Optional[str] = None) -> Offer:
        offer = self._load(offer_id)
        self._require_participant(offer, actor_id)
        if offer.initiated_by != actor_id:
            raise PermissionDeniedError("Only the party who sent the offer can withdraw it")
        self._require_status(offer, WITHDRAW_FROM, WITHDRAWN)
        return await self._transition(offer, actor_id, WITHDRAWN, reason)

    async def complete(self, offer_id: str, actor_id: str) -> Offer:
        offer = self._load(offer_id)
        self._require_participant(offer, actor_id)
        self._require_status(offer, COMPLETE_FROM, COMPLETED)
        return await self._transition(offer, actor_id, COMPLETED, None, {Offer.completed_at: utcnow()})

    async def _transition(
        self,
        offer: Offer,
        actor_id: str,
        new_status: str,
        reason: Optional[str],
        values: Optional[Dict] = None,
    ) -> Offer:
        """
        Compare-and-set ``offer`` from the status just read to ``new_status``
        and record the side effects in the same transaction.

        Raises InvalidTransitionError if another writer moved the offer first.
        """
        previous_status = offer.status
        now = utcnow()
        values = dict(values or {})
        values[Offer.status] = new_status
        values[Offer.updated_at] = now
        values[Offer.message_count] = Offer.message_count + 1
        if previous_status == PENDING:
            values[Offer.responded_at] = func.coalesce(Offer.responded_at, now)

        query = self.db.query(Offer).filter(Offer.id == offer.id, Offer.status == previous_status)
        first_accept = new_status == ACCEPTED
        if first_accept:
            values[Offer.accepted_at] = now
            query = query.filter(Offer.accepted_at.is_(None))

        counterparty_id = offer.counterparty_of(actor_id)
        try:
            updated = query.update(values, synchronize_session=False)
            if updated == 0:
                raise InvalidTransitionError(
                    f"Offer {offer.id} is no longer {previous_status}; it was changed by another request",
                    previous_status, new_status,
                )

            if first_accept and offer.campaign_id:
                self.db.query(Campaign).filter(Campaign.id == offer.campaign_id).update(
                    {Campaign.metrics_accepted: Campaign.metrics_accepted + 1},
                    synchronize_session=False,
                )

            self._record_history(offer.id, previous_status, new_status, actor_id, reason)
            content = _SYSTEM_MESSAGES[new_status]
            if reason:
                content = f"{content}: {reason}"
            message = self.chat.add_system_message(
                actor_id,
                counterparty_id,
                content,
                metadata=dump_metadata(OfferEventMetadata(
                    offer_id=offer.id,
                    previous_status=previous_status,
                    new_status=new_status,
                    changed_by=actor_id,
                )),
            )
            self.notifications.notify_offer_status(counterparty_id, offer.id, offer.title, new_status, reason)
            if new_status == COMPLETED:
                self.notifications.notify_review_available(
                    [offer.influencer_id, offer.advertiser_id], offer.id, offer.title,
                )
            self.db.commit()
        except MarketplaceError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to move offer {offer.id} to {new_status}: {e}")
            raise StoreUnavailable(f"Failed to update offer {offer.id}") from e

        self.db.refresh(offer)
        self.chat.publish(message)
        logger.info(f"Offer {offer.id}: {previous_status} -> {new_status} by {actor_id}")
        return offer

    # =========================================================================
    # READS
    # =========================================================================

    async def get_offer(self, offer_id: str, viewer_id: str) -> Offer:
        """Participants only. Views by the receiving side are counted."""
        offer = self._load(offer_id)
        self._require_participant(offer, viewer_id)

        if viewer_id != offer.initiated_by:
            try:
                self.db.query(Offer).filter(Offer.id == offer_id).update(
                    {Offer.view_count: Offer.view_count + 1},
                    synchronize_session=False,
                )
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                raise StoreUnavailable(f"Failed to record view for offer {offer_id}") from e
            self.db.refresh(offer)
        return offer

    async def list_offers(self, user_id: str, status: Optional[str] = None, role: Optional[str] = None) -> List[Offer]:
        query = self.db.query(Offer)
        if role == UserType.INFLUENCER.value:
            query = query.filter(Offer.influencer_id == user_id)
        elif role == UserType.ADVERTISER.value:
            query = query.filter(Offer.advertiser_id == user_id)
        else:
            query = query.filter(or_(Offer.influencer_id == user_id, Offer.advertiser_id == user_id))

        if status and status != "all":
            query = query.filter(Offer.status == status)

        try:
            return query.order_by(Offer.created_at.desc()).all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to list offers for {user_id}: {e}")
            raise StoreUnavailable("Failed to list offers") from e

    async def get_history(self, offer_id: str, viewer_id: str) -> List[OfferStatusHistory]:
        offer = self._load(offer_id)
        self._require_participant(offer, viewer_id)
        return (
            self.db.query(OfferStatusHistory)
            .filter(OfferStatusHistory.offer_id == offer_id)
            .order_by(OfferStatusHistory.id)
            .all()
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _load(self, offer_id: str) -> Offer:
        try:
            offer = self.db.get(Offer, offer_id)
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Failed to load offer {offer_id}") from e
        if offer is None:
            raise NotFoundError("Offer", offer_id)
        return offer

    def _check_party(self, errors: List[str], user_id: Optional[str], user_type: UserType, label: str):
        """The profile behind a participant id must exist and carry the matching role."""
        if not user_id:
            return
        profile = self.db.get(UserProfile, user_id)
        if profile is None:
            errors.append(f"{label} not found: {user_id}")
        elif profile.user_type != user_type.value:
            errors.append(f"{label} ID must belong to an {user_type.value} profile")

    @staticmethod
    def _require_participant(offer: Offer, user_id: str):
        if user_id not in (offer.influencer_id, offer.advertiser_id):
            raise PermissionDeniedError("You are not a participant of this offer")

    @staticmethod
    def _require_status(offer: Offer, allowed: Set[str], requested: str):
        if offer.status in allowed:
            return
        if offer.status in TERMINAL:
            message = f"Offer is {offer.status} and can no longer change"
        else:
            message = f"Cannot move offer from {offer.status} to {requested}"
        raise InvalidTransitionError(message, offer.status, requested)

    def _last_actor(self, offer: Offer) -> str:
        """Who made the latest move: the initiator until someone responds."""
        changed_by = (
            self.db.query(OfferStatusHistory.changed_by)
            .filter(OfferStatusHistory.offer_id == offer.id)
            .order_by(OfferStatusHistory.id.desc())
            .limit(1)
            .scalar()
        )
        return changed_by or offer.initiated_by

    def _record_history(self, offer_id, previous_status, new_status, changed_by, reason):
        self.db.add(OfferStatusHistory(
            offer_id=offer_id,
            previous_status=previous_status,
            new_status=new_status,
            changed_by=changed_by,
            reason=reason,
        ))
