"""Create negotiation core tables

This migration creates:
1. user_profiles table (read-mostly mirror of the profile module)
2. campaigns + campaign_platforms tables
3. influencer_cards + influencer_card_countries tables
4. offers + offer_status_history tables
5. chat_messages table
6. notifications table
7. content_filters + moderation_queue tables

Revision ID: negotiation_core_001
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = 'negotiation_core_001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # 1. User profiles
    op.create_table('user_profiles',
        sa.Column('user_id', sa.String(36), primary_key=True),
        sa.Column('user_type', sa.String(20), nullable=False, server_default='influencer'),
        sa.Column('full_name', sa.String(255)),
        sa.Column('username', sa.String(100)),
        sa.Column('basic_info_complete', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('is_blocked', sa.Boolean, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    )

    # 2. Campaigns
    op.create_table('campaigns',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('advertiser_id', sa.String(36), sa.ForeignKey('user_profiles.user_id'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('brand', sa.String(255), nullable=False),
        sa.Column('description', sa.Text),

        # Budget
        sa.Column('budget_min', sa.Integer, server_default='0'),
        sa.Column('budget_max', sa.Integer, server_default='0'),
        sa.Column('budget_currency', sa.String(3), server_default='USD'),

        sa.Column('preferences', sa.JSON),
        sa.Column('timeline', sa.JSON),
        sa.Column('status', sa.String(20), nullable=False, server_default='draft'),
        sa.Column('moderation_status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('enable_chat', sa.Boolean, server_default=sa.false()),
        sa.Column('is_deleted', sa.Boolean, nullable=False, server_default=sa.false()),

        # Metrics
        sa.Column('metrics_applicants', sa.Integer, nullable=False, server_default='0'),
        sa.Column('metrics_accepted', sa.Integer, nullable=False, server_default='0'),
        sa.Column('metrics_impressions', sa.Integer, nullable=False, server_default='0'),
        sa.Column('metrics_engagement', sa.Integer, nullable=False, server_default='0'),

        sa.Column('created_at', sa.DateTime),
        sa.Column('updated_at', sa.DateTime),
    )
    op.create_index('ix_campaigns_advertiser_id', 'campaigns', ['advertiser_id'])

    op.create_table('campaign_platforms',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('campaign_id', sa.String(36), sa.ForeignKey('campaigns.id', ondelete='CASCADE'), nullable=False),
        sa.Column('platform', sa.String(50), nullable=False),
    )
    op.create_index('ix_campaign_platforms_campaign_id', 'campaign_platforms', ['campaign_id'])

    # 3. Influencer cards
    op.create_table('influencer_cards',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('user_profiles.user_id', ondelete='CASCADE'), nullable=False),
        sa.Column('platform', sa.String(50), nullable=False),
        sa.Column('followers', sa.Integer, nullable=False, server_default='0'),
        sa.Column('average_views', sa.Integer, server_default='0'),
        sa.Column('engagement_rate', sa.Float, server_default='0'),
        sa.Column('audience_demographics', sa.JSON),
        sa.Column('service_pricing', sa.JSON),
        sa.Column('rating', sa.Float, server_default='0'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime),
        sa.Column('updated_at', sa.DateTime),
    )
    op.create_index('ix_influencer_cards_user_id', 'influencer_cards', ['user_id'])

    op.create_table('influencer_card_countries',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('card_id', sa.String(36), sa.ForeignKey('influencer_cards.id', ondelete='CASCADE'), nullable=False),
        sa.Column('country', sa.String(100), nullable=False),
    )
    op.create_index('ix_influencer_card_countries_card_id', 'influencer_card_countries', ['card_id'])

    # 4. Offers
    op.create_table('offers',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('influencer_id', sa.String(36), sa.ForeignKey('user_profiles.user_id'), nullable=False),
        sa.Column('advertiser_id', sa.String(36), sa.ForeignKey('user_profiles.user_id'), nullable=False),
        sa.Column('campaign_id', sa.String(36), sa.ForeignKey('campaigns.id'), nullable=True),
        sa.Column('influencer_card_id', sa.String(36), sa.ForeignKey('influencer_cards.id'), nullable=True),
        sa.Column('kind', sa.String(20), nullable=False, server_default='offer'),
        sa.Column('initiated_by', sa.String(36), nullable=False),

        # Terms
        sa.Column('title', sa.String(255)),
        sa.Column('description', sa.Text),
        sa.Column('proposed_rate', sa.Float, nullable=False),
        sa.Column('currency', sa.String(3), server_default='USD'),
        sa.Column('deliverables', sa.JSON),
        sa.Column('timeline', sa.String(255), nullable=False),
        sa.Column('terms', sa.Text),

        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('moderation_status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('view_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('message_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('influencer_reviewed', sa.Boolean, server_default=sa.false()),
        sa.Column('advertiser_reviewed', sa.Boolean, server_default=sa.false()),

        # Timeline stamps
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('responded_at', sa.DateTime),
        sa.Column('accepted_at', sa.DateTime),
        sa.Column('completed_at', sa.DateTime),
        sa.Column('updated_at', sa.DateTime),
    )
    op.create_index('ix_offers_influencer_id', 'offers', ['influencer_id'])
    op.create_index('ix_offers_advertiser_id', 'offers', ['advertiser_id'])
    op.create_index('ix_offers_campaign_id', 'offers', ['campaign_id'])

    op.create_table('offer_status_history',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('offer_id', sa.String(36), sa.ForeignKey('offers.id'), nullable=False),
        sa.Column('previous_status', sa.String(20)),
        sa.Column('new_status', sa.String(20), nullable=False),
        sa.Column('changed_by', sa.String(36), nullable=False),
        sa.Column('reason', sa.Text),
        sa.Column('created_at', sa.DateTime),
    )
    op.create_index('ix_offer_status_history_offer_id', 'offer_status_history', ['offer_id'])

    # 5. Chat messages
    op.create_table('chat_messages',
        sa.Column('seq', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('id', sa.String(36), nullable=False, unique=True),
        sa.Column('sender_id', sa.String(36), nullable=False),
        sa.Column('receiver_id', sa.String(36), nullable=False),
        sa.Column('conversation_key', sa.String(80), nullable=False),
        sa.Column('content', sa.Text, nullable=False),
        sa.Column('message_type', sa.String(20), nullable=False, server_default='text'),
        sa.Column('correlation_id', sa.String(64)),
        sa.Column('metadata_json', sa.JSON),
        sa.Column('is_read', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('timestamp', sa.DateTime, nullable=False),
        sa.UniqueConstraint('sender_id', 'correlation_id', name='uq_chat_messages_sender_correlation'),
    )
    op.create_index('ix_chat_messages_sender_id', 'chat_messages', ['sender_id'])
    op.create_index('ix_chat_messages_receiver_id', 'chat_messages', ['receiver_id'])
    op.create_index('ix_chat_messages_conversation', 'chat_messages', ['conversation_key', 'seq'])

    # 6. Notifications
    op.create_table('notifications',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.Text),
        sa.Column('action_url', sa.String(500)),
        sa.Column('data', sa.JSON),
        sa.Column('read', sa.Boolean, server_default=sa.false()),
        sa.Column('read_at', sa.DateTime),
        sa.Column('created_at', sa.DateTime),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])

    # 7. Moderation
    op.create_table('content_filters',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('filter_name', sa.String(100), nullable=False),
        sa.Column('pattern', sa.String(500), nullable=False),
        sa.Column('is_regex', sa.Boolean, server_default=sa.true()),
        sa.Column('severity', sa.Integer, server_default='1'),
        sa.Column('is_active', sa.Boolean, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
    )

    op.create_table('moderation_queue',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('content_type', sa.String(50), nullable=False),
        sa.Column('content_id', sa.String(36), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('auto_flagged', sa.Boolean, server_default=sa.false()),
        sa.Column('priority', sa.Integer, server_default='1'),
        sa.Column('evidence', sa.JSON),
        sa.Column('moderated_by', sa.String(36)),
        sa.Column('moderated_at', sa.DateTime),
        sa.Column('created_at', sa.DateTime),
    )
    op.create_index('ix_moderation_queue_content_id', 'moderation_queue', ['content_id'])


def downgrade():
    op.drop_table('moderation_queue')
    op.drop_table('content_filters')
    op.drop_table('notifications')
    op.drop_table('chat_messages')
    op.drop_table('offer_status_history')
    op.drop_table('offers')
    op.drop_table('influencer_card_countries')
    op.drop_table('influencer_cards')
    op.drop_table('campaign_platforms')
    op.drop_table('campaigns')
    op.drop_table('user_profiles')
