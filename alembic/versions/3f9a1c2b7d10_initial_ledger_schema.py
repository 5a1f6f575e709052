"""initial_ledger_schema

Revision ID: 3f9a1c2b7d10
Revises:
Create Date: 2025-11-20 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID


# revision identifiers, used by Alembic.
revision: str = '3f9a1c2b7d10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


wallet_status = sa.Enum('active', 'pending', 'frozen', 'closed', name='wallet_status_enum')
transaction_type = sa.Enum(
    'payout', 'deposit', 'withdrawal', 'driver_earning', 'investment', 'refund',
    'adjustment', 'transfer_in', 'transfer_out',
    name='transaction_type_enum',
)
transaction_direction = sa.Enum('credit', 'debit', name='transaction_direction_enum')
transaction_status = sa.Enum('pending', 'completed', 'failed', name='transaction_status_enum')
asset_type = sa.Enum('vehicle', 'battery', 'cabinet', name='asset_type_enum')
token_status = sa.Enum('pending', 'active', 'transferred', 'revoked', name='token_status_enum')
revenue_source_type = sa.Enum(
    'ride', 'rental', 'swap', 'other', 'compensation', name='revenue_source_type_enum'
)
payout_status = sa.Enum('pending', 'completed', 'failed', name='payout_status_enum')
payout_batch_status = sa.Enum(
    'processing', 'pending', 'completed', 'partially_completed', 'failed',
    name='payout_batch_status_enum',
)
webhook_log_status = sa.Enum(
    'processing', 'processed', 'failed', name='webhook_log_status_enum'
)


def upgrade() -> None:
    """Upgrade schema - wallets, ownership, revenue, payouts, webhooks, audit."""

    # Wallet ledger
    op.create_table(
        'wallets',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('owner_id', sa.String(), nullable=False),
        sa.Column('address', sa.String(length=42), nullable=False),
        sa.Column('custody_ref', sa.String(), nullable=True),
        sa.Column('balance', sa.BigInteger(), nullable=False),
        sa.Column('currency', sa.String(length=8), nullable=False),
        sa.Column('lifetime_credited', sa.BigInteger(), nullable=False),
        sa.Column('lifetime_debited', sa.BigInteger(), nullable=False),
        sa.Column('status', wallet_status, nullable=False),
        sa.Column('frozen_reason', sa.Text(), nullable=True),
        sa.Column('frozen_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('balance >= 0', name='ck_wallet_balance_non_negative'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_wallets_owner_id', 'wallets', ['owner_id'], unique=True)
    op.create_index('ix_wallets_address', 'wallets', ['address'], unique=True)

    op.create_table(
        'wallet_transactions',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('wallet_id', UUID(as_uuid=True), nullable=False),
        sa.Column('reference', sa.String(), nullable=False),
        sa.Column('transaction_type', transaction_type, nullable=False),
        sa.Column('direction', transaction_direction, nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('balance_before', sa.BigInteger(), nullable=True),
        sa.Column('balance_after', sa.BigInteger(), nullable=True),
        sa.Column('status', transaction_status, nullable=False),
        sa.Column('description', sa.String(), nullable=False),
        sa.Column('service_source', sa.String(), nullable=True),
        sa.Column('initiated_by', sa.String(), nullable=True),
        sa.Column('failure_reason', sa.String(), nullable=True),
        sa.Column('txn_metadata', JSONB(), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('amount > 0', name='ck_transaction_amount_positive'),
        sa.ForeignKeyConstraint(['wallet_id'], ['wallets.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'wallet_id', 'direction', 'reference',
            name='uq_wallet_transactions_wallet_direction_reference',
        ),
    )
    op.create_index('ix_wallet_transactions_wallet_id', 'wallet_transactions', ['wallet_id'])
    op.create_index(
        'ix_wallet_transactions_wallet_created', 'wallet_transactions', ['wallet_id', 'created_at']
    )

    # Ownership registry
    op.create_table(
        'assets',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('asset_type', asset_type, nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('external_ref', sa.String(), nullable=True),
        sa.Column('original_value', sa.BigInteger(), nullable=False),
        sa.Column('current_value', sa.BigInteger(), nullable=False),
        sa.Column('is_tokenized', sa.Boolean(), nullable=False),
        sa.Column('operator_id', sa.String(), nullable=True),
        sa.Column('custody_ref', sa.String(), nullable=True),
        sa.Column('custody_status', sa.String(), nullable=True),
        sa.Column('custody_updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ownership_version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_assets_external_ref', 'assets', ['external_ref'], unique=True)
    op.create_index('ix_assets_operator_id', 'assets', ['operator_id'])

    op.create_table(
        'ownership_tokens',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('token_id', sa.String(), nullable=False),
        sa.Column('asset_id', UUID(as_uuid=True), nullable=False),
        sa.Column('owner_id', sa.String(), nullable=False),
        sa.Column('fraction_owned', sa.Numeric(7, 4), nullable=False),
        sa.Column('investment_amount', sa.BigInteger(), nullable=False),
        sa.Column('total_returns', sa.BigInteger(), nullable=False),
        sa.Column('current_value', sa.BigInteger(), nullable=False),
        sa.Column('status', token_status, nullable=False),
        sa.Column('tx_hash', sa.String(), nullable=True),
        sa.Column('chain', sa.String(), nullable=True),
        sa.Column('metadata_hash', sa.String(), nullable=True),
        sa.Column('minted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('previous_owner_id', sa.String(), nullable=True),
        sa.Column('transferred_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            'fraction_owned > 0 AND fraction_owned <= 100', name='ck_token_fraction_range'
        ),
        sa.CheckConstraint(
            'investment_amount >= 0', name='ck_token_investment_non_negative'
        ),
        sa.ForeignKeyConstraint(['asset_id'], ['assets.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_ownership_tokens_token_id', 'ownership_tokens', ['token_id'], unique=True)
    op.create_index('ix_ownership_tokens_asset_id', 'ownership_tokens', ['asset_id'])
    op.create_index('ix_ownership_tokens_owner_id', 'ownership_tokens', ['owner_id'])
    op.create_index(
        'ix_ownership_tokens_asset_status', 'ownership_tokens', ['asset_id', 'status']
    )

    # Revenue
    op.create_table(
        'revenue_events',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('asset_id', UUID(as_uuid=True), nullable=False),
        sa.Column('source_type', revenue_source_type, nullable=False),
        sa.Column('source_reference', sa.String(), nullable=False),
        sa.Column('gross_amount', sa.BigInteger(), nullable=False),
        sa.Column('investor_amount', sa.BigInteger(), nullable=False),
        sa.Column('rider_amount', sa.BigInteger(), nullable=False),
        sa.Column('management_amount', sa.BigInteger(), nullable=False),
        sa.Column('maintenance_amount', sa.BigInteger(), nullable=False),
        sa.Column('config_version', sa.String(), nullable=False),
        sa.Column('compensates_event_id', UUID(as_uuid=True), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            'investor_amount + rider_amount + management_amount + maintenance_amount'
            ' = gross_amount',
            name='ck_revenue_split_sums_to_gross',
        ),
        sa.ForeignKeyConstraint(['asset_id'], ['assets.id']),
        sa.ForeignKeyConstraint(['compensates_event_id'], ['revenue_events.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('compensates_event_id'),
        sa.UniqueConstraint('source_type', 'source_reference', name='uq_revenue_events_source'),
    )
    op.create_index('ix_revenue_events_asset_id', 'revenue_events', ['asset_id'])
    op.create_index(
        'ix_revenue_events_asset_occurred', 'revenue_events', ['asset_id', 'occurred_at']
    )

    # Payouts
    op.create_table(
        'payout_batches',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('reference', sa.String(), nullable=False),
        sa.Column('asset_id', UUID(as_uuid=True), nullable=False),
        sa.Column('total_amount', sa.BigInteger(), nullable=False),
        sa.Column('distributed_amount', sa.BigInteger(), nullable=False),
        sa.Column('currency', sa.String(length=8), nullable=False),
        sa.Column('period', sa.String(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('distributed_by', sa.String(), nullable=False),
        sa.Column('external_tx_hash', sa.String(), nullable=True),
        sa.Column('status', payout_batch_status, nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('total_amount > 0', name='ck_payout_batch_total_positive'),
        sa.ForeignKeyConstraint(['asset_id'], ['assets.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_payout_batches_reference', 'payout_batches', ['reference'], unique=True)
    op.create_index('ix_payout_batches_asset_id', 'payout_batches', ['asset_id'])

    op.create_table(
        'payouts',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('batch_id', UUID(as_uuid=True), nullable=True),
        sa.Column('owner_id', sa.String(), nullable=False),
        sa.Column('token_id', UUID(as_uuid=True), nullable=True),
        sa.Column('wallet_id', UUID(as_uuid=True), nullable=True),
        sa.Column('wallet_transaction_id', UUID(as_uuid=True), nullable=True),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('period', sa.String(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('tx_hash', sa.String(), nullable=True),
        sa.Column('status', payout_status, nullable=False),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('amount >= 0', name='ck_payout_amount_non_negative'),
        sa.ForeignKeyConstraint(['batch_id'], ['payout_batches.id']),
        sa.ForeignKeyConstraint(['token_id'], ['ownership_tokens.id']),
        sa.ForeignKeyConstraint(['wallet_id'], ['wallets.id']),
        sa.ForeignKeyConstraint(['wallet_transaction_id'], ['wallet_transactions.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token_id', 'tx_hash', name='uq_payouts_token_tx_hash'),
    )
    op.create_index('ix_payouts_batch_id', 'payouts', ['batch_id'])
    op.create_index('ix_payouts_owner_id', 'payouts', ['owner_id'])
    op.create_index('ix_payouts_token_id', 'payouts', ['token_id'])
    op.create_index('ix_payouts_tx_hash', 'payouts', ['tx_hash'])

    op.create_table(
        'webhook_logs',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('source', sa.String(), nullable=False),
        sa.Column('event_type', sa.String(), nullable=False),
        sa.Column('payload', JSONB(), nullable=True),
        sa.Column('raw_body', sa.Text(), nullable=True),
        sa.Column('payload_digest', sa.String(length=64), nullable=False),
        sa.Column('status', webhook_log_status, nullable=False),
        sa.Column('response', JSONB(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_webhook_logs_event_type', 'webhook_logs', ['event_type'])
    op.create_index('ix_webhook_logs_payload_digest', 'webhook_logs', ['payload_digest'])

    # Audit
    op.create_table(
        'audit_logs',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('entity_type', sa.String(length=32), nullable=False),
        sa.Column('entity_id', sa.String(length=64), nullable=False),
        sa.Column('action', sa.String(length=48), nullable=False),
        sa.Column('actor', sa.String(), nullable=False),
        sa.Column('before', JSONB(), nullable=True),
        sa.Column('after', JSONB(), nullable=True),
        sa.Column('reason', sa.String(), nullable=True),
        sa.Column('request_id', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_audit_logs_entity', 'audit_logs', ['entity_type', 'entity_id', 'created_at']
    )


def downgrade() -> None:
    """Downgrade schema - drop every ledger table and enum type."""
    op.drop_index('ix_audit_logs_entity', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_index('ix_webhook_logs_payload_digest', table_name='webhook_logs')
    op.drop_index('ix_webhook_logs_event_type', table_name='webhook_logs')
    op.drop_table('webhook_logs')
    op.drop_index('ix_payouts_tx_hash', table_name='payouts')
    op.drop_index('ix_payouts_token_id', table_name='payouts')
    op.drop_index('ix_payouts_owner_id', table_name='payouts')
    op.drop_index('ix_payouts_batch_id', table_name='payouts')
    op.drop_table('payouts')
    op.drop_index('ix_payout_batches_asset_id', table_name='payout_batches')
    op.drop_index('ix_payout_batches_reference', table_name='payout_batches')
    op.drop_table('payout_batches')
    op.drop_index('ix_revenue_events_asset_occurred', table_name='revenue_events')
    op.drop_index('ix_revenue_events_asset_id', table_name='revenue_events')
    op.drop_table('revenue_events')
    op.drop_index('ix_ownership_tokens_asset_status', table_name='ownership_tokens')
    op.drop_index('ix_ownership_tokens_owner_id', table_name='ownership_tokens')
    op.drop_index('ix_ownership_tokens_asset_id', table_name='ownership_tokens')
    op.drop_index('ix_ownership_tokens_token_id', table_name='ownership_tokens')
    op.drop_table('ownership_tokens')
    op.drop_index('ix_assets_operator_id', table_name='assets')
    op.drop_index('ix_assets_external_ref', table_name='assets')
    op.drop_table('assets')
    op.drop_index('ix_wallet_transactions_wallet_created', table_name='wallet_transactions')
    op.drop_index('ix_wallet_transactions_wallet_id', table_name='wallet_transactions')
    op.drop_table('wallet_transactions')
    op.drop_index('ix_wallets_address', table_name='wallets')
    op.drop_index('ix_wallets_owner_id', table_name='wallets')
    op.drop_table('wallets')

    bind = op.get_bind()
    for enum_type in (
        webhook_log_status,
        payout_batch_status,
        payout_status,
        revenue_source_type,
        token_status,
        asset_type,
        transaction_status,
        transaction_direction,
        transaction_type,
        wallet_status,
    ):
        enum_type.drop(bind, checkfirst=True)
