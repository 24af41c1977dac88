"""Initial schema: users, DIDs, credentials, presentations, issuers and ledger journals

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18
"""
import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(updated: bool = True):
    columns = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)]
    if updated:
        columns.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False))
    return columns


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("birth_date", sa.Date(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_users_id", "users", ["id"])

    op.create_table(
        "dids",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("did", sa.String(), nullable=False),
        sa.Column("did_document", sa.Text(), nullable=False),
        sa.Column("private_key", sa.Text(), nullable=True),
        sa.Column("user_id", sa.String(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_dids_did", "dids", ["did"], unique=True)
    op.create_index("ix_dids_user_id", "dids", ["user_id"])

    op.create_table(
        "verifiable_credentials",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("issuer_did", sa.String(), nullable=False),
        sa.Column("subject_did", sa.String(), nullable=False),
        sa.Column("credential_type", sa.String(), nullable=False),
        sa.Column("credential_data", sa.Text(), nullable=False),
        sa.Column("issuance_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expiration_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_verifiable_credentials_issuer_did", "verifiable_credentials", ["issuer_did"])
    op.create_index("ix_verifiable_credentials_subject_did", "verifiable_credentials", ["subject_did"])
    op.create_index("ix_verifiable_credentials_status", "verifiable_credentials", ["status"])

    op.create_table(
        "verifiable_presentations",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("vp_id", sa.String(), nullable=False),
        sa.Column("holder_did", sa.String(), nullable=False),
        sa.Column("verifier", sa.String(), nullable=True),
        sa.Column("vp_hash", sa.String(), nullable=False),
        sa.Column("vp_data", sa.Text(), nullable=False),
        sa.Column("verification_result", sa.Boolean(), nullable=True),
        sa.Column("verification_reason", sa.Text(), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("ix_verifiable_presentations_vp_id", "verifiable_presentations", ["vp_id"], unique=True)
    op.create_index("ix_verifiable_presentations_holder_did", "verifiable_presentations", ["holder_did"])

    op.create_table(
        "issuers",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("did", sa.String(), sa.ForeignKey("dids.did"), nullable=False),
        sa.Column("organization", sa.String(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("did"),
    )

    # Ledger journals: one row per attempt, never updated.
    op.create_table(
        "blockchain_transactions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("did", sa.String(), sa.ForeignKey("dids.did"), nullable=False),
        sa.Column("transaction_hash", sa.String(), nullable=False),
        sa.Column("transaction_type", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_blockchain_transactions_did", "blockchain_transactions", ["did"])

    op.create_table(
        "vc_blockchain_transactions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("vc_id", sa.String(), sa.ForeignKey("verifiable_credentials.id"), nullable=False),
        sa.Column("transaction_hash", sa.String(), nullable=False),
        sa.Column("transaction_type", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_vc_blockchain_transactions_vc_id", "vc_blockchain_transactions", ["vc_id"])


def downgrade() -> None:
    op.drop_table("vc_blockchain_transactions")
    op.drop_table("blockchain_transactions")
    op.drop_table("issuers")
    op.drop_table("verifiable_presentations")
    op.drop_table("verifiable_credentials")
    op.drop_table("dids")
    op.drop_table("users")
