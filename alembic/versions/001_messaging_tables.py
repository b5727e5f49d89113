"""Messaging tables: connections, conversations, messages, read receipts

Revision ID: 001
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001'
down_revision = None  # This is the first migration
branch_labels = None
depends_on = None


def upgrade():
    # Local projection of the alumni directory
    op.create_table('users',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=20), server_default='student', nullable=False),
        sa.Column('is_verified', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('batch', sa.Integer(), nullable=True),
        sa.Column('profile_url', sa.String(length=500), nullable=True),
        sa.Column('current_company', sa.String(length=255), nullable=True),
        sa.Column('current_position', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table('connection_requests',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('from_user_id', sa.String(length=64), nullable=False),
        sa.Column('to_user_id', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=20), server_default='pending', nullable=False),
        sa.Column('message', sa.String(length=300), server_default='', nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['from_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['to_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('from_user_id', 'to_user_id', name='uq_connection_request_pair'),
    )
    op.create_index('ix_connection_requests_from_user_id', 'connection_requests', ['from_user_id'])
    op.create_index('ix_connection_requests_to_user_id', 'connection_requests', ['to_user_id'])
    op.create_index('ix_connection_requests_status', 'connection_requests', ['status'])

    op.create_table('connections',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user1_id', sa.String(length=64), nullable=False),
        sa.Column('user2_id', sa.String(length=64), nullable=False),
        sa.Column('connection_type', sa.String(length=20), server_default='alumni', nullable=False),
        sa.Column('connected_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user1_id'], ['users.id']),
        sa.ForeignKeyConstraint(['user2_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user1_id', 'user2_id', name='uq_connection_pair'),
        sa.CheckConstraint('user1_id < user2_id', name='ck_connection_pair_order'),
    )
    op.create_index('ix_connections_user1_id', 'connections', ['user1_id'])
    op.create_index('ix_connections_user2_id', 'connections', ['user2_id'])

    # Two-party conversations, participants stored in sorted order
    op.create_table('conversations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('participant_a', sa.String(length=64), nullable=False),
        sa.Column('participant_b', sa.String(length=64), nullable=False),
        sa.Column('last_message_id', sa.Uuid(), nullable=True),
        sa.Column('last_message_time', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('participant_a', 'participant_b', name='uq_conversation_pair'),
        sa.CheckConstraint('participant_a < participant_b', name='ck_conversation_pair_order'),
    )
    op.create_index('ix_conversations_participant_a', 'conversations', ['participant_a'])
    op.create_index('ix_conversations_participant_b', 'conversations', ['participant_b'])
    op.create_index('ix_conversations_last_message_time', 'conversations', ['last_message_time'])

    op.create_table('conversation_unread',
        sa.Column('conversation_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('count', sa.Integer(), server_default='0', nullable=False),
        sa.ForeignKeyConstraint(['conversation_id'], ['conversations.id']),
        sa.PrimaryKeyConstraint('conversation_id', 'user_id'),
    )

    op.create_table('messages',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('conversation_id', sa.Uuid(), nullable=False),
        sa.Column('sender_id', sa.String(length=64), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('message_type', sa.String(length=10), server_default='text', nullable=False),
        sa.Column('is_edited', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('edited_at', sa.DateTime(), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['conversation_id'], ['conversations.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    # History pages are read newest-first per conversation
    op.create_index('ix_messages_conversation_created', 'messages', ['conversation_id', 'created_at'])
    op.create_index('ix_messages_sender_id', 'messages', ['sender_id'])
    op.create_index('ix_messages_is_deleted', 'messages', ['is_deleted'])

    op.create_table('message_reads',
        sa.Column('message_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('read_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['message_id'], ['messages.id']),
        sa.PrimaryKeyConstraint('message_id', 'user_id'),
    )


def downgrade():
    op.drop_table('message_reads')

    op.drop_index('ix_messages_is_deleted', table_name='messages')
    op.drop_index('ix_messages_sender_id', table_name='messages')
    op.drop_index('ix_messages_conversation_created', table_name='messages')
    op.drop_table('messages')

    op.drop_table('conversation_unread')

    op.drop_index('ix_conversations_last_message_time', table_name='conversations')
    op.drop_index('ix_conversations_participant_b', table_name='conversations')
    op.drop_index('ix_conversations_participant_a', table_name='conversations')
    op.drop_table('conversations')

    op.drop_index('ix_connections_user2_id', table_name='connections')
    op.drop_index('ix_connections_user1_id', table_name='connections')
    op.drop_table('connections')

    op.drop_index('ix_connection_requests_status', table_name='connection_requests')
    op.drop_index('ix_connection_requests_to_user_id', table_name='connection_requests')
    op.drop_index('ix_connection_requests_from_user_id', table_name='connection_requests')
    op.drop_table('connection_requests')

    op.drop_index('ix_users_email', table_name='users')
    op.drop_index('ix_users_id', table_name='users')
    op.drop_table('users')
