from alembic import op
import sqlalchemy as sa

revision = '0001'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'groups',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.String()),
        sa.Column('created_by', sa.String(), nullable=False, index=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now())
    )
    op.create_table(
        'group_members',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('group_id', sa.String(), sa.ForeignKey('groups.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('user_id', sa.String(), nullable=False, index=True),
        sa.Column('role', sa.String(), nullable=False, server_default='member'),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('joined_at', sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint('group_id', 'user_id')
    )
    op.create_table(
        'songs',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('owner_id', sa.String(), nullable=False, index=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('artist', sa.String()),
        sa.Column('lyrics', sa.Text(), nullable=False, server_default=''),
        sa.Column('chords', sa.Text(), nullable=False, server_default='[]'),
        sa.Column('parent_song_id', sa.String(), sa.ForeignKey('songs.id'), index=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now())
    )
    op.create_table(
        'song_shares',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('group_id', sa.String(), sa.ForeignKey('groups.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('song_id', sa.String(), sa.ForeignKey('songs.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('shared_by', sa.String()),
        sa.Column('shared_at', sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint('group_id', 'song_id')
    )
    op.create_table(
        'songbooks',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('owner_id', sa.String(), nullable=False, index=True),
        sa.Column('type', sa.String(), nullable=False, server_default='private'),
        sa.Column('group_id', sa.String(), sa.ForeignKey('groups.id')),
        sa.Column('title', sa.String(), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now())
    )
    op.create_table(
        'songbook_entries',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('songbook_id', sa.String(), sa.ForeignKey('songbooks.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('song_id', sa.String(), sa.ForeignKey('songs.id'), nullable=False, index=True),
        sa.Column('order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('added_at', sa.DateTime(), server_default=sa.func.now())
    )
    op.create_table(
        'notifications',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('user_id', sa.String(), nullable=False, index=True),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('songbook_id', sa.String()),
        sa.Column('count', sa.Integer()),
        sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now())
    )
    op.create_table(
        'logs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.String()),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('metadata', sa.Text()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now())
    )

def downgrade():
    op.drop_table('logs')
    op.drop_table('notifications')
    op.drop_table('songbook_entries')
    op.drop_table('songbooks')
    op.drop_table('song_shares')
    op.drop_table('songs')
    op.drop_table('group_members')
    op.drop_table('groups')
