"""campaign core: campaigns/members/characters/scenes/roster/posts/rolls/notifications

Revision ID: 0001_campaign_core
Revises:
Create Date: 2026-10-18

- posts.witnesses_json is a canonical JSON array of character ids (sorted, unique)
- scene_roster keyed by character_id: a character sits in at most one scene
- CHECKs pin the draft/hidden/witness shape of a post row
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_campaign_core"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ---- campaigns ----
    op.create_table(
        "campaigns",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("current_phase", sa.Text(), nullable=False, server_default="gm_phase"),  # gm_phase|pc_phase
        sa.Column("created_by", sa.Text(), nullable=False),
        sa.Column("created_at", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.Text(), nullable=False),
        sa.CheckConstraint("current_phase IN ('gm_phase', 'pc_phase')", name="ck_campaigns_phase"),
    )

    op.create_table(
        "campaign_members",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("campaign_id", sa.Text(), sa.ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("role", sa.Text(), nullable=False),  # gm|player
        sa.Column("created_at", sa.Text(), nullable=False),
        sa.CheckConstraint("role IN ('gm', 'player')", name="ck_campaign_members_role"),
        sa.UniqueConstraint("campaign_id", "user_id", name="uq_campaign_members_campaign_user"),
    )
    op.create_index("ix_campaign_members_user_id", "campaign_members", ["user_id"])

    # ---- characters ----
    op.create_table(
        "characters",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("campaign_id", sa.Text(), sa.ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False),
        sa.Column("display_name", sa.Text(), nullable=False),
        sa.Column("character_type", sa.Text(), nullable=False, server_default="pc"),  # pc|npc
        sa.Column("owner_user_id", sa.Text(), nullable=True),
        sa.Column("is_archived", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.Text(), nullable=False),
        sa.CheckConstraint("character_type IN ('pc', 'npc')", name="ck_characters_type"),
    )
    op.create_index("ix_characters_campaign_id", "characters", ["campaign_id"])
    op.create_index("ix_characters_owner_user_id", "characters", ["owner_user_id"])

    # ---- scenes ----
    op.create_table(
        "scenes",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("campaign_id", sa.Text(), sa.ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_archived", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.Text(), nullable=False),
    )
    op.create_index("ix_scenes_campaign_id", "scenes", ["campaign_id"])

    # one row per present character; PK on character_id = single residency
    op.create_table(
        "scene_roster",
        sa.Column("character_id", sa.Text(), sa.ForeignKey("characters.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("scene_id", sa.Text(), sa.ForeignKey("scenes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("added_at", sa.Text(), nullable=False),
    )
    op.create_index("ix_scene_roster_scene_id", "scene_roster", ["scene_id"])

    # ---- posts ----
    op.create_table(
        "posts",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("scene_id", sa.Text(), sa.ForeignKey("scenes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("character_id", sa.Text(), sa.ForeignKey("characters.id"), nullable=True),  # NULL = narrator
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("seq", sa.Integer(), nullable=True),  # assigned on submission
        sa.Column("blocks_json", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("ooc_text", sa.Text(), nullable=True),
        sa.Column("witnesses_json", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("is_hidden", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_draft", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.Text(), nullable=False),
        sa.CheckConstraint("json_valid(witnesses_json) AND json_type(witnesses_json) = 'array'", name="ck_posts_witnesses_array"),
        sa.CheckConstraint("is_draft = 0 OR json_array_length(witnesses_json) = 0", name="ck_posts_draft_no_witnesses"),
        sa.CheckConstraint(
            "is_draft = 1 OR is_hidden = (json_array_length(witnesses_json) = 0)",
            name="ck_posts_hidden_iff_empty",
        ),
        sa.CheckConstraint("(is_draft = 1) = (seq IS NULL)", name="ck_posts_seq_on_submit"),
        sa.UniqueConstraint("scene_id", "seq", name="uq_posts_scene_seq"),
    )
    op.create_index("ix_posts_scene_id", "posts", ["scene_id"])
    op.create_index("ix_posts_user_id", "posts", ["user_id"])
    op.execute(
        """
        CREATE INDEX IF NOT EXISTS ix_posts_hidden_scene
        ON posts(scene_id, seq)
        WHERE is_hidden = 1 AND is_draft = 0;
        """
    )

    # ---- rolls ----
    op.create_table(
        "rolls",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("post_id", sa.Text(), sa.ForeignKey("posts.id", ondelete="SET NULL"), nullable=True),
        sa.Column("scene_id", sa.Text(), sa.ForeignKey("scenes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("character_id", sa.Text(), sa.ForeignKey("characters.id", ondelete="CASCADE"), nullable=False),
        sa.Column("requested_by", sa.Text(), nullable=True),
        sa.Column("intention", sa.Text(), nullable=False),
        sa.Column("modifier", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("dice_type", sa.Text(), nullable=False),
        sa.Column("dice_count", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("result_json", sa.Text(), nullable=True),
        sa.Column("total", sa.Integer(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),  # pending|completed|invalidated
        sa.Column("created_at", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.Text(), nullable=False),
        sa.CheckConstraint("status IN ('pending', 'completed', 'invalidated')", name="ck_rolls_status"),
    )
    op.create_index("ix_rolls_post_id", "rolls", ["post_id"])
    op.create_index("ix_rolls_scene_id_status", "rolls", ["scene_id", "status"])

    # ---- notifications (in-app inbox) ----
    op.create_table(
        "notifications",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("event_kind", sa.Text(), nullable=False),
        sa.Column("payload_json", sa.Text(), nullable=False),
        sa.Column("is_read", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.Text(), nullable=False),
    )
    op.create_index("ix_notifications_user_id_created_at", "notifications", ["user_id", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_notifications_user_id_created_at", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("ix_rolls_scene_id_status", table_name="rolls")
    op.drop_index("ix_rolls_post_id", table_name="rolls")
    op.drop_table("rolls")

    op.execute("DROP INDEX IF EXISTS ix_posts_hidden_scene;")
    op.drop_index("ix_posts_user_id", table_name="posts")
    op.drop_index("ix_posts_scene_id", table_name="posts")
    op.drop_table("posts")

    op.drop_index("ix_scene_roster_scene_id", table_name="scene_roster")
    op.drop_table("scene_roster")

    op.drop_index("ix_scenes_campaign_id", table_name="scenes")
    op.drop_table("scenes")

    op.drop_index("ix_characters_owner_user_id", table_name="characters")
    op.drop_index("ix_characters_campaign_id", table_name="characters")
    op.drop_table("characters")

    op.drop_index("ix_campaign_members_user_id", table_name="campaign_members")
    op.drop_table("campaign_members")

    op.drop_table("campaigns")
