"""storage-level guards for witness lists, roster residency and roll status

Revision ID: 0002_witness_guards
Revises: 0001_campaign_core
Create Date: 2026-10-18

- posts.witnesses_json changes only on draft submission or unhide (empty -> non-empty)
- posts never return to draft; scene/character/user/seq are fixed once set
- scene_roster rows are insert/delete only, same campaign, no archived characters
- rolls leave 'pending' at most once
"""
from __future__ import annotations

from alembic import op

revision = "0002_witness_guards"
down_revision = "0001_campaign_core"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute(
        """
        CREATE TRIGGER IF NOT EXISTS trg_posts_witnesses_guard
        BEFORE UPDATE OF witnesses_json ON posts
        WHEN OLD.witnesses_json IS NOT NEW.witnesses_json
          AND NOT (OLD.is_draft = 1 AND NEW.is_draft = 0)
          AND NOT (
            OLD.is_draft = 0 AND NEW.is_draft = 0
            AND json_array_length(OLD.witnesses_json) = 0
            AND json_array_length(NEW.witnesses_json) > 0
          )
        BEGIN
          SELECT RAISE(ABORT, 'witness lists are immutable once set (except unhide)');
        END;
        """
    )
    op.execute(
        """
        CREATE TRIGGER IF NOT EXISTS trg_posts_no_redraft
        BEFORE UPDATE OF is_draft ON posts
        WHEN OLD.is_draft = 0 AND NEW.is_draft = 1
        BEGIN
          SELECT RAISE(ABORT, 'submitted posts cannot return to draft');
        END;
        """
    )
    op.execute(
        """
        CREATE TRIGGER IF NOT EXISTS trg_posts_core_immutable
        BEFORE UPDATE ON posts
        WHEN OLD.scene_id IS NOT NEW.scene_id
          OR OLD.character_id IS NOT NEW.character_id
          OR OLD.user_id IS NOT NEW.user_id
          OR (OLD.seq IS NOT NULL AND OLD.seq IS NOT NEW.seq)
        BEGIN
          SELECT RAISE(ABORT, 'post authorship and ordering are immutable');
        END;
        """
    )

    op.execute(
        """
        CREATE TRIGGER IF NOT EXISTS trg_scene_roster_no_update
        BEFORE UPDATE ON scene_roster
        BEGIN
          SELECT RAISE(ABORT, 'scene_roster rows are insert/delete only');
        END;
        """
    )
    op.execute(
        """
        CREATE TRIGGER IF NOT EXISTS trg_scene_roster_same_campaign
        BEFORE INSERT ON scene_roster
        WHEN (SELECT campaign_id FROM characters WHERE id = NEW.character_id)
             IS NOT (SELECT campaign_id FROM scenes WHERE id = NEW.scene_id)
        BEGIN
          SELECT RAISE(ABORT, 'character and scene belong to different campaigns');
        END;
        """
    )
    op.execute(
        """
        CREATE TRIGGER IF NOT EXISTS trg_scene_roster_not_archived
        BEFORE INSERT ON scene_roster
        WHEN (SELECT is_archived FROM characters WHERE id = NEW.character_id) = 1
        BEGIN
          SELECT RAISE(ABORT, 'archived characters cannot join a scene');
        END;
        """
    )

    op.execute(
        """
        CREATE TRIGGER IF NOT EXISTS trg_rolls_status_one_way
        BEFORE UPDATE OF status ON rolls
        WHEN OLD.status <> 'pending' AND NEW.status IS NOT OLD.status
        BEGIN
          SELECT RAISE(ABORT, 'resolved rolls cannot change status');
        END;
        """
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS trg_rolls_status_one_way;")
    op.execute("DROP TRIGGER IF EXISTS trg_scene_roster_not_archived;")
    op.execute("DROP TRIGGER IF EXISTS trg_scene_roster_same_campaign;")
    op.execute("DROP TRIGGER IF EXISTS trg_scene_roster_no_update;")
    op.execute("DROP TRIGGER IF EXISTS trg_posts_core_immutable;")
    op.execute("DROP TRIGGER IF EXISTS trg_posts_no_redraft;")
    op.execute("DROP TRIGGER IF EXISTS trg_posts_witnesses_guard;")
