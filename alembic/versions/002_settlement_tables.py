"""progression, loot, reputation, narrative memory and board tables

Revision ID: 002
Revises: 001
Create Date: 2026-10-16

"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None

RARITY = sa.Enum("magical", "unique", "legendary", name="rarity")
BOARD_TYPE = sa.Enum("town", "travel", "dungeon", "combat", name="boardtype")


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )


def upgrade() -> None:
    op.create_table(
        "progression_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("character_id", sa.Integer(), nullable=False),
        sa.Column("event_type", sa.String(length=32), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["character_id"], ["characters.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_progression_events_id"), "progression_events", ["id"])
    op.create_index(
        op.f("ix_progression_events_character_id"), "progression_events", ["character_id"]
    )

    op.create_table(
        "items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=False),
        sa.Column("owner_character_id", sa.Integer(), nullable=True),
        sa.Column("rarity", RARITY, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("item_type", sa.String(length=32), nullable=False, server_default="gear"),
        sa.Column("slot", sa.String(length=32), nullable=False),
        sa.Column("stat_mods", sa.JSON(), nullable=False),
        sa.Column("drawback", sa.JSON(), nullable=False),
        sa.Column("narrative_hook", sa.String(length=512), nullable=True),
        sa.Column("required_level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("item_power", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("bind_policy", sa.String(length=32), nullable=False, server_default="unbound"),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["owner_character_id"], ["characters.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_items_id"), "items", ["id"])
    op.create_index(op.f("ix_items_campaign_id"), "items", ["campaign_id"])

    op.create_table(
        "inventory",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("character_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("container", sa.String(length=32), nullable=False, server_default="backpack"),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.ForeignKeyConstraint(["character_id"], ["characters.id"]),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_inventory_id"), "inventory", ["id"])
    op.create_index(op.f("ix_inventory_character_id"), "inventory", ["character_id"])

    op.create_table(
        "loot_drops",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=False),
        sa.Column("combat_session_id", sa.Integer(), nullable=False),
        sa.Column("source", sa.String(length=32), nullable=False),
        sa.Column("rarity", RARITY, nullable=False),
        sa.Column("budget_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("item_ids", sa.JSON(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["combat_session_id"], ["combat_sessions.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_loot_drops_id"), "loot_drops", ["id"])
    op.create_index(op.f("ix_loot_drops_combat_session_id"), "loot_drops", ["combat_session_id"])

    op.create_table(
        "factions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_factions_id"), "factions", ["id"])
    op.create_index(op.f("ix_factions_campaign_id"), "factions", ["campaign_id"])

    op.create_table(
        "faction_reputation",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=False),
        sa.Column("faction_id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("rep", sa.Integer(), nullable=False, server_default="0"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["faction_id"], ["factions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("campaign_id", "faction_id", "player_id"),
    )
    op.create_index(op.f("ix_faction_reputation_id"), "faction_reputation", ["id"])
    op.create_index(
        op.f("ix_faction_reputation_campaign_id"), "faction_reputation", ["campaign_id"]
    )

    op.create_table(
        "reputation_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=False),
        sa.Column("faction_id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("severity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("delta", sa.Integer(), nullable=False),
        sa.Column("evidence", sa.JSON(), nullable=False),
        _timestamp("occurred_at"),
        sa.ForeignKeyConstraint(["faction_id"], ["factions.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_reputation_events_id"), "reputation_events", ["id"])
    op.create_index(
        op.f("ix_reputation_events_campaign_id"), "reputation_events", ["campaign_id"]
    )

    op.create_table(
        "narrative_memory_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(length=64), nullable=False),
        sa.Column("severity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("payload", sa.JSON(), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_narrative_memory_events_id"), "narrative_memory_events", ["id"])
    op.create_index(
        op.f("ix_narrative_memory_events_campaign_id"), "narrative_memory_events", ["campaign_id"]
    )

    op.create_table(
        "boards",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=False),
        sa.Column("board_type", BOARD_TYPE, nullable=False),
        sa.Column(
            "status",
            sa.Enum("active", "archived", "paused", name="boardstatus"),
            nullable=False,
            server_default="active",
        ),
        sa.Column("state", sa.JSON(), nullable=False),
        sa.Column("combat_session_id", sa.Integer(), nullable=True),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["combat_session_id"], ["combat_sessions.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_boards_id"), "boards", ["id"])
    op.create_index(op.f("ix_boards_campaign_id"), "boards", ["campaign_id"])

    op.create_table(
        "board_transitions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=False),
        sa.Column("from_board_type", BOARD_TYPE, nullable=True),
        sa.Column("to_board_type", BOARD_TYPE, nullable=False),
        sa.Column("reason", sa.String(length=64), nullable=False),
        sa.Column("animation", sa.String(length=32), nullable=False, server_default="page_turn"),
        sa.Column("payload", sa.JSON(), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_board_transitions_id"), "board_transitions", ["id"])
    op.create_index(
        op.f("ix_board_transitions_campaign_id"), "board_transitions", ["campaign_id"]
    )


def downgrade() -> None:
    for table in (
        "board_transitions",
        "boards",
        "narrative_memory_events",
        "reputation_events",
        "faction_reputation",
        "factions",
        "loot_drops",
        "inventory",
        "items",
        "progression_events",
    ):
        op.drop_table(table)
    for enum_name in ("boardstatus", "boardtype", "rarity"):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
