"""combat sessions, combatants, turn order, action events, bosses

Revision ID: 001
Revises:
Create Date: 2026-10-16

"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )


def upgrade() -> None:
    op.create_table(
        "campaign_members",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("campaign_id", "user_id"),
    )
    op.create_index(op.f("ix_campaign_members_id"), "campaign_members", ["id"])
    op.create_index(op.f("ix_campaign_members_campaign_id"), "campaign_members", ["campaign_id"])
    op.create_index(op.f("ix_campaign_members_user_id"), "campaign_members", ["user_id"])

    op.create_table(
        "characters",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("xp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("xp_to_next", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("unspent_points", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_characters_id"), "characters", ["id"])
    op.create_index(op.f("ix_characters_campaign_id"), "characters", ["campaign_id"])
    op.create_index(op.f("ix_characters_player_id"), "characters", ["player_id"])

    op.create_table(
        "combat_sessions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=False),
        sa.Column("seed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "status",
            sa.Enum("active", "ended", name="combatstatus"),
            nullable=False,
            server_default="active",
        ),
        sa.Column("current_turn_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("turn_number", sa.Integer(), nullable=False, server_default="0"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_combat_sessions_id"), "combat_sessions", ["id"])
    op.create_index(op.f("ix_combat_sessions_campaign_id"), "combat_sessions", ["campaign_id"])

    op.create_table(
        "combatants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("combat_session_id", sa.Integer(), nullable=False),
        sa.Column(
            "entity_type",
            sa.Enum("player", "npc", "summon", name="entitytype"),
            nullable=False,
        ),
        sa.Column("player_id", sa.Integer(), nullable=True),
        sa.Column("character_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("lvl", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("offense", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("defense", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("control", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("support", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("mobility", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("utility", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("weapon_power", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("armor", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("resist", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("hp", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("hp_max", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("power", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("power_max", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("x", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("y", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_alive", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("statuses", sa.JSON(), nullable=False),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["combat_session_id"], ["combat_sessions.id"]),
        sa.ForeignKeyConstraint(["character_id"], ["characters.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_combatants_id"), "combatants", ["id"])
    op.create_index(op.f("ix_combatants_combat_session_id"), "combatants", ["combat_session_id"])

    op.create_table(
        "turn_order",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("combat_session_id", sa.Integer(), nullable=False),
        sa.Column("turn_index", sa.Integer(), nullable=False),
        sa.Column("combatant_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["combat_session_id"], ["combat_sessions.id"]),
        sa.ForeignKeyConstraint(["combatant_id"], ["combatants.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("combat_session_id", "turn_index"),
        sa.UniqueConstraint("combat_session_id", "combatant_id"),
    )
    op.create_index(op.f("ix_turn_order_id"), "turn_order", ["id"])
    op.create_index(op.f("ix_turn_order_combat_session_id"), "turn_order", ["combat_session_id"])

    op.create_table(
        "action_events",
        sa.Column("id", sa.Integer(), nullable=False, autoincrement=True),
        sa.Column("combat_session_id", sa.Integer(), nullable=False),
        sa.Column("turn_index", sa.Integer(), nullable=False),
        sa.Column("actor_combatant_id", sa.Integer(), nullable=True),
        sa.Column("event_type", sa.String(length=32), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["combat_session_id"], ["combat_sessions.id"]),
        sa.ForeignKeyConstraint(["actor_combatant_id"], ["combatants.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_action_events_id"), "action_events", ["id"])
    op.create_index(
        op.f("ix_action_events_combat_session_id"), "action_events", ["combat_session_id"]
    )

    op.create_table(
        "boss_templates",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("phases", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_boss_templates_id"), "boss_templates", ["id"])

    op.create_table(
        "boss_instances",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("combat_session_id", sa.Integer(), nullable=False),
        sa.Column("combatant_id", sa.Integer(), nullable=False),
        sa.Column("template_id", sa.Integer(), nullable=False),
        sa.Column("current_phase", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("enrage_turn", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["combat_session_id"], ["combat_sessions.id"]),
        sa.ForeignKeyConstraint(["combatant_id"], ["combatants.id"]),
        sa.ForeignKeyConstraint(["template_id"], ["boss_templates.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_boss_instances_id"), "boss_instances", ["id"])
    op.create_index(
        op.f("ix_boss_instances_combat_session_id"), "boss_instances", ["combat_session_id"]
    )


def downgrade() -> None:
    for table in (
        "boss_instances",
        "boss_templates",
        "action_events",
        "turn_order",
        "combatants",
        "combat_sessions",
        "characters",
        "campaign_members",
    ):
        op.drop_table(table)
    sa.Enum(name="entitytype").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="combatstatus").drop(op.get_bind(), checkfirst=True)
