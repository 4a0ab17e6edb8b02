"""initial schema: reference data, users, incidents, links, history, comments, audit

Revision ID: 0001_initial
Revises:
Create Date: 2025-01-06 09:00:00
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

from conduct_log.core.constants import (
    COMMENT_VISIBILITIES,
    INCIDENT_CATEGORIES,
    INCIDENT_STATUSES,
    PERSON_ROLES,
    SEVERITIES,
    USER_ROLES,
    sql_in,
)

# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _has_table(name: str) -> bool:
    return name in sa.inspect(op.get_bind()).get_table_names()


def _id() -> sa.Column:
    return sa.Column("id", sa.String(36), primary_key=True)


def _stamps():
    return [
        sa.Column("created_at", sa.String(32), nullable=False),
        sa.Column("updated_at", sa.String(32), nullable=False),
    ]


def upgrade():
    if not _has_table("departments"):
        op.create_table(
            "departments",
            _id(),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("code", sa.String(50), nullable=True, unique=True),
            sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
            *_stamps(),
        )

    if not _has_table("teams"):
        op.create_table(
            "teams",
            _id(),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("department_id", sa.String(36), sa.ForeignKey("departments.id"), nullable=True),
            sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
            *_stamps(),
        )
        op.create_index("ix_teams_department_id", "teams", ["department_id"])

    for name in ("processes", "incident_types"):
        if not _has_table(name):
            op.create_table(
                name,
                _id(),
                sa.Column("name", sa.String(255), nullable=False),
                sa.Column("description", sa.Text, nullable=True),
                sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
                *_stamps(),
            )

    if not _has_table("users"):
        op.create_table(
            "users",
            _id(),
            sa.Column("ad_user_id", sa.String(255), nullable=True),
            sa.Column("email", sa.String(255), nullable=False),
            sa.Column("display_name", sa.String(255), nullable=False),
            sa.Column("department_id", sa.String(36), sa.ForeignKey("departments.id"), nullable=True),
            sa.Column("team_id", sa.String(36), sa.ForeignKey("teams.id"), nullable=True),
            sa.Column("role", sa.String(20), nullable=False, server_default="employee"),
            sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
            *_stamps(),
            sa.CheckConstraint(f"role IN {sql_in(USER_ROLES)}", name="ck_users_role_allowed"),
        )
        op.create_index("ix_users_email", "users", ["email"], unique=True)
        op.create_index("ix_users_department_id", "users", ["department_id"])
        op.create_index("ix_users_team_id", "users", ["team_id"])

    if not _has_table("incidents"):
        op.create_table(
            "incidents",
            _id(),
            sa.Column("incident_number", sa.String(32), nullable=False, unique=True),
            sa.Column("reporter_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("reporter_ad_user_id", sa.String(255), nullable=True),
            sa.Column("department_id", sa.String(36), sa.ForeignKey("departments.id"), nullable=False),
            sa.Column("team_id", sa.String(36), sa.ForeignKey("teams.id"), nullable=True),
            sa.Column("incident_type_id", sa.String(36), sa.ForeignKey("incident_types.id"), nullable=True),
            sa.Column("occurred_at", sa.String(32), nullable=False),
            sa.Column("reported_at", sa.String(32), nullable=False),
            sa.Column("category", sa.String(32), nullable=False),
            sa.Column("severity", sa.String(16), nullable=False, server_default="medium"),
            sa.Column("description", sa.Text, nullable=False),
            sa.Column("privacy_flag", sa.Boolean, nullable=False, server_default=sa.false()),
            sa.Column("current_status", sa.String(16), nullable=False, server_default="open"),
            sa.Column("version", sa.Integer, nullable=False, server_default="1"),
            sa.Column("hod_id", sa.String(36), sa.ForeignKey("users.id"), nullable=True),
            sa.Column("risk_owner_id", sa.String(36), sa.ForeignKey("users.id"), nullable=True),
            sa.Column("escalation_requested", sa.Boolean, nullable=False, server_default=sa.false()),
            *_stamps(),
            sa.CheckConstraint(f"current_status IN {sql_in(INCIDENT_STATUSES)}", name="ck_incidents_status_allowed"),
            sa.CheckConstraint(f"category IN {sql_in(INCIDENT_CATEGORIES)}", name="ck_incidents_category_allowed"),
            sa.CheckConstraint(f"severity IN {sql_in(SEVERITIES)}", name="ck_incidents_severity_allowed"),
        )
        for col in ("reporter_id", "department_id", "team_id", "occurred_at", "category", "severity", "current_status"):
            op.create_index(f"ix_incidents_{col}", "incidents", [col])
        op.create_index("ix_incidents_reported_at", "incidents", ["reported_at"])
        op.create_index("ix_incidents_department_status", "incidents", ["department_id", "current_status"])

    link_tables = (
        ("incident_team_links", "team_id", "teams.id"),
        ("incident_process_links", "process_id", "processes.id"),
        ("incident_person_links", "person_id", "users.id"),
    )
    for table, col, target in link_tables:
        if _has_table(table):
            continue
        extra = []
        if table == "incident_person_links":
            extra = [
                sa.Column("role", sa.String(16), nullable=False, server_default="involved"),
                sa.CheckConstraint(f"role IN {sql_in(PERSON_ROLES)}", name="ck_person_links_role_allowed"),
            ]
        op.create_table(
            table,
            _id(),
            sa.Column("incident_id", sa.String(36), sa.ForeignKey("incidents.id", ondelete="CASCADE"), nullable=False),
            sa.Column(col, sa.String(36), sa.ForeignKey(target), nullable=False),
            sa.Column("created_at", sa.String(32), nullable=False),
            *extra,
        )
        op.create_index(f"ix_{table}_incident_id", table, ["incident_id"])
        op.create_index(f"ix_{table}_{col}", table, [col])

    if not _has_table("status_history"):
        op.create_table(
            "status_history",
            _id(),
            sa.Column("incident_id", sa.String(36), sa.ForeignKey("incidents.id", ondelete="CASCADE"), nullable=False),
            sa.Column("sequence", sa.Integer, nullable=False),
            sa.Column("from_status", sa.String(16), nullable=True),
            sa.Column("to_status", sa.String(16), nullable=False),
            sa.Column("changed_by", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("reason", sa.Text, nullable=True),
            sa.Column("changed_at", sa.String(32), nullable=False),
            sa.UniqueConstraint("incident_id", "sequence", name="uq_status_history_incident_sequence"),
            sa.CheckConstraint(f"to_status IN {sql_in(INCIDENT_STATUSES)}", name="ck_status_history_to_allowed"),
            sa.CheckConstraint(
                f"from_status IS NULL OR from_status IN {sql_in(INCIDENT_STATUSES)}",
                name="ck_status_history_from_allowed",
            ),
        )
        op.create_index("ix_status_history_incident_id", "status_history", ["incident_id"])

    if not _has_table("comments"):
        op.create_table(
            "comments",
            _id(),
            sa.Column("incident_id", sa.String(36), sa.ForeignKey("incidents.id", ondelete="CASCADE"), nullable=False),
            sa.Column("author_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("parent_id", sa.String(36), nullable=True),
            sa.Column("body", sa.Text, nullable=False),
            sa.Column("visibility", sa.String(16), nullable=False, server_default="public"),
            *_stamps(),
            sa.CheckConstraint(f"visibility IN {sql_in(COMMENT_VISIBILITIES)}", name="ck_comments_visibility_allowed"),
        )
        op.create_index("ix_comments_incident_id", "comments", ["incident_id"])
        op.create_index("ix_comments_author_id", "comments", ["author_id"])

    if not _has_table("audit_log"):
        op.create_table(
            "audit_log",
            _id(),
            sa.Column("entity_type", sa.String(32), nullable=False),
            sa.Column("entity_id", sa.String(36), nullable=False),
            sa.Column("action", sa.String(32), nullable=False),
            sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("old_values", sa.Text, nullable=True),
            sa.Column("new_values", sa.Text, nullable=True),
            sa.Column("metadata", sa.Text, nullable=True),
            sa.Column("created_at", sa.String(32), nullable=False),
        )
        op.create_index("ix_audit_log_entity", "audit_log", ["entity_type", "entity_id"])
        op.create_index("ix_audit_log_user_id", "audit_log", ["user_id"])


def downgrade():
    for name in (
        "audit_log",
        "comments",
        "status_history",
        "incident_person_links",
        "incident_process_links",
        "incident_team_links",
        "incidents",
        "users",
        "incident_types",
        "processes",
        "teams",
        "departments",
    ):
        if _has_table(name):
            op.drop_table(name)
