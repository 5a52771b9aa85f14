"""SQLAlchemy table definitions for the action store.

Uses SQLAlchemy Core (not ORM) for explicit control over queries
and compatibility with SQLite and PostgreSQL.

Ownership is expressed with foreign keys:
- edges, parameters and requirements die with their action (CASCADE)
- edge parameter overrides die with their edge (CASCADE)
- an action referenced as a child or by a pipeline job cannot be deleted
  at the storage level (RESTRICT); the engine checks usage first so the
  caller gets a ConflictError instead of a storage error
- audit records carry no foreign key - they outlive the action
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
)

ID_COLUMN_LENGTH = 64

# Shared metadata for all tables
metadata = MetaData()

# === Actions ===

actions_table = Table(
    "actions",
    metadata,
    Column("action_id", String(ID_COLUMN_LENGTH), primary_key=True),
    # NULL for builtin/plugin actions seeded without an owner
    Column("group_id", String(ID_COLUMN_LENGTH), index=True),
    Column("name", String(256), nullable=False),
    Column("type", String(16), nullable=False),
    Column("description", Text, nullable=False, default=""),
    Column("enabled", Boolean, nullable=False, default=True),
    Column("deprecated", Boolean, nullable=False, default=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("last_modified", DateTime(timezone=True), nullable=False),
)

# Case-insensitive name uniqueness per group, Default actions only.
# Builtin and Plugin names are global and seeded externally.
Index(
    "uq_actions_default_group_lower_name",
    actions_table.c.group_id,
    func.lower(actions_table.c.name),
    unique=True,
    sqlite_where=actions_table.c.type == "Default",
    postgresql_where=actions_table.c.type == "Default",
)

# === Declared parameters ===

action_parameters_table = Table(
    "action_parameters",
    metadata,
    Column("parameter_id", String(ID_COLUMN_LENGTH), primary_key=True),
    Column(
        "action_id",
        String(ID_COLUMN_LENGTH),
        ForeignKey("actions.action_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    # Declaration order, preserved on read
    Column("position", Integer, nullable=False),
    Column("name", String(256), nullable=False),
    Column("type", String(64), nullable=False),
    Column("value", Text, nullable=False, default=""),
    Column("description", Text, nullable=False, default=""),
    Column("advanced", Boolean, nullable=False, default=False),
    UniqueConstraint("action_id", "name"),
)

# === Requirements ===

action_requirements_table = Table(
    "action_requirements",
    metadata,
    Column("requirement_id", String(ID_COLUMN_LENGTH), primary_key=True),
    Column(
        "action_id",
        String(ID_COLUMN_LENGTH),
        ForeignKey("actions.action_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("position", Integer, nullable=False),
    Column("name", String(256), nullable=False),
    Column("type", String(32), nullable=False, index=True),
    Column("value", Text, nullable=False),
    UniqueConstraint("action_id", "name", "type"),
)

# === Edges (parent -> child bindings) ===

action_edges_table = Table(
    "action_edges",
    metadata,
    Column("edge_id", String(ID_COLUMN_LENGTH), primary_key=True),
    Column(
        "parent_id",
        String(ID_COLUMN_LENGTH),
        ForeignKey("actions.action_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column(
        "child_id",
        String(ID_COLUMN_LENGTH),
        ForeignKey("actions.action_id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    ),
    Column("exec_order", Integer, nullable=False),
    Column("enabled", Boolean, nullable=False, default=True),
    Column("optional", Boolean, nullable=False, default=False),
    Column("always_executed", Boolean, nullable=False, default=False),
    # Empty when it equals the child's name (case-insensitive)
    Column("step_name", String(256), nullable=False, default=""),
    UniqueConstraint("parent_id", "exec_order"),
)

action_edge_parameters_table = Table(
    "action_edge_parameters",
    metadata,
    Column("edge_parameter_id", String(ID_COLUMN_LENGTH), primary_key=True),
    Column(
        "edge_id",
        String(ID_COLUMN_LENGTH),
        ForeignKey("action_edges.edge_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("position", Integer, nullable=False),
    Column("name", String(256), nullable=False),
    Column("type", String(64), nullable=False),
    Column("value", Text, nullable=False, default=""),
    Column("description", Text, nullable=False, default=""),
    Column("advanced", Boolean, nullable=False, default=False),
    UniqueConstraint("edge_id", "name"),
)

# === Audit ===

action_audits_table = Table(
    "action_audits",
    metadata,
    Column("audit_id", String(ID_COLUMN_LENGTH), primary_key=True),
    Column("action_id", String(ID_COLUMN_LENGTH), nullable=False, index=True),
    Column("user_id", String(ID_COLUMN_LENGTH), nullable=False),
    Column("change", String(256), nullable=False),
    Column("versioned_at", DateTime(timezone=True), nullable=False),
    Column("action_json", Text, nullable=False),
    Column("action_hash", String(64), nullable=False),
)

# === Pipeline jobs (written by the pipeline layer, read for usage) ===

pipeline_jobs_table = Table(
    "pipeline_jobs",
    metadata,
    Column("job_id", String(ID_COLUMN_LENGTH), primary_key=True),
    Column("pipeline_id", String(ID_COLUMN_LENGTH), nullable=False, index=True),
    Column("pipeline_name", String(256), nullable=False),
    Column("stage_name", String(256), nullable=False),
    Column("job_name", String(256), nullable=False),
    Column("group_id", String(ID_COLUMN_LENGTH), nullable=False),
    Column(
        "action_id",
        String(ID_COLUMN_LENGTH),
        ForeignKey("actions.action_id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    ),
)
