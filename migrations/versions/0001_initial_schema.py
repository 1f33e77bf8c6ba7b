"""initial ops portal schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _ts(name: str) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=False), nullable=False, server_default=sa.func.current_timestamp())


def _user_fk(name: str) -> sa.Column:
    return sa.Column(name, sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)


def _entity_fk(name: str, nullable: bool = True, ondelete: str | None = "SET NULL") -> sa.Column:
    return sa.Column(name, sa.Integer(), sa.ForeignKey("entities.id", ondelete=ondelete), nullable=nullable)


def upgrade() -> None:
    # ---------- Parties ----------
    op.create_table(
        "entities",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("entity_type", sa.String(length=32), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("netsuite_id", sa.Integer(), nullable=True),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("idx_entities_type", "entities", ["entity_type"])
    op.create_index("idx_entities_name", "entities", ["name"])

    op.create_table(
        "companies",
        sa.Column("entity_id", sa.Integer(), sa.ForeignKey("entities.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("legal_name", sa.Text(), nullable=True),
        sa.Column("business_registration_number", sa.Text(), nullable=True),
        sa.Column("industry", sa.Text(), nullable=True),
        sa.Column("size", sa.String(length=64), nullable=True),
    )
    op.create_table(
        "individuals",
        sa.Column("entity_id", sa.Integer(), sa.ForeignKey("entities.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("first_name", sa.Text(), nullable=False),
        sa.Column("last_name", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("external_auth_id", sa.String(length=255), nullable=True),
    )
    op.create_table(
        "departments",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _entity_fk("manager_entity_id"),
        sa.Column(
            "parent_department_id",
            sa.Integer(),
            sa.ForeignKey("departments.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    op.create_table(
        "employees",
        sa.Column("entity_id", sa.Integer(), sa.ForeignKey("entities.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("first_name", sa.Text(), nullable=False),
        sa.Column("last_name", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("hire_date", sa.Date(), nullable=True),
        sa.Column("hr_id", sa.String(length=64), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="active"),
        sa.Column("department_id", sa.Integer(), sa.ForeignKey("departments.id", ondelete="SET NULL"), nullable=True),
        sa.Column("external_auth_id", sa.String(length=255), nullable=True),
    )
    op.create_index("idx_employees_department", "employees", ["department_id"])
    op.create_index("idx_employees_status", "employees", ["status"])

    op.create_table(
        "entity_relationships",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _entity_fk("parent_entity_id", nullable=False, ondelete="CASCADE"),
        _entity_fk("child_entity_id", nullable=False, ondelete="CASCADE"),
        sa.Column("relationship_type", sa.String(length=32), nullable=False),
        sa.Column("relationship_subtype", sa.String(length=32), nullable=True),
        _ts("created_at"),
    )
    op.create_index("idx_entity_rel_parent", "entity_relationships", ["parent_entity_id", "relationship_type"])
    op.create_index("idx_entity_rel_child", "entity_relationships", ["child_entity_id"])

    op.create_table(
        "entity_contacts",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _entity_fk("entity_id", nullable=False, ondelete="CASCADE"),
        sa.Column("contact_type", sa.String(length=32), nullable=False),
        sa.Column("contact_value", sa.Text(), nullable=False),
        sa.Column("contact_label", sa.String(length=64), nullable=False, server_default="work"),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index("idx_entity_contacts_entity", "entity_contacts", ["entity_id", "contact_type"])

    # ---------- Auth / RBAC / audit ----------
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts("created_at"),
        _entity_fk("entity_id"),
    )
    op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("key", sa.String(length=64), nullable=False, unique=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        _ts("created_at"),
    )
    op.create_table(
        "permissions",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("key", sa.String(length=128), nullable=False, unique=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        _ts("created_at"),
    )
    op.create_table(
        "user_roles",
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    )
    op.create_table(
        "role_permissions",
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
        sa.Column(
            "permission_id", sa.Integer(), sa.ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True
        ),
    )
    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _ts("created_at"),
        sa.Column("request_id", sa.String(length=64), nullable=True),
        _user_fk("actor_user_id"),
        sa.Column("actor_user_email", sa.String(length=320), nullable=True),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("entity_type", sa.String(length=128), nullable=True),
        sa.Column("entity_id", sa.String(length=128), nullable=True),
        sa.Column("reason", sa.String(length=512), nullable=True),
        sa.Column("metadata_json", sa.Text(), nullable=True),
        sa.UniqueConstraint("request_id", "id", name="uq_audit_request_id_id"),
    )

    # ---------- Catalog ----------
    op.create_table(
        "campaign_profiles",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("label", sa.Text(), nullable=True),
        sa.Column("short_description", sa.Text(), nullable=True),
        sa.Column("long_description", sa.Text(), nullable=True),
        sa.Column("criteria", sa.Text(), nullable=True),
        sa.Column("examples", sa.Text(), nullable=True),
        sa.Column("seo_growth_opportunities", sa.Text(), nullable=True),
        sa.Column("common_challenges", sa.Text(), nullable=True),
        sa.Column("campaign_considerations", sa.Text(), nullable=True),
        sa.Column("presale_considerations", sa.Text(), nullable=True),
        sa.Column("phase_one_outline", sa.Text(), nullable=True),
        sa.Column("ongoing_phase_outline", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts("created_at"),
        _ts("updated_at"),
        _user_fk("created_by_user_id"),
        _user_fk("updated_by_user_id"),
    )
    op.create_index("idx_campaign_profiles_name", "campaign_profiles", ["name"])
    op.create_index("idx_campaign_profiles_active", "campaign_profiles", ["is_active"])

    op.create_table(
        "service_categories",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("key", sa.String(length=128), nullable=False, unique=True),
        sa.Column("display_name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts("created_at"),
        _ts("updated_at"),
        _user_fk("created_by_user_id"),
        _user_fk("updated_by_user_id"),
    )
    op.create_table(
        "service_items",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("service_category", sa.String(length=128), nullable=True),
        sa.Column(
            "service_category_id",
            sa.Integer(),
            sa.ForeignKey("service_categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("service_label", sa.String(length=255), nullable=True),
        sa.Column("type", sa.String(length=16), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("sop_url", sa.Text(), nullable=True),
        sa.Column("min_pricing_usd_cents", sa.Integer(), nullable=True),
        sa.Column("est_cogs_usd_cents", sa.Integer(), nullable=True),
        sa.Column("est_time_minutes", sa.Integer(), nullable=True),
        sa.Column("recommended_price_cents", sa.Integer(), nullable=True),
        sa.Column("recommended_price_currency", sa.String(length=8), nullable=True),
        _entity_fk("partner_entity_id"),
        sa.Column("proposal_mode", sa.String(length=16), nullable=False, server_default="both"),
        sa.Column("in_stream", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts("created_at"),
        _ts("updated_at"),
        _user_fk("created_by_user_id"),
        _user_fk("updated_by_user_id"),
    )
    op.create_index("idx_service_items_name", "service_items", ["name"])
    op.create_index("idx_service_items_label", "service_items", ["service_label"])
    op.create_index("idx_service_items_partner", "service_items", ["partner_entity_id"])
    op.create_index("idx_service_items_active_mode", "service_items", ["is_active", "proposal_mode"])

    # ---------- Partners / campaigns ----------
    op.create_table(
        "campaigns",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _entity_fk("partner_entity_id", nullable=False, ondelete=None),
        _entity_fk("site_owner_entity_id"),
        sa.Column("site_url", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="prospect"),
        sa.Column("service_type", sa.String(length=32), nullable=True),
        sa.Column("profile_type", sa.String(length=32), nullable=True),
        sa.Column("budget_amount_cents", sa.Integer(), nullable=True),
        sa.Column("budget_period", sa.String(length=16), nullable=True),
        sa.Column("onboard_date", sa.Date(), nullable=True),
        _entity_fk("onboarded_by_entity_id"),
        sa.Column("campaign_start_date", sa.Date(), nullable=True),
        sa.Column("offboard_date", sa.Date(), nullable=True),
        sa.Column(
            "campaign_profile_id",
            sa.Integer(),
            sa.ForeignKey("campaign_profiles.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("is_onboarded", sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts("created_at"),
        _ts("updated_at"),
        _user_fk("created_by_user_id"),
        _user_fk("updated_by_user_id"),
    )
    op.create_index("idx_campaigns_partner", "campaigns", ["partner_entity_id"])
    op.create_index("idx_campaigns_status", "campaigns", ["status"])
    op.create_index("idx_campaigns_profile", "campaigns", ["campaign_profile_id"])

    op.create_table(
        "partners",
        sa.Column("entity_id", sa.Integer(), sa.ForeignKey("entities.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("demo_date", sa.Date(), nullable=True),
        _entity_fk("demo_by_entity_id"),
        sa.Column("msa_signed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("msa_signed_date", sa.Date(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="prospect"),
        sa.Column("partner_type", sa.String(length=32), nullable=True),
        sa.Column("acquisition_source", sa.Text(), nullable=True),
        sa.Column("total_monthly_revenue", sa.Integer(), nullable=True),
        sa.Column("available_currencies", sa.Text(), nullable=True),
        sa.Column("default_currency", sa.String(length=8), nullable=True),
        sa.Column("analytics_folder_id", sa.Text(), nullable=True),
        sa.Column("google_drive_link", sa.Text(), nullable=True),
        sa.Column("external_id", sa.String(length=64), nullable=True),
        sa.Column("is_onboarded", sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("idx_partners_status", "partners", ["status"])
    op.create_index("idx_partners_external_id", "partners", ["external_id"])

    op.create_table(
        "rules",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("campaign_id", sa.Integer(), sa.ForeignKey("campaigns.id", ondelete="SET NULL"), nullable=True),
        _entity_fk("partner_entity_id"),
        sa.Column("rule_reason", sa.Text(), nullable=False),
        sa.Column("rule_value", sa.Text(), nullable=False),
        sa.Column(
            "service_category_id",
            sa.Integer(),
            sa.ForeignKey("service_categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("service_item_id", sa.Integer(), sa.ForeignKey("service_items.id", ondelete="SET NULL"), nullable=True),
        sa.Column("reference_url", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="active"),
        _ts("created_at"),
        _ts("updated_at"),
        _user_fk("created_by_user_id"),
        _user_fk("updated_by_user_id"),
    )
    op.create_index("idx_rules_partner_status", "rules", ["partner_entity_id", "status"])

    # ---------- Notes / activity ----------
    op.create_table(
        "notes",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("entity_type", sa.String(length=32), nullable=False),
        sa.Column("note_type", sa.String(length=32), nullable=False, server_default="general"),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("is_internal", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_pinned", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_current", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("version_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("replaces_note_id", sa.Integer(), sa.ForeignKey("notes.id"), nullable=True),
        _user_fk("created_by_user_id"),
        sa.Column("conversation_id", sa.Integer(), nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("idx_notes_entity_current", "notes", ["entity_type", "entity_id", "note_type", "is_current"])
    op.create_index("idx_notes_replaces", "notes", ["replaces_note_id"])

    op.create_table(
        "activities",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _user_fk("user_id"),
        _entity_fk("partner_id"),
        sa.Column("activity_type", sa.String(length=64), nullable=False),
        _ts("activity_date"),
        sa.Column("related_table", sa.String(length=64), nullable=False),
        sa.Column("related_id", sa.Integer(), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
    )
    op.create_index("idx_activities_related", "activities", ["related_table", "related_id", "activity_date"])
    op.create_index("idx_activities_partner", "activities", ["partner_id", "activity_date"])
    op.create_index("idx_activities_user", "activities", ["user_id", "activity_date"])
    op.create_index("idx_activities_type", "activities", ["activity_type"])

    # ---------- Packages ----------
    op.create_table(
        "packages",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("monthly_price_cents", sa.Integer(), nullable=True),
        sa.Column("currency", sa.String(length=8), nullable=False, server_default="USD"),
        _entity_fk("partner_entity_id"),
        sa.Column(
            "related_campaign_profile_id",
            sa.Integer(),
            sa.ForeignKey("campaign_profiles.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("buy_without_discovery", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("type", sa.String(length=16), nullable=True),
        sa.Column("outcome", sa.Text(), nullable=True),
        sa.Column("campaign_considerations", sa.Text(), nullable=True),
        sa.Column("presale_considerations", sa.Text(), nullable=True),
        sa.Column("phase_one_outline", sa.Text(), nullable=True),
        sa.Column("ongoing_phase_outline", sa.Text(), nullable=True),
        sa.Column("seo_growth_opportunities", sa.Text(), nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
        _user_fk("created_by_user_id"),
        _user_fk("updated_by_user_id"),
    )
    op.create_index("idx_packages_partner", "packages", ["partner_entity_id"])
    op.create_index("idx_packages_profile", "packages", ["related_campaign_profile_id"])
    op.create_index("idx_packages_active", "packages", ["is_active"])

    op.create_table(
        "package_service_items",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("package_id", sa.Integer(), sa.ForeignKey("packages.id", ondelete="CASCADE"), nullable=False),
        sa.Column("service_item_id", sa.Integer(), sa.ForeignKey("service_items.id", ondelete="CASCADE"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("frequency", sa.String(length=16), nullable=False, server_default="monthly"),
        sa.Column("monthly_price_cents", sa.Integer(), nullable=True),
        sa.Column("unique_service_label", sa.String(length=255), nullable=True),
        sa.Column("order_override", sa.Integer(), nullable=True),
        _ts("created_at"),
    )
    op.create_index("idx_package_service_items_package", "package_service_items", ["package_id"])

    op.create_table(
        "package_action_items",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("package_id", sa.Integer(), sa.ForeignKey("packages.id", ondelete="CASCADE"), nullable=False),
        sa.Column("service_item_id", sa.Integer(), sa.ForeignKey("service_items.id", ondelete="CASCADE"), nullable=False),
        sa.Column("order_override", sa.Integer(), nullable=True),
        sa.Column("in_onboarding", sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts("created_at"),
    )
    op.create_index("idx_package_action_items_package", "package_action_items", ["package_id"])

    # ---------- Permission rows / templates / access ----------
    op.create_table(
        "permission_rules",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("permission_key", sa.String(length=128), nullable=False),
        sa.Column("permission_state", sa.String(length=32), nullable=False, server_default="allowed"),
        sa.Column("scope_status", sa.String(length=32), nullable=True),
        sa.Column("service_item_id", sa.Integer(), sa.ForeignKey("service_items.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "service_category_id",
            sa.Integer(),
            sa.ForeignKey("service_categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
        _entity_fk("partner_id"),
        sa.Column("campaign_id", sa.Integer(), sa.ForeignKey("campaigns.id", ondelete="SET NULL"), nullable=True),
        sa.Column("package_id", sa.Integer(), sa.ForeignKey("packages.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "campaign_profile_id",
            sa.Integer(),
            sa.ForeignKey("campaign_profiles.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("changed_by", sa.Text(), nullable=True),
        sa.Column("change_reason", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Integer(), nullable=False, server_default="1"),
        _ts("created_at"),
        _ts("updated_at"),
        _user_fk("created_by_user_id"),
        _user_fk("updated_by_user_id"),
    )
    op.create_index("idx_permission_rules_key", "permission_rules", ["permission_key"])
    op.create_index("idx_permission_rules_partner", "permission_rules", ["partner_id", "is_active"])

    op.create_table(
        "task_templates",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("key", sa.String(length=128), nullable=True),
        sa.Column("primary_participant", sa.String(length=32), nullable=True),
        sa.Column("grouping", sa.String(length=32), nullable=True),
        sa.Column("est_time_minutes", sa.Integer(), nullable=True),
        sa.Column("sop_url", sa.Text(), nullable=True),
        sa.Column("template_category", sa.String(length=64), nullable=False, server_default="default"),
        _entity_fk("partner_entity_id"),
        sa.Column(
            "campaign_profile_id",
            sa.Integer(),
            sa.ForeignKey("campaign_profiles.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "service_category_id",
            sa.Integer(),
            sa.ForeignKey("service_categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("mandatory", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("decision_point", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts("created_at"),
        _ts("updated_at"),
        _user_fk("created_by_user_id"),
        _user_fk("updated_by_user_id"),
    )
    op.create_index("idx_task_templates_type_active", "task_templates", ["type", "active"])
    op.create_index("idx_task_templates_key_partner", "task_templates", ["key", "partner_entity_id"])

    op.create_table(
        "access_items",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("username", sa.Text(), nullable=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("access_item_owner", sa.String(length=16), nullable=False, server_default="internal"),
        sa.Column("in_lastpass", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("tfa_type", sa.String(length=32), nullable=True),
        sa.Column("tfa_type_value", sa.Text(), nullable=True),
        _entity_fk("tfa_contact_id"),
        sa.Column("tfa_source", sa.String(length=16), nullable=True),
        _entity_fk("partner_entity_id"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("idx_access_items_partner", "access_items", ["partner_entity_id"])
    op.create_index("idx_access_items_active", "access_items", ["is_active"])


def downgrade() -> None:
    for table in (
        "access_items",
        "task_templates",
        "permission_rules",
        "package_action_items",
        "package_service_items",
        "packages",
        "activities",
        "notes",
        "rules",
        "partners",
        "campaigns",
        "service_items",
        "service_categories",
        "campaign_profiles",
        "audit_events",
        "role_permissions",
        "user_roles",
        "permissions",
        "roles",
        "users",
        "entity_contacts",
        "entity_relationships",
        "employees",
        "departments",
        "individuals",
        "companies",
        "entities",
    ):
        op.drop_table(table)
