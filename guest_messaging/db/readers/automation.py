from typing import Any, Optional

from sqlalchemy import or_, select
from sqlalchemy.engine import Connection

from guest_messaging.models.automation import AutomationRule, MessageTemplate


def get_active_rules_for_property(conn: Connection, property_id: int) -> list[dict[str, Any]]:
    """
    Enabled rules applicable to a property, joined with their enabled template.

    Global rules (property_id NULL) are included. Rules whose template is
    disabled are left out.

    Returns:
        list[dict[str, Any]]: Rule columns plus template_content, template_subject
    """
    rows = conn.execute(
        select(
            AutomationRule,
            MessageTemplate.content.label("template_content"),
            MessageTemplate.subject.label("template_subject"),
        )
        .join(MessageTemplate, MessageTemplate.id == AutomationRule.template_id)
        .where(
            AutomationRule.enabled.is_(True),
            MessageTemplate.enabled.is_(True),
            or_(AutomationRule.property_id == property_id, AutomationRule.property_id.is_(None)),
        )
        .order_by(AutomationRule.id)
    ).mappings()
    return [dict(r) for r in rows]


def get_rule(conn: Connection, rule_id: int) -> Optional[dict[str, Any]]:
    row = conn.execute(select(AutomationRule).where(AutomationRule.id == rule_id)).mappings().first()
    return dict(row) if row else None


def list_rules(conn: Connection, property_id: Optional[int] = None) -> list[dict[str, Any]]:
    stmt = select(AutomationRule).order_by(AutomationRule.id)
    if property_id is not None:
        stmt = stmt.where(
            or_(AutomationRule.property_id == property_id, AutomationRule.property_id.is_(None))
        )
    return [dict(r) for r in conn.execute(stmt).mappings()]


def get_template(conn: Connection, template_id: int) -> Optional[dict[str, Any]]:
    row = (
        conn.execute(select(MessageTemplate).where(MessageTemplate.id == template_id))
        .mappings()
        .first()
    )
    return dict(row) if row else None


def list_templates(conn: Connection) -> list[dict[str, Any]]:
    rows = conn.execute(select(MessageTemplate).order_by(MessageTemplate.id)).mappings()
    return [dict(r) for r in rows]
