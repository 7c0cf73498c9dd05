from typing import Any

from sqlalchemy import insert, update
from sqlalchemy.engine import Connection

from guest_messaging.models.automation import AutomationRule, MessageTemplate


def insert_template(conn: Connection, values: dict[str, Any]) -> int:
    result = conn.execute(insert(MessageTemplate).values(**values))
    return int(result.inserted_primary_key[0])


def update_template(conn: Connection, template_id: int, values: dict[str, Any]) -> bool:
    result = conn.execute(
        update(MessageTemplate).where(MessageTemplate.id == template_id).values(**values)
    )
    return result.rowcount == 1


def insert_rule(conn: Connection, values: dict[str, Any]) -> int:
    result = conn.execute(insert(AutomationRule).values(**values))
    return int(result.inserted_primary_key[0])


def update_rule(conn: Connection, rule_id: int, values: dict[str, Any]) -> bool:
    result = conn.execute(
        update(AutomationRule).where(AutomationRule.id == rule_id).values(**values)
    )
    return result.rowcount == 1
