"""Parse Notion database, search, page, comment and user payloads."""

from typing import Any

from notionforms.models import (
    Comment,
    DatabaseSchema,
    DatabaseSummary,
    RelationPage,
    SchemaProperty,
    WorkspaceUser,
)
from notionforms.notion.codec import parse_rich_text

# Property types whose definition carries a list of options
OPTION_TYPES = ("select", "multi_select", "status")


def get_database_title(database: dict) -> str:
    """Extract a database title, falling back to "Untitled"."""
    return parse_rich_text(database.get("title")) or "Untitled"


def parse_schema_property(name: str, prop: dict[str, Any]) -> SchemaProperty:
    """Parse one entry of a database's ``properties`` object."""
    prop_type = prop.get("type", "")
    config = prop.get(prop_type) or {}

    return SchemaProperty(
        id=prop.get("id", name),
        name=name,
        type=prop_type,
        options=config.get("options") if prop_type in OPTION_TYPES else None,
        relation=config if prop_type == "relation" else None,
        rollup=config if prop_type == "rollup" else None,
        formula=config if prop_type == "formula" else None,
        format=config.get("format") if prop_type == "number" else None,
    )


def parse_database(database: dict) -> DatabaseSchema:
    """Parse a ``databases.retrieve`` response into a schema.

    Property order follows the API response.
    """
    properties = [
        parse_schema_property(name, prop)
        for name, prop in (database.get("properties") or {}).items()
    ]
    return DatabaseSchema(
        id=database["id"],
        title=get_database_title(database),
        url=database.get("url"),
        properties=properties,
    )


def parse_database_summary(database: dict) -> DatabaseSummary:
    """Parse a database entry of a search response."""
    return DatabaseSummary(
        id=database["id"],
        title=get_database_title(database),
        url=database.get("url"),
        last_edited_time=database.get("last_edited_time"),
    )


def parse_user(user: dict) -> WorkspaceUser | None:
    """Parse a workspace user; bots are not offered to forms and yield None."""
    if user.get("type") != "person":
        return None
    return WorkspaceUser(
        id=user["id"],
        name=user.get("name") or "Unknown",
        email=(user.get("person") or {}).get("email"),
        avatar_url=user.get("avatar_url"),
    )


def get_page_title(page: dict) -> str:
    """Text of a page's title property, falling back to "Untitled"."""
    for prop in (page.get("properties") or {}).values():
        if prop.get("type") == "title":
            return parse_rich_text(prop.get("title")) or "Untitled"
    return "Untitled"


def parse_relation_page(page: dict) -> RelationPage:
    return RelationPage(id=page["id"], title=get_page_title(page))


def parse_comment(comment: dict) -> Comment:
    """Parse a comment object; authors are partial users without a type."""
    author = comment.get("created_by") or {}
    rich_text = comment.get("rich_text") or []
    return Comment(
        id=comment["id"],
        discussion_id=comment.get("discussion_id"),
        created_time=comment.get("created_time"),
        created_by=WorkspaceUser(
            id=author["id"],
            name=author.get("name") or "Unknown",
            avatar_url=author.get("avatar_url"),
        )
        if author.get("id")
        else None,
        plain_text=parse_rich_text(rich_text),
        rich_text=rich_text,
    )
