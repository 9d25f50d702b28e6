"""Form operations against a Notion database."""

import logging
from collections.abc import AsyncIterator, Iterable, Mapping
from typing import Any

from notionforms.exceptions import (
    ConfigurationError,
    FormPermissionError,
    SubmissionValidationError,
)
from notionforms.models import (
    Comment,
    DatabaseSchema,
    FieldDefinition,
    FormConfig,
    FormContext,
    PageRow,
    RelationPageList,
    RowPage,
    SubmissionResult,
)
from notionforms.notion.client import MAX_PAGE_SIZE, NotionClient
from notionforms.notion.codec import (
    EncodedProperties,
    FieldSubmission,
    decode_page_properties,
    encode_properties,
)
from notionforms.notion.filters import compile_filters
from notionforms.notion.schema import (
    get_page_title,
    parse_comment,
    parse_database,
    parse_relation_page,
)
from notionforms.validation import apply_defaults, validate_submission

logger = logging.getLogger(__name__)


def page_to_row(page: dict) -> PageRow:
    """Decode a raw Notion page into a row keyed by property id."""
    return PageRow(
        id=page["id"],
        url=page.get("url"),
        created_time=page.get("created_time"),
        last_edited_time=page.get("last_edited_time"),
        properties=decode_page_properties(page.get("properties", {})),
    )


class FormService:
    """Serves one published form: list, read, create and edit rows.

    The database schema is fetched again before every write so that
    properties renamed in Notion after the form was configured still resolve.
    """

    def __init__(self, notion_client: NotionClient, form: FormConfig):
        self.notion_client = notion_client
        self.form = form
        self._titles: dict[str, str] = {}

    async def load_schema(self) -> DatabaseSchema:
        """Fetch the current schema of the form's database."""
        database = await self.notion_client.get_database(self.form.database_id)
        return parse_database(database)

    def query_filter(self) -> dict | None:
        return compile_filters(self.form.filters)

    def _require(self, allowed: bool, action: str) -> None:
        if not allowed:
            raise FormPermissionError(f"Form '{self.form.name}' does not allow {action}")

    # ==================== Read ====================

    def _sorts(self) -> list[dict] | None:
        return [sort.model_dump() for sort in self.form.sorts] or None

    async def list_rows(
        self,
        start_cursor: str | None = None,
        page_size: int | None = None,
    ) -> RowPage:
        """List one page of rows matching the form's filters and sorts."""
        self._require(self.form.permissions.allow_list, "listing rows")

        size = min(page_size or self.form.page_size, MAX_PAGE_SIZE)
        data = await self.notion_client.query_database(
            self.form.database_id,
            filter=self.query_filter(),
            sorts=self._sorts(),
            page_size=size,
            start_cursor=start_cursor,
        )

        rows = [page_to_row(page) for page in data.get("results", [])]
        logger.info(f"Listed {len(rows)} rows from database {self.form.database_id}")
        return RowPage(
            rows=rows,
            has_more=data.get("has_more", False),
            next_cursor=data.get("next_cursor"),
        )

    async def iter_rows(self) -> AsyncIterator[PageRow]:
        """Iterate over every row matching the form's filters and sorts."""
        self._require(self.form.permissions.allow_list, "listing rows")
        async for page in self.notion_client.query_database_all(
            self.form.database_id, filter=self.query_filter(), sorts=self._sorts()
        ):
            yield page_to_row(page)

    async def get_row(self, page_id: str) -> PageRow:
        page = await self.notion_client.get_page(page_id)
        return page_to_row(page)

    # ==================== Relations ====================

    async def relation_database_id(self, property_id: str) -> str:
        """Database targeted by one of the form's relation fields."""
        field = self.form.get_field(property_id)
        if field is None or field.property_type != "relation":
            raise ConfigurationError(f"'{property_id}' is not a relation field of this form")

        prop = (await self.load_schema()).get_property(property_id)
        database_id = ((prop.relation if prop else None) or {}).get("database_id")
        if not database_id:
            raise ConfigurationError(f"Relation property '{property_id}' no longer exists")
        return database_id

    async def list_relation_pages(
        self,
        database_id: str,
        search: str | None = None,
        page_size: int = 50,
    ) -> RelationPageList:
        """Pages of a related database offered by a relation picker.

        ``search`` matches page titles case-insensitively within the fetched
        page of results.
        """
        data = await self.notion_client.query_database(
            database_id, page_size=min(page_size, MAX_PAGE_SIZE)
        )
        pages = [parse_relation_page(page) for page in data.get("results", [])]
        for page in pages:
            self._titles[page.id] = page.title
        if search:
            needle = search.lower()
            pages = [page for page in pages if needle in page.title.lower()]
        return RelationPageList(pages=pages, has_more=data.get("has_more", False))

    async def relation_titles(self, page_ids: Iterable[str]) -> dict[str, str]:
        """Titles of related pages, fetched once per page id."""
        titles = {}
        for page_id in page_ids:
            if page_id not in self._titles:
                page = await self.notion_client.get_page(page_id)
                self._titles[page_id] = get_page_title(page)
            titles[page_id] = self._titles[page_id]
        return titles

    # ==================== Comments ====================

    async def list_comments(self, page_id: str) -> list[Comment]:
        comments = await self.notion_client.list_comments(page_id)
        return [parse_comment(comment) for comment in comments]

    async def add_comment(
        self,
        page_id: str,
        content: str,
        discussion_id: str | None = None,
    ) -> Comment:
        """Comment on a row, or reply to an existing discussion."""
        if not content or not content.strip():
            raise SubmissionValidationError({"comment": "Comment text is required"})
        comment = await self.notion_client.create_comment(page_id, content, discussion_id)
        logger.info(f"Added comment {comment['id']} to page {page_id}")
        return parse_comment(comment)

    # ==================== Write ====================

    def _check_values(self, fields: list[FieldDefinition], values: Mapping[str, Any]) -> None:
        errors = validate_submission(fields, values)
        if errors:
            logger.info(f"Rejected submission for form '{self.form.name}': {errors}")
            raise SubmissionValidationError(errors)

    async def _encode(self, submissions: list[FieldSubmission]) -> EncodedProperties:
        schema = await self.load_schema()
        current_types = schema.id_to_type()
        for submission in submissions:
            current = current_types.get(submission.property_id)
            if current is not None and current != submission.property_type:
                logger.warning(
                    f"Property {submission.property_id} is configured as "
                    f"{submission.property_type} but is now {current} in Notion"
                )
        return encode_properties(submissions, schema.id_to_name())

    async def create_row(
        self,
        values: Mapping[str, Any],
        context: FormContext | None = None,
    ) -> SubmissionResult:
        """Create a new page from submitted values keyed by property id.

        Non-editable fields ignore submitted values and only receive their
        configured default.
        """
        self._require(self.form.permissions.allow_create, "creating rows")

        editable_values = {
            prop_id: value
            for prop_id, value in values.items()
            if (field := self.form.get_field(prop_id)) is not None and field.editable
        }
        values = apply_defaults(self.form.fields, editable_values, context)
        self._check_values(self.form.fields, values)

        submissions = [
            FieldSubmission(field.property_id, field.property_type, values.get(field.property_id))
            for field in self.form.fields
            if not field.is_read_only
        ]
        encoded = await self._encode(submissions)

        page = await self.notion_client.create_page(self.form.database_id, encoded.properties)
        logger.info(f"Created page {page['id']} with {len(encoded.properties)} properties")
        return SubmissionResult(page_id=page["id"], url=page.get("url"), skipped=encoded.skipped)

    async def update_row(
        self,
        page_id: str,
        values: Mapping[str, Any],
    ) -> SubmissionResult:
        """Update an existing page with the editable fields present in ``values``."""
        self._require(self.form.permissions.allow_edit, "editing rows")

        fields = [
            field
            for field in self.form.fields
            if field.editable and not field.is_read_only and field.property_id in values
        ]
        self._check_values(fields, values)

        submissions = [
            FieldSubmission(field.property_id, field.property_type, values[field.property_id])
            for field in fields
        ]
        encoded = await self._encode(submissions)

        page = await self.notion_client.update_page(page_id, encoded.properties)
        logger.info(f"Updated page {page_id} with {len(encoded.properties)} properties")
        return SubmissionResult(page_id=page["id"], url=page.get("url"), skipped=encoded.skipped)
