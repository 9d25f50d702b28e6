"""Data models for notionforms."""

from enum import StrEnum
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

from notionforms.exceptions import ConfigurationError


class PropertyType(StrEnum):
    """Notion database property kinds."""

    TITLE = "title"
    RICH_TEXT = "rich_text"
    NUMBER = "number"
    SELECT = "select"
    MULTI_SELECT = "multi_select"
    DATE = "date"
    PEOPLE = "people"
    FILES = "files"
    CHECKBOX = "checkbox"
    URL = "url"
    EMAIL = "email"
    PHONE_NUMBER = "phone_number"
    STATUS = "status"
    FORMULA = "formula"
    ROLLUP = "rollup"
    RELATION = "relation"
    UNIQUE_ID = "unique_id"
    CREATED_TIME = "created_time"
    CREATED_BY = "created_by"
    LAST_EDITED_TIME = "last_edited_time"
    LAST_EDITED_BY = "last_edited_by"


# Computed by Notion, never accepted in page writes
READ_ONLY_TYPES = frozenset(
    t.value
    for t in (
        PropertyType.FORMULA,
        PropertyType.ROLLUP,
        PropertyType.CREATED_TIME,
        PropertyType.CREATED_BY,
        PropertyType.LAST_EDITED_TIME,
        PropertyType.LAST_EDITED_BY,
        PropertyType.UNIQUE_ID,
    )
)


class FilterOperator(StrEnum):
    """Operators available to list view filter rows."""

    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"
    EQUALS = "equals"
    DOES_NOT_EQUAL = "does_not_equal"
    CONTAINS = "contains"
    DOES_NOT_CONTAIN = "does_not_contain"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_THAN_OR_EQUAL_TO = "greater_than_or_equal_to"
    LESS_THAN_OR_EQUAL_TO = "less_than_or_equal_to"


class ConfigModel(BaseModel):
    """Immutable model read from stored (camelCase) JSON configuration."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# ==================== Field configuration ====================


class StaticDefault(ConfigModel):
    type: Literal["static"] = "static"
    value: Any = None


class FunctionDefault(ConfigModel):
    type: Literal["function"] = "function"
    name: Literal["today", "now", "current_user"]


class FormulaDefault(ConfigModel):
    type: Literal["formula"] = "formula"
    expression: str


DefaultValue = Annotated[
    StaticDefault | FunctionDefault | FormulaDefault,
    Field(discriminator="type"),
]


class FieldValidation(ConfigModel):
    """Per-field validation rules applied before a submission is encoded."""

    min: float | None = None
    max: float | None = None
    pattern: str | None = None
    message: str | None = None


class FieldDefinition(ConfigModel):
    """One form field bound to a Notion database property."""

    property_id: str = Field(
        validation_alias=AliasChoices("propertyId", "notionPropertyId", "property_id"),
        serialization_alias="propertyId",
    )
    property_type: str = Field(
        validation_alias=AliasChoices("propertyType", "notionPropertyType", "property_type"),
        serialization_alias="propertyType",
    )
    label: str
    placeholder: str | None = None
    help_text: str | None = None
    required: bool = False
    editable: bool = True
    visible: bool = True
    show_in_list: bool = False
    default_value: DefaultValue | None = None
    validation: FieldValidation | None = None

    @property
    def is_read_only(self) -> bool:
        """Whether Notion computes this property (it can never be written)."""
        return self.property_type in READ_ONLY_TYPES


class FilterRule(ConfigModel):
    """One user-authored condition in a list view's filter set."""

    property_id: str = Field(
        validation_alias=AliasChoices("propertyId", "property", "property_id"),
        serialization_alias="propertyId",
    )
    property_type: str = Field(
        validation_alias=AliasChoices("propertyType", "type", "property_type"),
        serialization_alias="propertyType",
    )
    operator: FilterOperator
    value: Any = None


class SortRule(ConfigModel):
    property: str
    direction: Literal["ascending", "descending"] = "ascending"


class FormLayout(ConfigModel):
    show_title: bool = True
    title_template: str | None = None
    columns: int | None = None


class FormPermissions(ConfigModel):
    allow_create: bool = True
    allow_edit: bool = False
    allow_list: bool = False
    allow_delete: bool = False


class FormConfig(ConfigModel):
    """Published form: which database, which fields, and what users may do."""

    id: str | None = None
    name: str = "Untitled form"
    description: str | None = None
    database_id: str
    mode: Literal["create", "edit", "view"] = "create"
    fields: list[FieldDefinition] = Field(default_factory=list)
    filters: list[FilterRule] = Field(default_factory=list)
    sorts: list[SortRule] = Field(default_factory=list)
    page_size: int = Field(default=20, ge=1, le=100)
    layout: FormLayout = Field(default_factory=FormLayout)
    permissions: FormPermissions = Field(default_factory=FormPermissions)

    @field_validator("fields")
    @classmethod
    def _unique_property_ids(cls, fields: list[FieldDefinition]) -> list[FieldDefinition]:
        seen: set[str] = set()
        for field in fields:
            if field.property_id in seen:
                raise ValueError(f"Duplicate field for property '{field.property_id}'")
            seen.add(field.property_id)
        return fields

    @classmethod
    def load(cls, path: str | Path) -> "FormConfig":
        """Load a form configuration from a JSON file."""
        try:
            raw = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Cannot read form config {path}: {e}") from e
        try:
            return cls.model_validate_json(raw)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid form config {path}: {e}") from e

    def get_field(self, property_id: str) -> FieldDefinition | None:
        for field in self.fields:
            if field.property_id == property_id:
                return field
        return None

    def visible_fields(self) -> list[FieldDefinition]:
        return [f for f in self.fields if f.visible]

    def list_fields(self) -> list[FieldDefinition]:
        """Fields shown as list view columns, in configured order."""
        return [f for f in self.fields if f.show_in_list]


# ==================== Decoded values & API results ====================


class DecodedValue(BaseModel):
    """Render-ready value of one Notion property, tagged with its raw type."""

    model_config = ConfigDict(frozen=True)

    type: str
    value: Any = None


class PageRow(BaseModel):
    """A Notion page with its properties decoded and keyed by property id."""

    id: str
    url: str | None = None
    created_time: str | None = None
    last_edited_time: str | None = None
    properties: dict[str, DecodedValue] = Field(default_factory=dict)

    def value(self, property_id: str) -> Any:
        decoded = self.properties.get(property_id)
        return decoded.value if decoded else None


class RowPage(BaseModel):
    """One page of list view results."""

    rows: list[PageRow] = Field(default_factory=list)
    has_more: bool = False
    next_cursor: str | None = None


class SubmissionResult(BaseModel):
    """Outcome of a create or update submission."""

    page_id: str
    url: str | None = None
    skipped: list[str] = Field(default_factory=list)


class FormContext(BaseModel):
    """Request-scoped facts used when resolving dynamic defaults."""

    user_id: str | None = None
    user_name: str | None = None


# ==================== Database schema ====================


class SchemaProperty(BaseModel):
    """One property of a database schema, with its type-specific metadata."""

    id: str
    name: str
    type: str
    options: list[dict[str, Any]] | None = None
    relation: dict[str, Any] | None = None
    rollup: dict[str, Any] | None = None
    formula: dict[str, Any] | None = None
    format: str | None = None

    @property
    def is_read_only(self) -> bool:
        return self.type in READ_ONLY_TYPES


class DatabaseSchema(BaseModel):
    """Current property layout of a Notion database."""

    id: str
    title: str = "Untitled"
    url: str | None = None
    properties: list[SchemaProperty] = Field(default_factory=list)

    def id_to_name(self) -> dict[str, str]:
        return {prop.id: prop.name for prop in self.properties}

    def id_to_type(self) -> dict[str, str]:
        return {prop.id: prop.type for prop in self.properties}

    def get_property(self, property_id: str) -> SchemaProperty | None:
        for prop in self.properties:
            if prop.id == property_id:
                return prop
        return None


class DatabaseSummary(BaseModel):
    id: str
    title: str = "Untitled"
    url: str | None = None
    last_edited_time: str | None = None


class WorkspaceUser(BaseModel):
    """A person in the Notion workspace, as offered by people pickers."""

    id: str
    name: str = "Unknown"
    email: str | None = None
    avatar_url: str | None = None


# ==================== Relations & comments ====================


class RelationPage(BaseModel):
    """A page offered by a relation picker."""

    id: str
    title: str = "Untitled"


class RelationPageList(BaseModel):
    pages: list[RelationPage] = Field(default_factory=list)
    has_more: bool = False


class Comment(BaseModel):
    """A comment on a page, with its text flattened for display."""

    id: str
    discussion_id: str | None = None
    created_time: str | None = None
    created_by: WorkspaceUser | None = None
    plain_text: str = ""
    rich_text: list[dict[str, Any]] = Field(default_factory=list)
