"""
Row transforms: untyped header->text rows into typed destination records.

Each destination has one immutable tuple of FieldSpec. The same tables are
used in the event loop and inside chunk worker processes, so a row
transforms identically whichever strategy handles it.
"""
import re
from datetime import date, datetime
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .exceptions import MalformedRowError, ValidationError
from .schemas import DestinationSchema, FieldKind, FieldSpec, TransformedRecord

_ISO_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}($|[T ])")

INT = FieldKind.INT
STR = FieldKind.STR
DATE = FieldKind.DATE
BOOL = FieldKind.BOOL

ENGINEER_FIELDS = (
    FieldSpec("id", INT),
    FieldSpec("name", STR),
)

TEAM_FIELDS = (
    FieldSpec("team_id", INT),
    FieldSpec("team_name", STR),
    FieldSpec("engineer_ids", STR),
)

PROJECT_FIELDS = (
    FieldSpec("project_id", INT),
    FieldSpec("project_name", STR),
)

REPOSITORY_FIELDS = (
    FieldSpec("repo_id", INT),
    FieldSpec("project_id", INT),
    FieldSpec("repo_name", STR),
)

ISSUE_FIELDS = (
    FieldSpec("issue_id", INT),
    FieldSpec("project_id", INT),
    FieldSpec("author_id", INT),
    FieldSpec("creation_date", DATE),
    FieldSpec("resolution_date", DATE, required=False),
    FieldSpec("category", STR),
)

COMMIT_FIELDS = (
    FieldSpec("commit_id", STR),
    FieldSpec("engineer_id", INT),
    FieldSpec("jira_issue_id", INT),
    FieldSpec("repo_id", INT),
    FieldSpec("commit_date", DATE),
    FieldSpec("ai_used", BOOL, required=False),
    FieldSpec("lines_of_code", INT),
)

FIELD_SPECS: Mapping[str, Tuple[FieldSpec, ...]] = MappingProxyType({
    "engineer": ENGINEER_FIELDS,
    "team": TEAM_FIELDS,
    "project": PROJECT_FIELDS,
    "repository": REPOSITORY_FIELDS,
    "issue": ISSUE_FIELDS,
    "commit": COMMIT_FIELDS,
})


def _is_blank(value: Optional[str]) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def to_int(value: str, field: str) -> int:
    try:
        return int(value.strip())
    except (AttributeError, ValueError) as e:
        raise ValidationError(f"Field '{field}' is not an integer: {value!r}", field=field) from e


def to_date(value: str, field: str) -> date:
    """Accept ``YYYY-MM-DD`` or an ISO 8601 timestamp, keeping only its date."""
    text = value.strip() if isinstance(value, str) else ""
    if not _ISO_DATE_PREFIX.match(text):
        raise ValidationError(f"Field '{field}' is not an ISO date: {value!r}", field=field)
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        # fromisoformat only accepts a trailing Z from Python 3.11 on.
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        return datetime.fromisoformat(text).date()
    except ValueError as e:
        raise ValidationError(f"Field '{field}' is not a valid date: {value!r}", field=field) from e


def to_bool(value: Optional[str]) -> bool:
    if _is_blank(value):
        return False
    return value.strip().lower() == "true"


def coerce_field(spec: FieldSpec, value: Optional[str]) -> Any:
    """Coerce one raw value according to its FieldSpec."""
    if spec.kind is BOOL:
        return to_bool(value)

    if spec.kind is STR and spec.required:
        # Only an absent value is missing; an empty string is kept.
        if value is None:
            raise ValidationError(f"Missing required field '{spec.name}'", field=spec.name)
        return value

    if _is_blank(value):
        if spec.required:
            raise ValidationError(f"Missing required field '{spec.name}'", field=spec.name)
        return None

    if spec.kind is INT:
        return to_int(value, spec.name)
    if spec.kind is DATE:
        return to_date(value, spec.name)
    return value


def resolve_fields(destination: Union[str, DestinationSchema]) -> Tuple[FieldSpec, ...]:
    if isinstance(destination, DestinationSchema):
        return destination.fields
    try:
        return FIELD_SPECS[destination]
    except KeyError:
        raise ValidationError(f"Unknown destination '{destination}'") from None


def transform_row(row: Mapping[str, Optional[str]], destination: Union[str, DestinationSchema]) -> TransformedRecord:
    """
    Map a header->text row onto the destination's typed record.

    Args:
        row: Raw row keyed by header column.
        destination: Destination identifier or its DestinationSchema.

    Returns:
        Dict keyed by the destination's columns. Absent optional fields are
        present with ``None``.

    Raises:
        ValidationError: On a missing required field or a value that cannot
            be coerced to its field type.
    """
    return {spec.name: coerce_field(spec, row.get(spec.name)) for spec in resolve_fields(destination)}


def build_row(header_row: Sequence[str], fields: List[str], line_number: int = 0) -> Dict[str, str]:
    """Pair header columns with parsed fields, rejecting a field-count mismatch."""
    if len(fields) != len(header_row):
        raise MalformedRowError(line_number, len(header_row), len(fields))
    return dict(zip(header_row, fields))


def record_values(record: TransformedRecord, columns: Sequence[str]) -> Tuple[Any, ...]:
    """Order a record's values by column, ready for a parameterised insert."""
    return tuple(record[column] for column in columns)
