"""TabularImportParser - bulk busy-schedule import from form exports.

Busy schedules are collected with an online form and exported as CSV. Each
export has a header row and one row per respondent:

  student sheet: timestamp, email, class, full name, Monday..Sunday, reason
  teacher sheet: timestamp, email, teacher name, Monday..Sunday, ...

Each day cell holds a comma-joined list of free-text time ranges, e.g.
"8-10am, 3-5pm". Every range is resolved through the normalizer for that
day's column.

The parser never raises on malformed input. Problems are reported on the
affected ImportRow.errors, and only error-free rows are ever turned into
batch mutations.

Known limitation: lines are split before tokenizing, so a quoted field that
spans several physical lines is not supported.
"""

from dataclasses import dataclass, field
from pathlib import Path

from src.availability.calendar import Day
from src.availability.logging import get_logger
from src.availability.models import BatchMutation, BatchPayload, ImportRow, PersonKind
from src.availability.normalizer import normalize_time_range

log = get_logger(__name__)

EMAIL_INDEX = 1


@dataclass(frozen=True)
class ImportLayout:
    """Fixed column positions of one export sheet."""

    name: str
    header_min_columns: int
    row_min_columns: int
    name_index: int
    first_day_index: int
    class_index: int | None = None

    def day_index(self, day: Day) -> int:
        return self.first_day_index + day.value


STUDENT_LAYOUT = ImportLayout(
    name="student",
    header_min_columns=12,
    row_min_columns=11,
    name_index=3,
    first_day_index=4,
    class_index=2,
)

TEACHER_LAYOUT = ImportLayout(
    name="teacher",
    header_min_columns=10,
    row_min_columns=10,
    name_index=2,
    first_day_index=3,
)

LAYOUTS: dict[PersonKind, ImportLayout] = {
    PersonKind.STUDENT: STUDENT_LAYOUT,
    PersonKind.TEACHER: TEACHER_LAYOUT,
}


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------
def parse_csv_line(line: str) -> list[str]:
    """Split one line into trimmed fields.

    Fields are comma-separated; a double-quoted field may contain commas, and
    a doubled quote inside quotes is a literal quote.
    """
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    i = 0
    while i < len(line):
        char = line[i]
        if char == '"':
            if in_quotes and i + 1 < len(line) and line[i + 1] == '"':
                current.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        i += 1
    fields.append("".join(current).strip())
    return fields


# ---------------------------------------------------------------------------
# Header validation
# ---------------------------------------------------------------------------
def verify_header(header_line: str, layout: ImportLayout) -> list[str]:
    """Check the header's shape. Returns every problem found, in column order."""
    errors: list[str] = []
    fields = parse_csv_line(header_line)

    if len(fields) < layout.header_min_columns:
        errors.append(
            f"Expected at least {layout.header_min_columns} columns, got {len(fields)}"
        )

    if len(fields) > EMAIL_INDEX and "email" not in fields[EMAIL_INDEX].lower():
        errors.append(f'Column {EMAIL_INDEX + 1} must contain "email"')

    for day in Day:
        index = layout.day_index(day)
        if len(fields) > index and day.label.lower() not in fields[index].lower():
            errors.append(f'Column {index + 1} must contain "{day.label}"')

    return errors


# ---------------------------------------------------------------------------
# Rows
# ---------------------------------------------------------------------------
def _split_day_cell(cell: str) -> list[str]:
    # Exports sometimes leave the cell's own quotes in place
    if cell.startswith('"'):
        cell = cell[1:]
    if cell.endswith('"'):
        cell = cell[:-1]
    return [token.strip() for token in cell.split(",") if token.strip()]


def parse_row(line: str, line_number: int, layout: ImportLayout) -> ImportRow | None:
    """Parse one data line. Returns None for a row with no email and no errors."""
    fields = parse_csv_line(line)

    if len(fields) < layout.row_min_columns:
        return ImportRow(
            line_number=line_number,
            display_name=f"Row {line_number}",
            errors=[
                f"Not enough columns: expected at least {layout.row_min_columns}, "
                f"got {len(fields)}"
            ],
        )

    email = fields[EMAIL_INDEX]
    display_name = fields[layout.name_index]
    class_name = fields[layout.class_index] if layout.class_index is not None else ""
    errors: list[str] = []

    if not email:
        errors.append("Missing email")

    busy: set[int] = set()
    for day in Day:
        for token in _split_day_cell(fields[layout.day_index(day)]):
            slot = normalize_time_range(token, day)
            if slot is None:
                errors.append(f'Cannot parse time range "{token}" for {day.label}')
            else:
                busy.add(slot)

    if not email and not errors:
        return None

    return ImportRow(
        line_number=line_number,
        email=email,
        display_name=display_name or f"Row {line_number}",
        class_name=class_name,
        busy_slots=sorted(busy),
        errors=errors,
    )


def parse_import(text: str, layout: ImportLayout) -> list[ImportRow]:
    """Parse a whole export into ImportRows.

    If the header is malformed, a single synthetic row carrying the aggregated
    header errors is returned and no data line is looked at.
    """
    lines = [line for line in text.lstrip("\ufeff").splitlines() if line.strip()]
    if len(lines) < 2:
        return []

    header_errors = verify_header(lines[0], layout)
    if header_errors:
        log.debug("import_header_invalid", layout=layout.name, errors=header_errors)
        return [ImportRow(errors=["Header format error: " + ", ".join(header_errors)])]

    rows: list[ImportRow] = []
    for line_number, line in enumerate(lines[1:], start=2):
        row = parse_row(line, line_number, layout)
        if row is not None:
            rows.append(row)
    return rows


def parse_import_file(path: str | Path, layout: ImportLayout) -> "ImportPreview":
    """Read a UTF-8 export from disk and parse it into a preview."""
    text = Path(path).read_text(encoding="utf-8-sig")
    preview = ImportPreview(rows=parse_import(text, layout))
    log.info(
        "import_parsed",
        path=str(path),
        layout=layout.name,
        rows=len(preview.rows),
        valid=len(preview.valid_rows),
        invalid=len(preview.invalid_rows),
    )
    return preview


# ---------------------------------------------------------------------------
# Preview
# ---------------------------------------------------------------------------
@dataclass
class ImportPreview:
    """Parsed rows as shown to the operator before confirming an import."""

    rows: list[ImportRow] = field(default_factory=list)

    @property
    def valid_rows(self) -> list[ImportRow]:
        return [row for row in self.rows if row.is_valid]

    @property
    def invalid_rows(self) -> list[ImportRow]:
        return [row for row in self.rows if not row.is_valid]

    @property
    def can_submit(self) -> bool:
        return bool(self.valid_rows)

    def to_mutations(self, kind: PersonKind) -> list[BatchMutation]:
        """One full-set mutation per error-free row, in file order."""
        return [
            BatchMutation.build(row.email, set(row.busy_slots), kind)
            for row in self.valid_rows
        ]

    def to_payload(self, kind: PersonKind, week_id: str | None = None) -> BatchPayload:
        return BatchPayload(data=self.to_mutations(kind), week_id=week_id or None)

    def format_table(self) -> str:
        """Human-readable preview: one line per row with slot count and status."""
        lines = [f"{'Row':>4}  {'Email':<32} {'Name':<24} {'Busy':>4}  Status"]
        for row in self.rows:
            status = "OK" if row.is_valid else "; ".join(row.errors)
            lines.append(
                f"{row.line_number or '-':>4}  {row.email[:32]:<32} "
                f"{row.display_name[:24]:<24} {len(row.busy_slots):>4}  {status}"
            )
        lines.append(
            f"\nTotal: {len(self.rows)}  |  Valid: {len(self.valid_rows)}  |  "
            f"Invalid: {len(self.invalid_rows)}"
        )
        return "\n".join(lines)
