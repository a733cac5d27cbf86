"""
CSV question import: parse delimited text into CSVQuestion records, then validate.

Expected header columns (any order, case-insensitive):
question_number, question_text, passage_text, option_a..option_e,
correct_answer, set_name, explanation
"""
import logging
import re
from typing import List, NamedTuple

from examhall.models import CSVQuestion, OPTION_KEYS

logger = logging.getLogger(__name__)

_EDGE_QUOTES = re.compile(r"^[\"']|[\"']$")


class CSVFormatError(ValueError):
    """The text cannot be read as a header plus data rows."""


class ImportOutcome(NamedTuple):
    records: List[CSVQuestion]
    errors: List[str]

    @property
    def ok(self) -> bool:
        return not self.errors


def parse_csv_line(line: str) -> List[str]:
    """Split one line on commas, honoring double quotes ("" is a literal quote)."""
    fields = []
    current = []
    in_quotes = False
    i = 0
    while i < len(line):
        char = line[i]
        if char == '"' and not in_quotes:
            in_quotes = True
        elif char == '"' and in_quotes:
            if line[i + 1:i + 2] == '"':
                current.append('"')
                i += 1
            else:
                in_quotes = False
        elif char == "," and not in_quotes:
            fields.append("".join(current))
            current = []
        else:
            current.append(char)
        i += 1
    fields.append("".join(current))
    return fields


def _clean(value: str) -> str:
    return _EDGE_QUOTES.sub("", value.strip())


def parse_csv(text: str) -> List[CSVQuestion]:
    """
    Parse CSV text into question records.

    Rows without question text or correct answer are dropped (not an error).
    Short rows are padded with empty strings.

    Raises:
        CSVFormatError: fewer than two lines (no header + data).
    """
    lines = text.strip().split("\n")
    if len(lines) < 2:
        raise CSVFormatError("CSV must have a header row and at least one data row")

    headers = [h.strip().lower().replace('"', "").replace("'", "") for h in parse_csv_line(lines[0])]
    records: List[CSVQuestion] = []

    for line_no, line in enumerate(lines[1:], start=1):
        values = parse_csv_line(line)
        if not values or all(not v.strip() for v in values):
            continue

        row = {}
        for idx, header in enumerate(headers):
            row[header] = _clean(values[idx]) if idx < len(values) else ""

        record = CSVQuestion(
            question_number=row.get("question_number") or str(line_no),
            question_text=row.get("question_text", ""),
            passage_text=row.get("passage_text", ""),
            option_a=row.get("option_a", ""),
            option_b=row.get("option_b", ""),
            option_c=row.get("option_c", ""),
            option_d=row.get("option_d", ""),
            option_e=row.get("option_e", ""),
            correct_answer=row.get("correct_answer", "").upper(),
            set_name=row.get("set_name", ""),
            explanation=row.get("explanation", ""),
        )
        if record.question_text and record.correct_answer:
            records.append(record)
        else:
            logger.debug(f"Skipping data line {line_no}: no question text or correct answer")

    return records


def validate_csv(records: List[CSVQuestion]) -> List[str]:
    """
    Return human-readable errors.

    Row numbers are the record position + 2, counted over the records parse_csv
    kept; they match the file line only when no rows were skipped or dropped.
    """
    errors = []
    for index, q in enumerate(records):
        row_no = index + 2
        if not q.question_text:
            errors.append(f"Row {row_no}: Missing question text")
        if not (q.option_a and q.option_b and q.option_c and q.option_d):
            errors.append(f"Row {row_no}: Missing required options (A-D)")
        if q.correct_answer not in OPTION_KEYS:
            errors.append(f'Row {row_no}: Invalid correct answer "{q.correct_answer}"')
    return errors


def import_csv(text: str) -> ImportOutcome:
    """Parse and validate. Returns records or errors, never both."""
    try:
        records = parse_csv(text)
    except CSVFormatError as e:
        return ImportOutcome([], [str(e)])

    if not records:
        logger.info("CSV rejected: no rows with both question text and correct answer")
        return ImportOutcome([], ["No questions found: every row is missing question text or correct answer"])

    errors = validate_csv(records)
    if errors:
        logger.info(f"CSV rejected: {len(errors)} validation errors")
        return ImportOutcome([], errors)

    logger.info(f"CSV parsed: {len(records)} questions")
    return ImportOutcome(records, [])
