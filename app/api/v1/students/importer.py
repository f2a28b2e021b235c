"""
Bulk student import from Excel.

Preview and commit share the same parsing: the first sheet is read, headers
are mapped to student fields (auto-detected unless a mapping is supplied),
missing Student IDs and passwords are generated and each row is validated.
"""
import io
import json
import logging
import secrets
import string
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from fastapi import UploadFile, status
from openpyxl import Workbook, load_workbook
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.security import hash_password
from app.core.enums import CLASS_OPTIONS
from app.core.exceptions import ServiceError
from app.core.models import Student

from .schemas import (
    ImportCommitResponse,
    ImportPreviewResponse,
    ImportRowResult,
    IssuedCredential,
    StudentResponse,
)
from .service import generate_password

logger = logging.getLogger(__name__)

EXCEL_MAX_ROWS = 500
IMPORT_FIELDS = ("full_name", "student_id", "class_name", "parent_phone", "year_joined", "password")
TEMPLATE_HEADERS = ("Full Name", "Student ID", "Class", "Year Joined", "Parent Phone", "Password")
TEMPLATE_SAMPLE_ROWS = (
    ("John Doe", "john2024abc", "KG1", 2024, "9876543210", "password123"),
    ("Jane Smith", "jane2024xyz", "KG2", 2024, "9876543211", "password456"),
)
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# (required words in header, field); first matching rule wins
_AUTO_MAPPING_RULES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("full", "name"), "full_name"),
    (("student", "id"), "student_id"),
    (("class",), "class_name"),
    (("parent", "phone"), "parent_phone"),
    (("year",), "year_joined"),
    (("password",), "password"),
)


@dataclass
class ParsedRow:
    row_number: int
    full_name: str
    login_id: str
    class_name: str
    year_joined: int
    parent_phone: str
    password: str
    password_generated: bool
    errors: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_result(self) -> ImportRowResult:
        return ImportRowResult(
            row_number=self.row_number,
            full_name=self.full_name,
            login_id=self.login_id,
            class_name=self.class_name,
            year_joined=self.year_joined,
            parent_phone=self.parent_phone,
            password_generated=self.password_generated,
            is_valid=self.is_valid,
            errors=list(self.errors),
        )


def build_import_template() -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Students"
    ws.append(list(TEMPLATE_HEADERS))
    for row in TEMPLATE_SAMPLE_ROWS:
        ws.append(list(row))
    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()


def _cell_str(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


async def read_sheet(file: UploadFile) -> Tuple[List[str], List[Tuple[int, Dict[str, str]]]]:
    """Return (headers, [(row_number, {header: value})]). Raises ValueError on invalid files."""
    if not file.filename or not file.filename.lower().endswith(".xlsx"):
        raise ValueError("File must be an Excel file (.xlsx)")
    content = await file.read()
    if not content:
        raise ValueError("File is empty")
    try:
        wb = load_workbook(filename=io.BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        raise ValueError(f"Invalid Excel file: {e}") from e

    try:
        ws = wb.worksheets[0] if wb.worksheets else None
        if ws is None:
            raise ValueError("Excel file has no sheets")
        rows_iter = ws.iter_rows(values_only=True)
        header_row = next(rows_iter, None)
        headers = [_cell_str(c) for c in header_row] if header_row else []
        if not any(headers):
            raise ValueError("Excel file must have at least a header row and one data row")

        rows: List[Tuple[int, Dict[str, str]]] = []
        for row_num, row in enumerate(rows_iter, start=2):
            if not row or all(_cell_str(c) == "" for c in row):
                continue
            if len(rows) >= EXCEL_MAX_ROWS:
                raise ValueError(f"Maximum {EXCEL_MAX_ROWS} data rows allowed")
            values = {}
            for i, h in enumerate(headers):
                if h:
                    values[h] = _cell_str(row[i]) if i < len(row) else ""
            rows.append((row_num, values))
    finally:
        wb.close()

    if not rows:
        raise ValueError("Excel file must have at least a header row and one data row")
    return [h for h in headers if h], rows


def detect_column_mapping(headers: Sequence[str]) -> Dict[str, str]:
    """Map import field -> Excel header. A field keeps the first header that matches it."""
    mapping: Dict[str, str] = {}
    for header in headers:
        lower = header.lower()
        for words, field_name in _AUTO_MAPPING_RULES:
            if all(w in lower for w in words):
                mapping.setdefault(field_name, header)
                break
    return mapping


def parse_column_mapping(raw: Optional[str], headers: Sequence[str]) -> Dict[str, str]:
    """Use the supplied JSON mapping ({field: header}) or fall back to auto-detection."""
    if not raw:
        return detect_column_mapping(headers)
    try:
        mapping = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"column_mapping must be valid JSON: {e}") from e
    if not isinstance(mapping, dict):
        raise ValueError("column_mapping must be a JSON object of field -> header")
    cleaned: Dict[str, str] = {}
    for field_name, header in mapping.items():
        if field_name not in IMPORT_FIELDS:
            raise ValueError(f"Unknown import field: {field_name}")
        if not header:
            continue
        if header not in headers:
            raise ValueError(f"Column not found in file: {header}")
        cleaned[field_name] = header
    return cleaned


def _generate_login_id(full_name: str, year: int) -> str:
    first = full_name.split()[0].lower() if full_name.split() else "student"
    suffix = "".join(secrets.choice(string.ascii_lowercase + string.digits) for _ in range(4))
    return f"{first}{year}{suffix}"


def parse_rows(
    rows: List[Tuple[int, Dict[str, str]]],
    mapping: Dict[str, str],
    default_year: int,
    existing_login_ids: Set[str],
) -> List[ParsedRow]:
    def value(values: Dict[str, str], field_name: str) -> str:
        header = mapping.get(field_name)
        return values.get(header, "") if header else ""

    parsed: List[ParsedRow] = []
    seen: Set[str] = set()
    for row_number, values in rows:
        full_name = value(values, "full_name")
        class_name = value(values, "class_name")
        parent_phone = value(values, "parent_phone")

        year_raw = value(values, "year_joined")
        try:
            year_joined = int(year_raw) if year_raw else default_year
        except ValueError:
            year_joined = default_year

        login_id = value(values, "student_id")
        if not login_id and full_name:
            login_id = _generate_login_id(full_name, year_joined)
        password = value(values, "password")
        password_generated = not password
        if password_generated:
            password = generate_password()

        errors: List[str] = []
        if not full_name:
            errors.append("Full name is required")
        if not login_id:
            errors.append("Student ID is required")
        if not class_name:
            errors.append("Class is required")
        elif class_name not in CLASS_OPTIONS:
            errors.append(f"Class must be one of: {', '.join(CLASS_OPTIONS)}")
        if not parent_phone:
            errors.append("Parent phone is required")
        if login_id and login_id in existing_login_ids:
            errors.append("Student ID already exists")
        elif login_id and login_id in seen:
            errors.append("Duplicate Student ID in file")
        if login_id:
            seen.add(login_id)

        parsed.append(
            ParsedRow(
                row_number=row_number,
                full_name=full_name,
                login_id=login_id,
                class_name=class_name,
                year_joined=year_joined,
                parent_phone=parent_phone,
                password=password,
                password_generated=password_generated,
                errors=errors,
            )
        )
    return parsed


async def _existing_login_ids(db: AsyncSession) -> Set[str]:
    result = await db.execute(select(Student.login_id))
    return set(result.scalars().all())


async def _parse_upload(
    db: AsyncSession,
    file: UploadFile,
    column_mapping: Optional[str],
    default_year: int,
) -> Tuple[List[str], Dict[str, str], List[ParsedRow]]:
    headers, rows = await read_sheet(file)
    mapping = parse_column_mapping(column_mapping, headers)
    parsed = parse_rows(rows, mapping, default_year, await _existing_login_ids(db))
    return headers, mapping, parsed


async def preview_import(
    db: AsyncSession,
    file: UploadFile,
    column_mapping: Optional[str],
    default_year: int,
) -> ImportPreviewResponse:
    headers, mapping, parsed = await _parse_upload(db, file, column_mapping, default_year)
    valid = sum(1 for p in parsed if p.is_valid)
    return ImportPreviewResponse(
        headers=headers,
        column_mapping=mapping,
        rows=[p.to_result() for p in parsed],
        valid_count=valid,
        invalid_count=len(parsed) - valid,
    )


async def commit_import(
    db: AsyncSession,
    file: UploadFile,
    column_mapping: Optional[str],
    default_year: int,
) -> ImportCommitResponse:
    """Insert every valid row in one transaction. Generated passwords are returned here only."""
    _, _, parsed = await _parse_upload(db, file, column_mapping, default_year)
    valid_rows = [p for p in parsed if p.is_valid]
    invalid_rows = [p.to_result() for p in parsed if not p.is_valid]

    created: List[Tuple[ParsedRow, Student]] = []
    for p in valid_rows:
        student = Student(
            login_id=p.login_id,
            full_name=p.full_name,
            class_name=p.class_name,
            year_joined=p.year_joined,
            parent_phone=p.parent_phone,
            password_hash=hash_password(p.password),
        )
        db.add(student)
        created.append((p, student))
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Failed to import students: a Student ID already exists", status.HTTP_409_CONFLICT)

    for _, student in created:
        await db.refresh(student)
    logger.info(f"Imported {len(created)} students ({len(invalid_rows)} rows skipped)")
    return ImportCommitResponse(
        created=len(created),
        students=[StudentResponse.model_validate(s) for _, s in created],
        invalid_rows=invalid_rows,
        issued_credentials=[
            IssuedCredential(student_id=s.id, login_id=s.login_id, full_name=s.full_name, password=p.password)
            for p, s in created
            if p.password_generated
        ],
    )
