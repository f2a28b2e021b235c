import io
import json

import pytest
from httpx import AsyncClient
from openpyxl import Workbook, load_workbook
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.students.importer import detect_column_mapping
from app.auth.security import verify_password
from app.core.models import Student

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _xlsx(rows) -> bytes:
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(list(row))
    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()


def _upload(content: bytes, filename: str = "students.xlsx") -> dict:
    return {"file": (filename, content, XLSX)}


THREE_ROWS = [
    ("Full Name", "Student ID", "Class", "Year Joined", "Parent Phone", "Password"),
    ("John Doe", "john2024abc", "KG1", 2024, "9876543210", "password123"),
    ("Jane Smith", "jane2024xyz", "KG2", 2024, None, "password456"),
    ("Ali Hassan", None, "Nursery", 2024, 9876543212, None),
]


def test_headers_are_mapped_by_keywords() -> None:
    mapping = detect_column_mapping(["Student Full Name", "Student Id", "Class Name", "Parent Phone No", "Year", "Password"])
    assert mapping == {
        "full_name": "Student Full Name",
        "student_id": "Student Id",
        "class_name": "Class Name",
        "parent_phone": "Parent Phone No",
        "year_joined": "Year",
        "password": "Password",
    }


@pytest.mark.asyncio
async def test_template_has_expected_headers(client: AsyncClient, admin_headers: dict) -> None:
    response = await client.get("/api/v1/students/import/template", headers=admin_headers)
    assert response.status_code == 200
    wb = load_workbook(io.BytesIO(response.content))
    rows = list(wb.active.iter_rows(values_only=True))
    assert list(rows[0]) == ["Full Name", "Student ID", "Class", "Year Joined", "Parent Phone", "Password"]
    assert rows[1][0] == "John Doe"
    assert len(rows) == 3


@pytest.mark.asyncio
async def test_preview_reports_each_row_without_saving(
    client: AsyncClient, admin_headers: dict, db_session: AsyncSession
) -> None:
    response = await client.post(
        "/api/v1/students/import/preview", files=_upload(_xlsx(THREE_ROWS)), headers=admin_headers
    )
    assert response.status_code == 200
    data = response.json()
    assert data["valid_count"] == 2
    assert data["invalid_count"] == 1

    rows = {r["row_number"]: r for r in data["rows"]}
    assert rows[2]["is_valid"] is True
    assert rows[3]["is_valid"] is False
    assert rows[3]["errors"] == ["Parent phone is required"]
    assert rows[4]["is_valid"] is True
    assert rows[4]["login_id"].startswith("ali2024")
    assert len(rows[4]["login_id"]) == len("ali2024") + 4
    assert rows[4]["parent_phone"] == "9876543212"
    assert rows[4]["password_generated"] is True

    saved = (await db_session.execute(select(Student))).scalars().all()
    assert saved == []


@pytest.mark.asyncio
async def test_commit_imports_valid_rows_and_issues_generated_passwords(
    client: AsyncClient, admin_headers: dict, db_session: AsyncSession
) -> None:
    response = await client.post(
        "/api/v1/students/import/commit", files=_upload(_xlsx(THREE_ROWS)), headers=admin_headers
    )
    assert response.status_code == 201
    data = response.json()
    assert data["created"] == 2
    assert [r["row_number"] for r in data["invalid_rows"]] == [3]
    assert len(data["issued_credentials"]) == 1
    issued = data["issued_credentials"][0]
    assert issued["full_name"] == "Ali Hassan"

    students = {s.login_id: s for s in (await db_session.execute(select(Student))).scalars().all()}
    assert set(students) == {"john2024abc", issued["login_id"]}
    assert verify_password("password123", students["john2024abc"].password_hash)
    assert verify_password(issued["password"], students[issued["login_id"]].password_hash)

    # Same file again: the Student IDs now exist
    again = await client.post(
        "/api/v1/students/import/preview", files=_upload(_xlsx(THREE_ROWS[:2])), headers=admin_headers
    )
    assert again.json()["rows"][0]["errors"] == ["Student ID already exists"]


@pytest.mark.asyncio
async def test_invalid_class_and_missing_name(client: AsyncClient, admin_headers: dict) -> None:
    content = _xlsx(
        [
            ("Full Name", "Student ID", "Class", "Parent Phone"),
            ("Sara Ali", "sara1", "Grade 5", "7770000"),
            (None, "x1", None, "7770001"),
        ]
    )
    response = await client.post("/api/v1/students/import/preview", files=_upload(content), headers=admin_headers)
    rows = response.json()["rows"]
    assert rows[0]["errors"] == ["Class must be one of: KG1, KG2, Nursery, Pre-KG"]
    assert rows[1]["errors"] == ["Full name is required", "Class is required"]


@pytest.mark.asyncio
async def test_explicit_column_mapping_and_default_year(client: AsyncClient, admin_headers: dict) -> None:
    content = _xlsx([("Child", "Grade", "Contact"), ("Sara Ali", "KG2", "7770000")])
    response = await client.post(
        "/api/v1/students/import/preview",
        files=_upload(content),
        data={
            "column_mapping": json.dumps({"full_name": "Child", "class_name": "Grade", "parent_phone": "Contact"}),
            "default_year": "2026",
        },
        headers=admin_headers,
    )
    assert response.status_code == 200
    row = response.json()["rows"][0]
    assert row["is_valid"] is True
    assert row["year_joined"] == 2026
    assert row["login_id"].startswith("sara2026")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "filename,content",
    [
        ("students.csv", b"Full Name,Class\nSara,KG1\n"),
        ("students.xlsx", _xlsx([("Full Name", "Class")])),
        ("students.xlsx", b"not a workbook"),
    ],
)
async def test_unreadable_uploads_are_rejected(
    client: AsyncClient, admin_headers: dict, filename: str, content: bytes
) -> None:
    response = await client.post(
        "/api/v1/students/import/preview", files=_upload(content, filename), headers=admin_headers
    )
    assert response.status_code == 400
