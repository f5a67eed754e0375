"""
Pytest configuration and fixtures for statement import tests.
"""

import sys
from io import BytesIO
from pathlib import Path
from typing import Callable

import pytest
import yaml
from openpyxl import Workbook

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent

sys.path.insert(0, str(PROJECT_ROOT / "python"))

from statement_import.models import Category, UploadedFile  # noqa: E402


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def config_dir() -> Path:
    """Return the config directory path."""
    return PROJECT_ROOT / "config"


@pytest.fixture
def tmp_config_dir(tmp_path: Path) -> Callable[[dict], Path]:
    """Write an import_settings.yaml into a temp dir and return the dir."""
    def write(data: dict) -> Path:
        with open(tmp_path / "import_settings.yaml", "w") as f:
            yaml.safe_dump(data, f)
        return tmp_path

    return write


@pytest.fixture
def categories() -> list[Category]:
    """Categories with keywords, in display order."""
    return [
        Category(id="transport", name="Transport", keywords=("UBER", "PRESTO")),
        Category(id="food", name="Food", keywords=("EATS", "STARBUCKS", "TIM HORTONS")),
        Category(id="income", name="Income", keywords=("PAYROLL",)),
        Category(id="uncategorized", name="Uncategorized", is_system=True),
    ]


@pytest.fixture
def cibc_csv_content() -> bytes:
    """Headerless CIBC export: date, description, money out, money in."""
    return (
        "2024-01-05,STARBUCKS #123,4.75,\n"
        "01/15/2024,PAYROLL DEPOSIT,,2500.00\n"
        "2024-01-20,UBER EATS TORONTO,23.40,\n"
        "2024-01-22,PRESTO RELOAD,50.00,\n"
    ).encode("utf-8")


@pytest.fixture
def cibc_file(cibc_csv_content: bytes) -> UploadedFile:
    return UploadedFile(name="cibc_january.csv", content=cibc_csv_content)


@pytest.fixture
def make_xlsx() -> Callable[[list[list]], bytes]:
    """Build an in-memory XLSX workbook from rows."""
    def build(rows: list[list]) -> bytes:
        workbook = Workbook()
        worksheet = workbook.active
        for row in rows:
            worksheet.append([None if cell == "" else cell for cell in row])
        buffer = BytesIO()
        workbook.save(buffer)
        return buffer.getvalue()

    return build


@pytest.fixture
def amex_rows() -> list[list]:
    """Amex Summary export: 12 metadata/header rows, then transactions."""
    header = [
        ["Summary of Account Activity"],
        ["American Express Cobalt Card"],
        ["Card Member", "J SMITH"],
        ["Account Number", "XXXX-XXXXXX-11007"],
        [],
        ["Statement Period", "Aug 17 to Sep 16, 2025"],
        [],
        ["Previous Balance", "$1,204.55"],
        ["New Balance", "$478.30"],
        [],
        [],
        ["Date", "Date Processed", "Description", "Amount", "Foreign Spend", "Commission",
         "Exchange Rate", "Merchant", "Merchant Address", "Additional Information"],
    ]
    data = [
        ["16 Sept. 2025", "16 Sept. 2025", "STARBUCKS TORONTO", "$5.25", "", "", "", "STARBUCKS",
         "TORONTO ON", "COFFEE"],
        ["17 Sept. 2025", "18 Sept. 2025", "UBER TRIP HELP.UBER.COM", "$18.40", "", "", "", "UBER",
         "SAN FRANCISCO", "RIDE"],
        ["18 Sept. 2025", "18 Sept. 2025", "-$500.00", "", "", "", "", "",
         "PAYMENT RECEIVED - THANK YOU", ""],
        ["20 Sept. 2025", "21 Sept. 2025", "AMAZON.CA REFUND", "-$32.99", "", "", "", "AMAZON",
         "VANCOUVER", ""],
    ]
    return header + data


@pytest.fixture
def amex_file(make_xlsx, amex_rows) -> UploadedFile:
    return UploadedFile(name="Summary.xlsx", content=make_xlsx(amex_rows))
