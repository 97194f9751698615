"""Pytest configuration and fixtures for testing the Finance Tracker."""
import io

import pytest
from fastapi.testclient import TestClient
from openpyxl import Workbook

from finance_tracker.config import Settings
from finance_tracker.main import create_app
from finance_tracker.models import WireTransaction
from finance_tracker.store import InMemoryTransactionStore

HEADER = ["Type", "Amount", "Category", "Date", "Description"]


@pytest.fixture
def temp_store_path(tmp_path):
    """Location of the JSON transaction store during a test."""
    return tmp_path / "data" / "transactions.json"


@pytest.fixture
def settings(temp_store_path):
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        store_path=temp_store_path,
        api_base_url="http://testserver/api",
        langfuse_public_key=None,
    )


@pytest.fixture
def app(settings):
    """API application backed by a JSON store in a temporary directory."""
    return create_app(settings)


@pytest.fixture
def client(app):
    """Create a test client for the FastAPI application."""
    return TestClient(app)


@pytest.fixture
def memory_store():
    return InMemoryTransactionStore()


@pytest.fixture
def sample_csv_content():
    """Sample CSV content for testing."""
    return """Type,Amount,Category,Date,Description
income,1200,Salary,2024-01-01,Freelance Payment
expense,-5,Food,2024-01-01,lunch
Expense,45.50,Groceries,2024-01-03,Weekly shop
expense,30,Transport,2024-01-04
expense,12,Coffee,not a date,Flat white"""


@pytest.fixture
def sample_csv_file(sample_csv_content, tmp_path):
    """Create a temporary CSV file for testing."""
    csv_file = tmp_path / "january.csv"
    csv_file.write_text(sample_csv_content)
    return csv_file


@pytest.fixture
def make_workbook():
    """Build .xlsx bytes from rows; the header row is added automatically."""

    def _make(rows, header=HEADER):
        workbook = Workbook()
        sheet = workbook.active
        sheet.append(header)
        for row in rows:
            sheet.append(row)
        buffer = io.BytesIO()
        workbook.save(buffer)
        return buffer.getvalue()

    return _make


@pytest.fixture
def wire_record():
    """Build a valid wire record, overriding selected fields."""

    def _make(**overrides):
        data = {
            "type": "expense",
            "amount": 25.0,
            "category": "Food",
            "date": "2024-01-15",
            "description": "Dinner",
        }
        data.update(overrides)
        return WireTransaction(**data)

    return _make
