"""
Pytest configuration and shared fixtures.
"""

import pytest
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fastapi.testclient import TestClient

from lumpsum.main import app
from lumpsum.calculations.dataset import load_dataset
from lumpsum.calculations.workbook import LumpSumWorkbook


# Reference scenario: single applicant aged 73, WOZ 220k, mortgage 95k
SCENARIO_INPUTS = {
    "todayDate": "2025-03-18",
    "birthdate1": "1952-02-01",
    "hasPartner": "Nee",
    "hasMortgage": "Ja",
    "mortgageBalance": "95000",
    "marketValue": "550000",
    "wozValue": "220000",
}


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "integration: marks integration tests")


@pytest.fixture
def scenario_inputs():
    """Raw request inputs of the reference scenario."""
    return dict(SCENARIO_INPUTS)


@pytest.fixture(scope="session")
def dataset():
    """The bundled 15-year lump-sum workbook data."""
    return load_dataset()


@pytest.fixture
def workbook(dataset, scenario_inputs):
    """Fresh workbook with the reference scenario applied."""
    return LumpSumWorkbook({dataset.primary_sheet: scenario_inputs}, dataset=dataset)


@pytest.fixture
def solved_workbook(workbook):
    """Reference scenario after the payout macro has run."""
    workbook.run_actions(
        [{"type": "macro", "parameters": {"name": workbook.dataset.macro_name}}]
    )
    return workbook


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)
