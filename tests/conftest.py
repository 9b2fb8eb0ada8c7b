from datetime import date
from pathlib import Path

import pytest

from intake_engine.calculator import CalculationEngine
from intake_engine.engine import IntakeSession
from intake_engine.formstore import FormStore

FORMS_DIR = Path(__file__).resolve().parent.parent / "forms"

# Fixed "today" so age-dependent routing is deterministic
TODAY = date(2026, 1, 1)


@pytest.fixture(scope="session")
def forms_dir():
    return FORMS_DIR


@pytest.fixture(scope="session")
def store():
    """Load the bundled forms once for the entire test session."""
    s = FormStore(forms_dir=FORMS_DIR)
    s.load()
    return s


@pytest.fixture(scope="session")
def weight_loss(store):
    return store.get("weight-loss")


@pytest.fixture
def session(weight_loss):
    """Fresh weight-loss session with a pinned calendar date."""
    return IntakeSession(weight_loss, calculator=CalculationEngine(today=TODAY))
