"""Shared fixtures."""

import pytest

from underwriter.config import DEFAULT_MODEL_PATH
from underwriter.core.decisions.loader import load_model
from underwriter.core.service import DecisionService


@pytest.fixture(scope="session")
def model():
    """The bundled insurance risk model."""
    return load_model(DEFAULT_MODEL_PATH)


@pytest.fixture
def service(model):
    """A decision service without built-in listeners."""
    return DecisionService(model)


def applicant(age, experience, violations, category=None, year=None):
    """Build session input for one driver and optionally one vehicle."""
    payload = {
        "Driver": {
            "Age": age,
            "YearsOfExperience": experience,
            "NumberOfViolations": violations,
        }
    }
    if category is not None or year is not None:
        payload["Vehicle"] = {"Category": category, "Year": year}
    return payload
