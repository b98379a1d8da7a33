"""Shared fixtures for the rate engine tests."""

import copy

import pytest

from ratemodel.config import Configuration

# Small two-tier community: current bill at 5,800 units is 56.99.
SCENARIO = {
    "communityName": "Test Community",
    "medianIncome": 43500,
    "povertyIncome": 27750,
    "customerCount": 6200,
    "avgMonthlyUsage": 5800,
    "waterLossPercent": 22,
    "operatingCost": 3850000,
    "projectionPeriod": 10,
    "currentBaseRate": 18.50,
    "currentAddonFee": 7.25,
    "currentTiers": [
        {"enabled": True, "limit": 4000, "rate": 5.20},
        {"enabled": True, "limit": 10000, "rate": 5.80},
        {"enabled": False, "limit": 15000, "rate": 6.25},
        {"enabled": False, "limit": None, "rate": 8.75},
    ],
    "futureBaseRate": 20.00,
    "futureAddonFee": 7.25,
    "futureTiers": [
        {"enabled": True, "limit": 3000, "rate": 5.50},
        {"enabled": True, "limit": 7000, "rate": 7.20},
        {"enabled": False, "limit": 15000, "rate": 11.50},
        {"enabled": False, "limit": None, "rate": 15.75},
    ],
}


@pytest.fixture
def scenario_data():
    return copy.deepcopy(SCENARIO)


@pytest.fixture
def scenario(scenario_data):
    return Configuration.from_dict(scenario_data)


@pytest.fixture
def make_config(scenario_data):
    """Scenario with keyword overrides applied to the export record."""
    def _make(**overrides):
        data = copy.deepcopy(scenario_data)
        data.update(overrides)
        return Configuration.from_dict(data)
    return _make


@pytest.fixture
def baseline():
    return Configuration.load_baseline()
