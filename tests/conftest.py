"""
Pytest configuration and fixtures for refine-pipeline tests

This module provides shared fixtures for unit, integration, and E2E tests.
No test touches the network: name matching goes through FakeNameMatchingService.
"""
import logging
import os
from pathlib import Path
from typing import Any, Callable, Generator

import pytest

from refine.core.mapping import DatasetMapping, parse_mapping
from refine.core.models import Classification, Rank, RunState


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests running the pipeline on temporary files"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that run the bundled dataset mappings"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# NAME MATCHING FIXTURES
# =======================

class FakeNameMatchingService:
    """
    In-memory name matching service.

    Names registered with add_exact() answer EXACT with a backbone
    classification; every other name answers NONE. All calls are recorded.
    """

    def __init__(self):
        self.responses: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, Rank | None, Classification | None]] = []
        self.failure: Exception | None = None

    def add_exact(self, name: str, usage_key: int, rank: str = "SPECIES", **classification) -> None:
        genus = name.split(" ")[0]
        response = {
            "matchType": "EXACT",
            "usageKey": usage_key,
            "scientificName": f"{name} Author, 1900",
            "canonicalName": name,
            "rank": rank,
            "status": "ACCEPTED",
            "kingdom": "Animalia",
            "phylum": "Chordata",
            "class": "Actinopterygii",
            "order": "Perciformes",
            "family": classification.pop("family", "Acanthuridae"),
            "genus": genus,
        }
        if rank == "SPECIES":
            response["species"] = name
        response.update(classification)
        self.responses[name] = response

    def add_response(self, name: str, response: dict[str, Any]) -> None:
        self.responses[name] = response

    def fail_with(self, error: Exception) -> None:
        self.failure = error

    def match(
        self,
        name: str,
        rank: Rank | None = None,
        classification: Classification | None = None,
    ) -> dict[str, Any]:
        self.calls.append((name, rank, classification))
        if self.failure is not None:
            raise self.failure
        return self.responses.get(name, {"matchType": "NONE", "confidence": 100})

    def call_count(self, name: str) -> int:
        return sum(1 for called, _, _ in self.calls if called == name)


@pytest.fixture
def name_service() -> FakeNameMatchingService:
    """
    Fake backbone knowing two reef fish species

    Returns:
        FakeNameMatchingService with Naso lituratus (2394331) and
        Acanthurus nigricans (2394340) as exact matches
    """
    service = FakeNameMatchingService()
    service.add_exact("Naso lituratus", 2394331)
    service.add_exact("Acanthurus nigricans", 2394340)
    return service


@pytest.fixture
def run_state() -> RunState:
    """Fresh per-run state"""
    return RunState()


# =======================
# MAPPING FIXTURES
# =======================

def survey_mapping_dict() -> dict[str, Any]:
    """
    Small transect survey mapping

    Raw columns: SurveyID, SiteCode, SurveyDate, Depth, Taxon, Family, Total
    """
    return {
        "dataset_id": "test-survey",
        "source": {"delimiter": ",", "quote_char": '"', "skip_rows": 1},
        "columns": [
            {"name": "eventID"},
            {"name": "locationID"},
            {
                "name": "eventDate",
                "derive": {"type": "iso_date", "params": {"format": "%d/%m/%Y"}},
            },
            {
                "name": "verbatimDepth",
                "derive": {"type": "unit_suffix", "params": {"unit": "m"}},
            },
            {"name": "scientificName"},
            {"name": "family"},
            {"name": "organismQuantity"},
            {
                "name": "occurrenceStatus",
                "derive": {"type": "occurrence_status", "params": {"field": "organismQuantity"}},
            },
            {"name": "basisOfRecord", "constant": "HumanObservation"},
            {"name": "kingdom"},
            {"name": "taxonRank"},
            {"name": "taxonID"},
            {"name": "taxonomicStatus"},
            {
                "name": "occurrenceID",
                "derive": {
                    "type": "identifier",
                    "after_taxonomy": True,
                    "params": {"parts": ["eventID", "taxonID", "{row}"]},
                },
            },
        ],
        "required": ["scientificName"],
        "event_key": "eventID",
        "event_fields": ["locationID", "eventDate"],
        "taxonomy": {
            "name_column": "scientificName",
            "binomial_hint": True,
            "hints": {"family": "family"},
            "output": {
                "kingdom": "kingdom",
                "rank": "taxonRank",
                "usage_key": "taxonID",
                "status": "taxonomicStatus",
            },
        },
    }


@pytest.fixture
def survey_mapping_config() -> dict[str, Any]:
    """Survey mapping as a plain dict, for tests that tweak it"""
    return survey_mapping_dict()


@pytest.fixture
def survey_mapping() -> DatasetMapping:
    """Validated survey mapping"""
    return parse_mapping(survey_mapping_dict())


SURVEY_HEADER = "SurveyID,SiteCode,SurveyDate,Depth,Taxon,Family,Total"


# =======================
# FILE FIXTURES
# =======================

@pytest.fixture(scope="session")
def test_data_dir() -> Path:
    """
    Get path to test data fixtures directory

    Returns:
        Path to tests/fixtures directory
    """
    return Path(os.path.dirname(__file__)) / "fixtures"


@pytest.fixture
def write_source(tmp_path) -> Callable[..., Path]:
    """
    Factory writing a raw source file into tmp_path

    Returns:
        Function(lines, name="source.csv", encoding="utf-8") -> Path
    """

    def _write(lines: list[str], name: str = "source.csv", encoding: str = "utf-8") -> Path:
        path = tmp_path / name
        path.write_text("\n".join(lines) + "\n", encoding=encoding)
        return path

    return _write


@pytest.fixture
def output_dir(tmp_path) -> Path:
    """Empty output directory for a run"""
    path = tmp_path / "out"
    path.mkdir()
    return path


def read_lines(path: Path) -> list[str]:
    """Lines of an output file, without line terminators"""
    return path.read_text(encoding="utf-8").splitlines()


# =======================
# LOGGING FIXTURES
# =======================

@pytest.fixture
def capture_logger(caplog) -> Generator[Callable[[str], None], None, None]:
    """
    Attach caplog to non-propagating package loggers

    Package loggers do not propagate to the root logger, so tests call the
    returned function with a logger name to start capturing its records.
    """
    attached: list[logging.Logger] = []

    def _attach(name: str) -> None:
        target = logging.getLogger(name)
        target.addHandler(caplog.handler)
        attached.append(target)

    caplog.set_level(logging.DEBUG)
    yield _attach

    for target in attached:
        target.removeHandler(caplog.handler)
