"""
Shared pytest fixtures for icglr-spine tests.

This module provides:
- The packaged schema catalog and the model compiled from it (session scope)
- An in-memory SQLite connection with every table created
- A mapper wired to both, with payload validation
- Builders for sample mine sites, lots and export certificates

Usage:
    def test_round_trip(mapper, mine_site):
        key = mapper.upsert("mine_sites", mine_site())
        assert mapper.reconstruct("mine_sites", key) == mine_site()
"""

import sys
from pathlib import Path
from typing import Any

import pytest

# Ensure icglr_spine is importable without an install
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from icglr_spine.core.logging import configure_logging
from icglr_spine.core.schema_loader import apply_ddl
from icglr_spine.core.settings import PACKAGED_SCHEMA_DIR, IcglrSettings
from icglr_spine.core.sqlite_conn import SqliteConnection
from icglr_spine.mapping.mapper import Mapper
from icglr_spine.mapping.validation import RecordValidator
from icglr_spine.ops.context import OperationContext
from icglr_spine.relational.compiler import compile_schemas
from icglr_spine.schema.loader import load_catalog


@pytest.fixture(scope="session", autouse=True)
def _quiet_logging():
    """Keep structlog silent; tests assert on behavior, not log lines."""
    configure_logging(level="CRITICAL", json_format=False)


# =============================================================================
# Engine fixtures
# =============================================================================


@pytest.fixture(scope="session")
def catalog():
    return load_catalog(PACKAGED_SCHEMA_DIR)


@pytest.fixture(scope="session")
def model(catalog):
    return compile_schemas(catalog)


@pytest.fixture(scope="session")
def validator(catalog, model):
    return RecordValidator(catalog, model)


@pytest.fixture()
def conn(model):
    """In-memory database with the compiled tables created."""
    conn = SqliteConnection(":memory:")
    apply_ddl(conn, model.ddl())
    yield conn
    conn.close()


@pytest.fixture()
def mapper(conn, model, validator):
    return Mapper(conn, model, validator=validator)


@pytest.fixture()
def settings():
    return IcglrSettings(default_page_limit=2, max_page_limit=5)


@pytest.fixture()
def ctx(conn, model, mapper, settings):
    return OperationContext(conn=conn, model=model, mapper=mapper, settings=settings, caller="test")


def count_rows(conn, table: str) -> int:
    conn.execute(f"SELECT COUNT(*) FROM {table}")
    return conn.fetchone()[0]


@pytest.fixture()
def rows():
    """``rows(conn, table)`` → row count."""
    return count_rows


# =============================================================================
# Sample records
# =============================================================================


def build_address(locality: str = "Bukavu", **overrides: Any) -> dict[str, Any]:
    address = {
        "country": "CD",
        "subnationalDivisionL1": "CD-SK",
        "addressLocalityText": locality,
    }
    address.update(overrides)
    return address


def build_business_entity(identifier: str = "BE-001", name: str = "Kivu Mining SARL", **overrides: Any) -> dict[str, Any]:
    entity = {
        "identifier": identifier,
        "name": name,
        "legalAddress": build_address(),
        "physicalAddress": build_address(),
        "tin": f"TIN-{identifier}",
        "contactDetails": {
            "legalRepresentative": "Amani Mugisho",
            "contactPhoneNumber": "+243 810 000 001",
            "contactEmail": f"{identifier.lower()}@example.org",
        },
    }
    entity.update(overrides)
    return entity


def build_mine_site(icglr_id: str = "CD-SK-0001", **overrides: Any) -> dict[str, Any]:
    site = {
        "icglrId": icglr_id,
        "addressCountry": "CD",
        "nationalId": f"NAT-{icglr_id}",
        "certificationStatus": 1,
        "activityStatus": 1,
        "mineSiteLocation": {
            "geolocalization": {"latitude": -2.5, "longitude": 28.86},
            "nationalCadasterLocalization": "PE-4711",
            "localGeographicDesignation": build_address("Kamituga"),
        },
        "mineral": ["gold", "tin"],
        "owner": build_business_entity(),
    }
    site.update(overrides)
    return site


def build_full_mine_site(icglr_id: str = "CD-SK-0002") -> dict[str, Any]:
    """A mine site using every optional structure of the schema."""
    site = build_mine_site(icglr_id)
    site["mineSiteLocation"]["polygon"] = [
        {"latitude": -2.50, "longitude": 28.86},
        {"latitude": -2.51, "longitude": 28.87},
        {"latitude": -2.52, "longitude": 28.85},
    ]
    site["mineSiteLocation"]["altitude"] = 1650.0
    site["license"] = [
        {
            "licenseType": 2,
            "licenseId": "PE-4711",
            "owner": build_business_entity(),
            "grantedDate": "2019-06-01",
            "licenseStatus": 1,
            "coveredCommodities": ["cassiterite", "coltan"],
        }
    ]
    site["operator"] = [
        build_business_entity("BE-002", "Cooperative Minière de Kalimbi"),
        build_business_entity("BE-003", "Shabunda Artisanal Group"),
    ]
    site["inspection"] = [
        {
            "inspectionId": "INS-1",
            "inspectionDate": "2023-11-20",
            "inspectionResult": 1,
            "inspectorName": "Jeanne Bahati",
            "inspectorPosition": "Inspector",
            "governmentAgency": "SAEMAPE",
        }
    ]
    site["statusChange"] = [
        {"dateOfChange": "2020-01-15", "newStatus": 2},
        {"dateOfChange": "2022-07-01", "newStatus": 1},
    ]
    return site


def build_lot(lot_number: str = "LOT-001", **overrides: Any) -> dict[str, Any]:
    lot = {
        "lotNumber": lot_number,
        "dateRegistration": "2024-03-01",
        "timeRegistration": "09:30:00",
        "creator": build_business_entity(),
        "mineral": "cassiterite",
        "concentration": 0.65,
        "mass": 1250.5,
        "unitOfMeasurement": "kg",
        "mineSiteId": "CD-SK-0001",
        "creatorRole": [1],
        "originatingOperation": [1, 2],
    }
    lot.update(overrides)
    return lot


def build_export_certificate(identifier: str = "CERT-0001", **overrides: Any) -> dict[str, Any]:
    certificate = {
        "issuing_country": "CD",
        "identifier": identifier,
        "exporter": build_business_entity(),
        "importer": build_business_entity("BE-900", "Great Lakes Metals Ltd"),
        "lot_number": "LOT-001",
        "designated_mineral_description": "Cassiterite concentrate",
        "type_of_ore": "cassiterite",
        "lot_weight": 1250.5,
        "lot_weight_uom": "kg",
        "mineral_origin": "CD-SK-0001",
        "date_of_shipment": "2024-03-10",
        "date_of_issuance": "2024-03-05",
    }
    certificate.update(overrides)
    return certificate


@pytest.fixture()
def address():
    return build_address


@pytest.fixture()
def business_entity():
    return build_business_entity


@pytest.fixture()
def mine_site():
    return build_mine_site


@pytest.fixture()
def full_mine_site():
    return build_full_mine_site


@pytest.fixture()
def lot():
    return build_lot


@pytest.fixture()
def export_certificate():
    return build_export_certificate
