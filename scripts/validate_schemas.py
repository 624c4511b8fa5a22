"""Checks every bundled JSON Schema and validates the bundled seed catalog."""

from pathlib import Path
import json

import yaml
from jsonschema import Draft202012Validator

from liveauction.auction.catalog import parse_catalog
from liveauction.validation.validator import SCHEMA_DIR, get_schema_registry

CATALOG_PATH = Path(__file__).resolve().parent.parent / "liveauction" / "config" / "catalog.yaml"


def validate() -> None:
    for schema in SCHEMA_DIR.glob("*.json"):
        data = json.loads(schema.read_text())
        Draft202012Validator.check_schema(data)
    catalog = yaml.safe_load(CATALOG_PATH.read_text()) or {}
    items = parse_catalog(
        catalog,
        get_schema_registry(),
        seeded_at_ms=0,
        default_duration_ms=900000,
    )
    print(f"{len(items)} catalog items OK")


if __name__ == "__main__":
    validate()
