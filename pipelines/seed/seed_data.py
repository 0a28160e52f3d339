"""
Seed data generator -- creates a realistic synthetic fact table for the
financial model.

Generates one record per (quarter × scenario × legal entity × cost center),
each tagged with a line of business, geography and product type, with
internally consistent measures:
  - TotalRevenue_$mm / TotalExpense_$mm / Margin_$mm (margin = revenue - expense)
  - MarginPct stored as a decimal in [0, 1]
  - AUM, fee, headcount and acquisition measures

The output is a JSON array of flat records, the same shape the storage
collaborator hands to the engine.
Run:  python -m pipelines.seed.seed_data
"""
from __future__ import annotations

import json
import random
from pathlib import Path
from typing import Any

from faker import Faker

_PROJECT_ROOT = Path(__file__).resolve().parents[2]
OUTPUT_PATH = _PROJECT_ROOT / "data" / "sample_facts.json"

# ── Tunables ─────────────────────────────────────────────
SEED = 42
QUARTERS = ["2024Q1", "2024Q2", "2024Q3", "2024Q4", "2025Q1", "2025Q2", "2025Q3"]
SCENARIOS = ["Actual", "Forecast"]
NUM_LEGAL_ENTITIES = 3

COST_CENTERS = ["Sales", "Marketing", "Engineering", "Operations", "Finance"]
LINES_OF_BUSINESS = ["Wealth Management", "Asset Management", "Retail Banking"]
GEOGRAPHIES = ["North America", "Europe", "Asia Pacific"]
PRODUCT_TYPES = ["Advisory", "Brokerage", "Lending"]


def _id_map(values: list[str], prefix: str) -> dict[str, str]:
    return {v: f"{prefix}{i:03d}" for i, v in enumerate(values, 1)}


def _record(
    rng: random.Random,
    quarter: str,
    scenario: str,
    ids: dict[str, dict[str, str]],
    legal_entity: str,
    cost_center: str,
    lob: str,
    geography: str,
    product: str,
) -> dict[str, Any]:
    revenue = round(rng.uniform(5.0, 120.0), 2)
    expense = round(revenue * rng.uniform(0.55, 0.95), 2)
    margin = round(revenue - expense, 2)

    aum = round(rng.uniform(500.0, 5_000.0), 2)
    fee_rate = round(rng.uniform(0.003, 0.012), 4)
    headcount = rng.randint(5, 120)
    new_clients = rng.randint(0, 40)
    acquisition_spend = round(new_clients * rng.uniform(0.01, 0.05), 2)

    return {
        "Quarter": quarter,
        "Scenario": scenario,
        "LegalEntityID": ids["LegalEntity"][legal_entity],
        "LegalEntity": legal_entity,
        "CostCenterID": ids["CostCenter"][cost_center],
        "CostCenter": cost_center,
        "LOBID": ids["LineOfBusiness"][lob],
        "LineOfBusiness": lob,
        "GeographyID": ids["Geography"][geography],
        "Geography": geography,
        "ProductTypeID": ids["ProductType"][product],
        "ProductType": product,
        "TotalRevenue_$mm": revenue,
        "TotalExpense_$mm": expense,
        "Margin_$mm": margin,
        "MarginPct": round(margin / revenue, 4),
        "AvgAUM_$mm": aum,
        "NetFlows_$mm": round(rng.uniform(-50.0, 80.0), 2),
        "AdvisoryFeeRate_pct": fee_rate,
        "AdvisoryRevenue_$mm": round(aum * fee_rate / 4, 2),
        "MarketReturn_pct": round(rng.uniform(-0.03, 0.06), 4),
        "Headcount_FTE": headcount,
        "BaseCompensation_$mm": round(headcount * rng.uniform(0.025, 0.045), 2),
        "NewClients_Count": new_clients,
        "ClientAcquisitionSpend_$mm": acquisition_spend,
    }


def generate_records(seed: int = SEED, quarters: list[str] | None = None) -> list[dict[str, Any]]:
    """Deterministic synthetic fact records for *quarters*."""
    rng = random.Random(seed)
    fake = Faker()
    fake.seed_instance(seed)

    legal_entities: list[str] = []
    while len(legal_entities) < NUM_LEGAL_ENTITIES:
        name = fake.company()
        if name not in legal_entities:
            legal_entities.append(name)

    ids = {
        "LegalEntity": _id_map(legal_entities, "LE"),
        "CostCenter": _id_map(COST_CENTERS, "CC"),
        "LineOfBusiness": _id_map(LINES_OF_BUSINESS, "LOB"),
        "Geography": _id_map(GEOGRAPHIES, "GEO"),
        "ProductType": _id_map(PRODUCT_TYPES, "PT"),
    }

    records: list[dict[str, Any]] = []
    for quarter in quarters or QUARTERS:
        for scenario in SCENARIOS:
            for le in legal_entities:
                for cc in COST_CENTERS:
                    # One LOB / geography / product per cost center keeps the table small.
                    lob = rng.choice(LINES_OF_BUSINESS)
                    geo = rng.choice(GEOGRAPHIES)
                    product = rng.choice(PRODUCT_TYPES)
                    records.append(_record(rng, quarter, scenario, ids, le, cc, lob, geo, product))
    return records


# ── Main ─────────────────────────────────────────────────

def main():
    print("═══ Seed Data Generator ═══")
    records = generate_records()

    OUTPUT_PATH.parent.mkdir(parents=True, exist_ok=True)
    OUTPUT_PATH.write_text(json.dumps(records, indent=2), encoding="utf-8")

    quarters = sorted({r["Quarter"] for r in records})
    print(f"\nDone -- wrote {len(records):,} records across {len(quarters)} quarters "
          f"({quarters[0]} … {quarters[-1]}) to {OUTPUT_PATH}")


if __name__ == "__main__":
    main()
