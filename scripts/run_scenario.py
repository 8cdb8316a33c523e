"""
Run the reference lump-sum scenario and print the results.

Usage:
    python scripts/run_scenario.py
"""
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from lumpsum.calculations.dataset import load_dataset
from lumpsum.calculations.workbook import LumpSumWorkbook

SCENARIO_INPUTS = {
    "todayDate": "2025-03-18",
    "birthdate1": "1952-02-01",
    "hasPartner": "Nee",
    "hasMortgage": "Ja",
    "mortgageBalance": "95000",
    "marketValue": "550000",
    "wozValue": "220000",
}

OUTPUT_CELLS = ["F13", "F27", "F29", "F31", "F36", "H50", "F84", "F86"]


def main():
    dataset = load_dataset()
    workbook = LumpSumWorkbook({dataset.primary_sheet: SCENARIO_INPUTS}, dataset=dataset)

    results = workbook.calculate_output_cells(
        {dataset.primary_sheet: OUTPUT_CELLS},
        post_formulas_actions=[
            {"type": "macro", "parameters": {"name": dataset.macro_name}}
        ],
    )

    print(f"Product: {dataset.product} (data version {dataset.version})")
    for reference, value in results[dataset.primary_sheet].items():
        print(f"  {reference:>4}: {value}")

    result = workbook.goal_seek_result
    if result:
        print(
            f"\nGoal seek: {result.iterations} step(s), residual {result.residual:.4f}"
        )

    print("\n  Row  Year  Age        Draw    Interest       Total    LTV")
    for row in workbook.schedule_rows():
        print(
            f"  {row.row:>3}  {row.year:>4.0f}  {row.age:>3.0f}  "
            f"{row.draw or 0:>10,.2f}  {row.annual_interest:>10,.2f}  "
            f"{row.running_total:>10,.2f}  {row.loan_to_value:>5.2f}"
        )


if __name__ == "__main__":
    main()
