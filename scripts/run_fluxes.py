import argparse
import logging
import sys
from pathlib import Path

# Ensure repo root is on sys.path when invoked as a script
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from chamber_flux.errors import FluxInputError
from chamber_flux.io_chamber import DEFAULT_DATA_ROOT
from chamber_flux.main import compute_flux_results
from chamber_flux.site_config import load_site_config
from chamber_flux.writer import write_results_to_csv


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Compute per-chamber CO2/N2O fluxes for every run file of a site."
    )
    parser.add_argument("--data-root", type=Path, default=DEFAULT_DATA_ROOT,
                        help="Folder with one analyzer CSV per measurement run.")
    parser.add_argument("--config", type=Path, required=True,
                        help="Site YAML (chambers, chamber_specs, quality_thresholds).")
    parser.add_argument("--out", default="fluxes.csv", help="Output CSV path.")
    parser.add_argument("--start-date", default=None, help="First day to keep (YYYY-MM-DD).")
    parser.add_argument("--end-date", default=None, help="Last day to keep (YYYY-MM-DD).")
    parser.add_argument("--measured-conditions", action="store_true",
                        help="Use logged chamber temperature/pressure instead of 25 degC / 101.325 kPa.")
    parser.add_argument("--max-workers", type=int, default=None, help="Worker processes (1 = serial).")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    try:
        site = load_site_config(args.config)
        print(f"[fluxes] Site {site.site_id or args.config.stem}: {len(site.chamber_configs)} chamber(s), "
              f"treatments {', '.join(site.treatments)}")
        results = compute_flux_results(
            args.data_root,
            site.chamber_configs,
            site.criteria,
            start_date=args.start_date,
            end_date=args.end_date,
            chamber_height_cm=site.chamber_height_cm,
            use_measured_conditions=args.measured_conditions,
            max_workers=args.max_workers,
        )
    except FluxInputError as e:
        print(e.to_dict(), file=sys.stderr)
        sys.exit(2)

    counts = {}
    for r in results:
        counts[r.quality_flag.value] = counts.get(r.quality_flag.value, 0) + 1
    print(f"[fluxes] {len(results)} chamber cycles: " + ", ".join(f"{k}={v}" for k, v in sorted(counts.items())))

    write_results_to_csv(results, args.out)
