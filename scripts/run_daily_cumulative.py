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
from chamber_flux.main import daily_cumulative_flux
from chamber_flux.site_config import load_site_config
from chamber_flux.writer import write_results_to_csv


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Daily and cumulative treatment flux (mean +/- SE) over a date range."
    )
    parser.add_argument("--data-root", type=Path, default=DEFAULT_DATA_ROOT,
                        help="Folder with one analyzer CSV per measurement run.")
    parser.add_argument("--config", type=Path, required=True, help="Site YAML.")
    parser.add_argument("--start-date", required=True, help="First day (YYYY-MM-DD).")
    parser.add_argument("--end-date", required=True, help="Last day (YYYY-MM-DD).")
    parser.add_argument("--meas-per-day", type=int, default=None,
                        help="Interpolation points per day (default: site chamber_specs.measPerDay).")
    parser.add_argument("--results-root", default="runs/daily_cumulative",
                        help="Folder for daily.csv and cumulative.csv.")
    parser.add_argument("--measured-conditions", action="store_true",
                        help="Use logged chamber temperature/pressure instead of 25 degC / 101.325 kPa.")
    parser.add_argument("--max-workers", type=int, default=None, help="Worker processes (1 = serial).")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    try:
        site = load_site_config(args.config)
        print(f"[daily] Site {site.site_id or args.config.stem}: treatments {', '.join(site.treatments)}")
        out = daily_cumulative_flux(
            args.data_root,
            site.chamber_configs,
            args.start_date,
            args.end_date,
            criteria=site.criteria,
            measurements_per_day=args.meas_per_day if args.meas_per_day is not None else site.measurements_per_day,
            chamber_height_cm=site.chamber_height_cm,
            use_measured_conditions=args.measured_conditions,
            max_workers=args.max_workers,
        )
    except FluxInputError as e:
        print(e.to_dict(), file=sys.stderr)
        sys.exit(2)

    meta = out["metadata"]
    print(
        f"[daily] {meta['total_interpolated_points']} interpolated points, "
        f"{meta['daily_chamber_points']} chamber-days at {meta['measPerDay']}/day"
    )

    base_dir = Path(args.results_root)
    base_dir.mkdir(parents=True, exist_ok=True)
    write_results_to_csv(out["daily"], base_dir / "daily.csv")
    write_results_to_csv(out["cumulative"], base_dir / "cumulative.csv")
