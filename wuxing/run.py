"""
CLI wrapper for analyze().

Usage:
    python -m wuxing.run --pillars 甲子 乙丑 丙寅 丁卯 [--config FILE] [--verbose]
    python -m wuxing.run --birth-date YYYY-MM-DD --birth-time HH:MM \
        --longitude LON [--latitude LAT] [--utc-offset OFFSET]
"""

import argparse
import json
import logging

from wuxing.chart import birth_pillars
from wuxing.config import ValidationError
from wuxing.engine import analyze


def _load_config(path):
    if path is None:
        return None
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ValidationError(f"Cannot read config {path}: {e}") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Simulate five-element energy flow in a BaZi chart.")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--pillars", nargs=4, metavar="PILLAR",
                        help="year, month, day and hour pillars, e.g. 甲子 乙丑 丙寅 丁卯")
    source.add_argument("--birth-date", dest="birth_date")
    parser.add_argument("--birth-time", dest="birth_time")
    parser.add_argument("--longitude", type=float)
    parser.add_argument("--latitude", type=float, default=None)
    parser.add_argument("--utc-offset", dest="utc_offset", type=float, default=None)
    parser.add_argument("--config", default=None, help="JSON file of configuration overrides")
    parser.add_argument("--snapshots", action="store_true",
                        help="include node snapshots in every log entry")
    parser.add_argument("--verbose", "-v", action="store_true")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        birth = None
        if args.pillars:
            pillars = args.pillars
        else:
            if args.birth_time is None or args.longitude is None:
                parser.error("--birth-date requires --birth-time and --longitude")
            birth = birth_pillars(args.birth_date, args.birth_time, args.longitude,
                                  latitude=args.latitude, utc_offset=args.utc_offset)
            pillars = birth.pillars
        result = analyze(pillars, _load_config(args.config))
    except ValidationError as e:
        parser.error(str(e))

    output = result.to_dict(include_snapshots=args.snapshots)
    if birth is not None:
        output["birth"] = birth.to_dict()
    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    main()
