"""CLI entry: python -m audit [--config FILE] [--output FILE] [--section NAME ...]"""

import argparse
import json
import logging
import sys
from pathlib import Path

from ratemodel.config import Configuration
from audit.runner import SECTIONS, run_all_checks
from audit.report import write_json_report, format_text_report


def main(argv=None):
    parser = argparse.ArgumentParser(prog="audit", description=__doc__)
    parser.add_argument("--config", type=Path,
                        help="JSON export of a community configuration "
                             "(default: shipped baseline)")
    parser.add_argument("--output", type=Path,
                        default=Path("output") / "audit_report.json",
                        help="where to write the JSON report")
    parser.add_argument("--section", action="append", choices=SECTIONS,
                        help="restrict to one section (repeatable)")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.config:
        with open(args.config, "r") as f:
            cfg = Configuration.from_dict(json.load(f))
    else:
        cfg = Configuration.load_baseline()

    print("Running model...")
    audit_data = run_all_checks(cfg=cfg, sections=args.section)

    print(format_text_report(audit_data, title=cfg.community_name))

    json_path = write_json_report(audit_data, args.output)
    print(f"\nJSON report written to: {json_path}")

    return 0 if audit_data["summary"]["arithmetic_fail"] == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
