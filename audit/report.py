"""Audit output -- JSON file for tooling, plain text for the terminal."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

from audit.checks import classify_check

FIELDS = ("section", "name", "expected", "actual", "delta", "passed")
WIDTH = 78


def _verdict(audit_data: dict) -> str:
    if audit_data.get("model_result") is None:
        return "SKIPPED_INVALID_INPUT"
    if audit_data["summary"]["arithmetic_fail"] == 0:
        return "BALANCED"
    return "ARITHMETIC_ERRORS"


def _as_record(check: tuple) -> dict:
    record = dict(zip(FIELDS, check))
    record["category"] = classify_check(check[0], check[1])
    return record


def _by_section(records: list[dict], category: str) -> dict[str, list[dict]]:
    """Records of one category grouped by section, in first-seen order."""
    grouped: dict[str, list[dict]] = {}
    for rec in records:
        if rec["category"] == category:
            grouped.setdefault(rec["section"], []).append(rec)
    return grouped


def write_json_report(audit_data: dict, output_path: str | Path) -> Path:
    """Dump every check plus per-section tallies; parent dirs are created."""
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    records = [_as_record(c) for c in audit_data["results"]]
    tallies: dict[str, dict[str, int]] = {}
    for rec in records:
        t = tallies.setdefault(rec["section"], {"passed": 0, "failed": 0})
        t["passed" if rec["passed"] else "failed"] += 1

    payload = {
        "generated": datetime.now().isoformat(timespec="seconds"),
        "verdict": _verdict(audit_data),
        "summary": audit_data["summary"],
        "sections": tallies,
        "checks": records,
    }
    path.write_text(json.dumps(payload, indent=2))
    return path


def _rule(char: str = "=") -> str:
    return char * WIDTH


def format_text_report(audit_data: dict, title: str = "") -> str:
    records = [_as_record(c) for c in audit_data["results"]]
    out = [_rule(), "WATER RATE MODEL - AUDIT REPORT"]
    if title:
        out.append(title)
    out += [_rule(), ""]

    if audit_data.get("model_result") is None:
        out += ["Inputs failed validation; no calculation to audit.", _rule()]
        return "\n".join(out)

    out += ["Identities", _rule("-")]
    for section, recs in _by_section(records, "arithmetic").items():
        failed = [r for r in recs if not r["passed"]]
        worst = max(r["delta"] for r in recs)
        out.append(f"{section:<12} {len(recs):>4} checked  {len(failed):>3} failed"
                   f"  max delta {worst:,.6f}")
        for r in failed:
            out.append(f"    x {r['name']}")
            out.append(f"      {r['expected']:>16,.2f} expected"
                       f"  {r['actual']:>16,.2f} actual  (off by {r['delta']:,.2f})")
    out.append("")

    gaps = _by_section(records, "model_design")
    if gaps:
        out += ["Rate cap gaps (revenue short of need under the increase cap)", _rule("-")]
        for section, recs in gaps.items():
            short = [r for r in recs if not r["passed"]]
            if not short:
                out.append(f"{section:<12} need covered in all {len(recs)} years")
                continue
            out.append(f"{section:<12} short in {len(short)} of {len(recs)} years")
            for r in short:
                out.append(f"    {r['name'].split()[0]:<5} {r['actual']:>16,.2f}")
        out.append("")

    s = audit_data["summary"]
    out += [
        _rule(),
        f"Checks run        {s['total']:>6}",
        f"Identities        {s['arithmetic_pass']:>6} held  {s['arithmetic_fail']:>4} broken",
        f"Rate cap years    {s['design_pass']:>6} covered {s['design_fail']:>4} short",
        "",
        "VERDICT: MODEL IS BALANCED" if _verdict(audit_data) == "BALANCED"
        else "VERDICT: MODEL HAS ARITHMETIC ERRORS",
        _rule(),
    ]
    return "\n".join(out)
