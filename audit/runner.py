"""Audit runner -- runs the model once and applies the selected check sections."""

from __future__ import annotations

from collections import Counter
from typing import Callable

from ratemodel.config import Configuration
from ratemodel.orchestrator import calculate_all
from ratemodel.types import CalculationResults
from audit.checks import check_projection, check_solver, check_structure, classify_check

Section = Callable[[Configuration, CalculationResults], list]

_SECTIONS: dict[str, Section] = {
    "CURRENT": lambda cfg, res: check_structure(cfg, res.current_results),
    "FUTURE": lambda cfg, res: check_structure(cfg, res.future_results),
    "PROJECTION": lambda cfg, res: check_projection(cfg, res.projection_results),
    "SOLVER": lambda cfg, res: (
        check_solver(cfg, res.rate_recommendations)
        if res.rate_recommendations is not None else []
    ),
}
SECTIONS = tuple(_SECTIONS)


def _selected(sections: list[str] | None) -> list[str]:
    if sections is None:
        return list(SECTIONS)
    wanted = [s.upper() for s in sections]
    unknown = [s for s in wanted if s not in _SECTIONS]
    if unknown:
        raise ValueError(
            f"Unknown audit section(s) {unknown}; expected one of {list(SECTIONS)}"
        )
    return [s for s in SECTIONS if s in wanted]


def _summarize(checks: list[tuple]) -> dict:
    tally = Counter(
        (classify_check(c[0], c[1]), bool(c[5])) for c in checks
    )
    return {
        "total": len(checks),
        "arithmetic_pass": tally[("arithmetic", True)],
        "arithmetic_fail": tally[("arithmetic", False)],
        "design_pass": tally[("model_design", True)],
        "design_fail": tally[("model_design", False)],
    }


def run_all_checks(
    result: CalculationResults | None = None,
    cfg: Configuration | None = None,
    sections: list[str] | None = None,
) -> dict:
    """Audit `result`, computing it from `cfg` (default: baseline) when absent.

    Keys of the returned dict:
        results       check tuples (section, name, expected, actual, delta, passed)
        summary       pass/fail counts split into arithmetic and model design
        model_result  the audited CalculationResults, None when inputs were invalid
    """
    selected = _selected(sections)
    cfg = cfg if cfg is not None else Configuration.load_baseline()
    if result is None:
        result = calculate_all(cfg)

    checks: list[tuple] = []
    if result is not None:
        for name in selected:
            checks.extend(_SECTIONS[name](cfg, result))

    return {"results": checks, "summary": _summarize(checks), "model_result": result}
