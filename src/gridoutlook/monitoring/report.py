"""Forecast generation report writer helpers."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

from gridoutlook.data.records import ForecastBundle


def _count(items, level: str) -> int:
    return sum(1 for item in items if item.risk_level == level)


def summarize_bundle(bundle: ForecastBundle) -> Dict[str, Any]:
    """Compact, deterministic digest of one generation (no timestamps)."""
    demand: Dict[str, Dict[str, Any]] = {}
    for point in bundle.demand_forecasts:
        entry = demand.setdefault(
            point.grid,
            {
                "data_source": point.data_source,
                "growth_rate_pct": point.growth_rate_pct,
                "points": 0,
            },
        )
        entry["points"] += 1
        entry["horizon_end"] = point.projected_month.isoformat()
        entry["horizon_end_peak_mw"] = point.projected_peak_mw

    kpi_trends: Dict[str, str] = {}
    for point in bundle.kpi_forecasts:
        kpi_trends.setdefault(point.kpi_name, point.trend)

    return {
        "generation_date": bundle.generation_date.isoformat(),
        "input_fingerprint": bundle.input_fingerprint,
        "demand": demand,
        "capacity": [
            {
                "grid": c.grid,
                "reserve_margin_pct": c.reserve_margin_pct,
                "risk_level": c.risk_level,
                "shortfall_month": c.shortfall_month.isoformat() if c.shortfall_month else None,
                "months_until_shortfall": c.months_until_shortfall,
            }
            for c in bundle.capacity_timeline
        ],
        "load_shedding": {
            "trend": bundle.load_shedding.trend,
            "avg_shed_mw": bundle.load_shedding.avg_shed_mw,
            "projected_avg_6mo": bundle.load_shedding.projected_avg_6mo,
        },
        "stations": {
            "total": len(bundle.station_reliability),
            "critical": _count(bundle.station_reliability, "critical"),
            "warning": _count(bundle.station_reliability, "warning"),
        },
        "units": {
            "total": len(bundle.unit_risk),
            "high": _count(bundle.unit_risk, "high"),
            "medium": _count(bundle.unit_risk, "medium"),
            "persisted": len(bundle.persisted_unit_risk),
        },
        "kpi_trends": kpi_trends,
    }


def _markdown(summary: Dict[str, Any], bundle: ForecastBundle, top_units: int) -> List[str]:
    md = [f"# Forecast Report {summary['generation_date']}\n\n"]
    md.append(f"Input fingerprint: `{summary['input_fingerprint']}`\n\n")

    md.append("## Capacity adequacy\n\n")
    if summary["capacity"]:
        md.append("| Grid | Reserve margin % | Risk | Shortfall | Months |\n|---|---|---|---|---|\n")
        for row in summary["capacity"]:
            md.append(
                f"| {row['grid']} | {row['reserve_margin_pct']} | {row['risk_level']} | "
                f"{row['shortfall_month'] or '-'} | {row['months_until_shortfall'] if row['months_until_shortfall'] is not None else '-'} |\n"
            )
    else:
        md.append("No capacity data yet.\n")
    md.append("\n")

    shed = summary["load_shedding"]
    md.append("## Load shedding\n\n")
    md.append(f"- Trend: **{shed['trend']}**\n")
    md.append(f"- Average shed: **{shed['avg_shed_mw']} MW**\n")
    md.append(f"- Six-month projection: **{shed['projected_avg_6mo']} MW**\n\n")

    stations = summary["stations"]
    md.append("## Stations\n\n")
    md.append(
        f"{stations['total']} stations, {stations['critical']} critical, {stations['warning']} warning.\n\n"
    )

    md.append("## Units at risk\n\n")
    risky = [u for u in bundle.unit_risk if u.risk_level != "low"][:top_units]
    if risky:
        md.append("| Station | Unit | Score | Level | Uptime % | Failures |\n|---|---|---|---|---|---|\n")
        for u in risky:
            md.append(
                f"| {u.station} | {u.unit_id} | {u.risk_score} | {u.risk_level} | {u.uptime_pct} | {u.failure_count} |\n"
            )
    else:
        md.append("No units above low risk.\n")
    md.append("\n")
    return md


def write_forecast_report(
    bundle: ForecastBundle,
    out_path: str = "reports/forecast_report.md",
    json_path: str | None = None,
    top_units: int = 10,
) -> Dict[str, Any]:
    """Write a markdown report with the embedded summary; optionally the full bundle as JSON."""
    summary = summarize_bundle(bundle)
    output = Path(out_path)
    output.parent.mkdir(parents=True, exist_ok=True)
    md = _markdown(summary, bundle, top_units)
    md.append("## Summary\n\n```json\n" + json.dumps(summary, indent=2) + "\n```\n")
    output.write_text("".join(md), encoding="utf-8")

    if json_path:
        write_bundle_json(bundle, json_path)
    return summary


def write_bundle_json(bundle: ForecastBundle, out_path: str) -> None:
    output = Path(out_path)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(bundle.to_dict(), indent=2, sort_keys=True), encoding="utf-8")
