"""
Edge Output File Schemas — Centralized schema contract.

Single source of truth for required columns across every CSV the pipeline
writes. Writers run validate_output() before to_csv() so a renamed field in
a result dataclass fails at the gate instead of silently producing a sheet
downstream consumers cannot read.

Usage:
    from edge_output_schemas import validate_output, OUTPUT_FILE_SCHEMAS

    validate_output(df, "pick_sheet")  # warns (or raises with strict=True)
"""

import logging
from typing import Dict, List

import pandas as pd

log = logging.getLogger(__name__)

# ── Required column sets per output file ─────────────────────────────────────
# Each key is a logical output name; value is the set of columns that MUST
# exist in the DataFrame before it is written to CSV.

OUTPUT_FILE_SCHEMAS: Dict[str, List[str]] = {
    "pick_sheet": [
        "game_id", "league", "home_team", "away_team", "start_time",
        "spread", "total",
        "elo_home", "elo_away", "elo_prob", "elo_rec", "elo_margin",
        "rules_prob", "rules_rec", "rules_violation_count",
        "ens_recommendation", "ens_probability", "ens_consensus", "ens_agreement",
        "is_steam_move", "steam_direction", "late_movement",
        "released", "verify_attempts",
    ],
    "rules_violations": [
        "game_id", "rule", "team", "adjustment", "severity", "message",
    ],
    "line_velocity": [
        "game_id", "spread_velocity", "total_velocity",
        "spread_moved", "total_moved", "hours_tracked",
        "is_steam_move", "steam_direction", "late_movement",
    ],
    "verification_log": [
        "game_id", "attempt", "passed", "issue_count", "issues", "released",
    ],
    "elo_ratings": [
        "league", "team", "rating", "games", "last_updated",
    ],
    "results_log": [
        "game_id", "home_team", "away_team", "home_score", "away_score",
        "home_won", "margin", "pick_side", "ens_recommendation",
        "pick_result", "elo_updated",
    ],
}


def validate_output(
    df: pd.DataFrame,
    schema_name: str,
    *,
    strict: bool = False,
) -> List[str]:
    """Validate a DataFrame against a named output schema.

    Parameters
    ----------
    df : pd.DataFrame
        The DataFrame to validate.
    schema_name : str
        Key into ``OUTPUT_FILE_SCHEMAS``.
    strict : bool
        If *True*, raise ``ValueError`` on any missing columns.
        If *False* (default), log a warning and return the missing columns.

    Returns
    -------
    list[str]
        Sorted list of missing required columns (empty if all present).

    Raises
    ------
    KeyError
        If *schema_name* is not defined in ``OUTPUT_FILE_SCHEMAS``.
    ValueError
        If *strict* is True and required columns are missing.
    """
    required = OUTPUT_FILE_SCHEMAS.get(schema_name)
    if required is None:
        raise KeyError(f"Unknown output schema: {schema_name!r}")

    missing = sorted(set(required) - set(df.columns))

    if missing:
        msg = f"Output '{schema_name}' missing required columns: {missing}"
        if strict:
            raise ValueError(msg)
        log.warning(msg)

    return missing


def completeness_report(
    dataframes: Dict[str, pd.DataFrame],
) -> pd.DataFrame:
    """One row per known output: rows, column coverage and null rate.

    Columns: ``output, rows, required_cols, present_cols, missing_cols,
    missing_list, null_pct``. null_pct averages over the required columns
    that are present; an empty frame reports None since there is nothing
    to measure. Names not in ``OUTPUT_FILE_SCHEMAS`` are skipped.
    """
    rows = []
    for name, df in dataframes.items():
        schema = OUTPUT_FILE_SCHEMAS.get(name)
        if schema is None:
            continue

        required_set = set(schema)
        present = sorted(required_set & set(df.columns))
        missing = sorted(required_set - set(df.columns))

        if len(df) == 0:
            null_pct = None
        elif present:
            null_pct = round(float(df[present].isnull().mean().mean()) * 100, 2)
        else:
            null_pct = 100.0

        rows.append({
            "output": name,
            "rows": len(df),
            "required_cols": len(schema),
            "present_cols": len(present),
            "missing_cols": len(missing),
            "missing_list": ", ".join(missing) if missing else "",
            "null_pct": null_pct,
        })

    return pd.DataFrame(rows)


def write_output(df: pd.DataFrame, schema_name: str, path, *, strict: bool = False) -> List[str]:
    """Schema gate then CSV write. Returns the missing-column list."""
    missing = validate_output(df, schema_name, strict=strict)
    df.to_csv(path, index=False)
    log.info(f"Wrote {len(df)} rows → {path} ({schema_name})")
    return missing
