"""
Edge Pipeline — Fact Checker
edge_fact_checker.py

Last gate before anything generated leaves the building. Reads a
CandidateArtifact against the authoritative GameData and lists every claim
that does not hold up. It never edits the artifact and never calls the
writer; the verification gate decides what to do with the issues.

CHECKS
─────────────────────────────────────────────────────────────────────────────
spread     First "<n> point" / "<n>-pt" claim (reasoning first, then the
           broadcast). Sign is ignored: "7.5 point favourites" and "+7.5"
           both describe a 7.5 spread. Fails beyond SPREAD_TOLERANCE.
location   Away team described as at home, or home team described as away /
           on the road. Only the clause that follows the team name counts,
           and only up to the point where the other team is named.
           "away from home" and "home and away" place no one.
weekday    Any weekday named (full name in any case, or a capitalised
           abbreviation followed by a date, time or "night") that is not
           the game's local weekday.
stats      Every "N ppg" claim above MAX_PPG_CLAIM, every "N% win" claim
           above MAX_WIN_PCT_CLAIM.

A check that finds no claim to test passes.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from edge_config import LOCAL_TZ, MAX_PPG_CLAIM, MAX_WIN_PCT_CLAIM, SPREAD_TOLERANCE
from edge_models import CandidateArtifact, GameData, ValidationResult

log = logging.getLogger(__name__)

SPREAD_RE  = re.compile(r"([+-]?\d+(?:\.\d+)?)[\s-]*(?:points?|pts?)\b(?!\s+per\b)", re.I)
PPG_RE     = re.compile(r"(\d+(?:\.\d+)?)\s*(?:ppg|points per game)\b", re.I)
WIN_PCT_RE = re.compile(r"(\d+(?:\.\d+)?)\s*%\s*(?:win|winning)\b", re.I)
CLAUSE_END = re.compile(r"[.!?;]")
HOME_WORD  = re.compile(r"\bhome\b", re.I)
AWAY_WORD  = re.compile(r"\b(?:away|road)\b", re.I)
# Phrases that name a location without placing the team there
NEUTRAL_LOCATION_RE = re.compile(
    r"\baway from home\b|\bhome[\s-]+(?:and|or|&)[\s-]+away\b|\baway[\s-]+(?:and|or|&)[\s-]+home\b"
    r"|\bhome[\s-]+(?:and|or|&)[\s-]+road\b|\broad[\s-]+(?:and|or|&)[\s-]+home\b",
    re.I,
)

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
DAY_ABBRS = {
    "Mon": "monday", "Tue": "tuesday", "Tues": "tuesday", "Wed": "wednesday",
    "Thu": "thursday", "Thur": "thursday", "Thurs": "thursday",
    "Fri": "friday", "Sat": "saturday", "Sun": "sunday",
}
WEEKDAY_RE = re.compile(r"\b(" + "|".join(WEEKDAYS) + r")\b", re.I)
MONTH_ABBRS = "Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec"
# Abbreviations are case-sensitive and need a date, time or "night" after
# them: "sun" / "sat" in prose and "Sat out" are not dates
DAY_ABBR_RE = re.compile(
    r"\b(" + "|".join(sorted(DAY_ABBRS, key=len, reverse=True)) + r")\b\.?"
    r"(?=,?\s*(?:\d|night\b|(?:" + MONTH_ABBRS + r")[a-z]*\.?\s+\d|$))"
)

MIN_NICKNAME_LEN = 4


@dataclass
class FactCheckConfig:
    spread_tolerance: float = SPREAD_TOLERANCE
    max_ppg:          float = MAX_PPG_CLAIM
    max_win_pct:      float = MAX_WIN_PCT_CLAIM


def _team_aliases(team: str) -> List[str]:
    """Full name plus nickname (last word), longest first."""
    aliases = [team.strip()]
    parts = team.split()
    if len(parts) > 1 and len(parts[-1]) >= MIN_NICKNAME_LEN:
        aliases.append(parts[-1])
    return [a for a in aliases if a]


def _alias_pattern(team: str) -> Optional[re.Pattern]:
    aliases = _team_aliases(team)
    if not aliases:
        return None
    return re.compile(r"\b(?:" + "|".join(re.escape(a) for a in aliases) + r")\b", re.I)


def _fmt(x: float) -> str:
    return f"{x:g}"


class FactChecker:
    """
    Usage:
        result = FactChecker().validate(artifact, game)
        if not result.passed:
            print(format_result(result))
    """

    def __init__(self, config: FactCheckConfig = None):
        self.config = config or FactCheckConfig()

    def validate(self, artifact: CandidateArtifact, game: GameData) -> ValidationResult:
        issues: List[str] = []

        spread_issue = self.verify_spread(artifact, game)
        if spread_issue:
            issues.append(spread_issue)
        issues.extend(self.verify_teams(artifact, game))
        date_issue = self.verify_weekday(artifact, game)
        if date_issue:
            issues.append(date_issue)
        issues.extend(self.verify_stats(artifact))

        if issues:
            log.debug(f"{game.game_id}: {len(issues)} fact-check issue(s)")
        return ValidationResult(passed=not issues, issues=tuple(issues))

    # ── Spread ────────────────────────────────────────────────────────────────

    def verify_spread(self, artifact: CandidateArtifact, game: GameData) -> Optional[str]:
        match = SPREAD_RE.search(artifact.reasoning or "") or SPREAD_RE.search(artifact.broadcast or "")
        if not match:
            return None
        claimed = float(match.group(1))
        if abs(abs(claimed) - abs(game.spread)) > self.config.spread_tolerance:
            return f"Spread mismatch: claimed {_fmt(claimed)}, actual is {_fmt(game.spread)}"
        return None

    # ── Home / away ───────────────────────────────────────────────────────────

    def verify_teams(self, artifact: CandidateArtifact, game: GameData) -> List[str]:
        text  = f"{artifact.reasoning or ''} {artifact.broadcast or ''}"
        text  = NEUTRAL_LOCATION_RE.sub(" ", text)
        home  = _alias_pattern(game.home_team)
        away  = _alias_pattern(game.away_team)
        if home is None or away is None:
            return []

        issues = []
        if self._claims_location(text, away, home, HOME_WORD):
            issues.append(f"Team location error: {game.away_team} is the away team, not home")
        if self._claims_location(text, home, away, AWAY_WORD):
            issues.append(f"Team location error: {game.home_team} is the home team, not away")
        return issues

    @staticmethod
    def _claims_location(
        text: str,
        subject: re.Pattern,
        other: re.Pattern,
        location: re.Pattern,
    ) -> bool:
        for m in subject.finditer(text):
            clause = text[m.end():]
            end = CLAUSE_END.search(clause)
            if end:
                clause = clause[:end.start()]
            named = other.search(clause)
            if named:
                clause = clause[:named.start()]
            if location.search(clause):
                return True
        return False

    # ── Weekday ───────────────────────────────────────────────────────────────

    def verify_weekday(self, artifact: CandidateArtifact, game: GameData) -> Optional[str]:
        actual = WEEKDAYS[game.start_time.astimezone(LOCAL_TZ).weekday()]
        for text in (artifact.reasoning or "", artifact.broadcast or ""):
            for claimed in self._mentioned_days(text):
                if claimed != actual:
                    return f'Date mismatch: claims "{claimed}" but game is on {actual}'
        return None

    @staticmethod
    def _mentioned_days(text: str) -> List[str]:
        found: List[Tuple[int, str]] = [(m.start(), m.group(1).lower()) for m in WEEKDAY_RE.finditer(text)]
        found += [(m.start(), DAY_ABBRS[m.group(1)]) for m in DAY_ABBR_RE.finditer(text)]
        return [day for _, day in sorted(found)]

    # ── Stat plausibility ─────────────────────────────────────────────────────

    def verify_stats(self, artifact: CandidateArtifact) -> List[str]:
        text   = f"{artifact.reasoning or ''} {artifact.broadcast or ''}"
        issues = []
        for m in PPG_RE.finditer(text):
            ppg = float(m.group(1))
            if ppg > self.config.max_ppg:
                issues.append(f"Implausible stat: {_fmt(ppg)} PPG is unrealistic")
        for m in WIN_PCT_RE.finditer(text):
            pct = float(m.group(1))
            if pct > self.config.max_win_pct:
                issues.append(f"Invalid percentage: {_fmt(pct)}% exceeds 100")
        return issues


# ── Helpers ───────────────────────────────────────────────────────────────────

def format_result(result: ValidationResult) -> str:
    if result.passed:
        return "VERIFICATION PASSED"
    lines = ["VERIFICATION FAILED", "Issues:"]
    lines += [f"  - {issue}" for issue in result.issues]
    return "\n".join(lines)


def is_valid(result: ValidationResult) -> bool:
    return result.passed


def get_issue_count(result: ValidationResult) -> int:
    return len(result.issues)
