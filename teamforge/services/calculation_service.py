"""
Statistics calculation service.
Pure functions over game stat rows and season caches; nothing here touches the store.
"""

from typing import Dict, Iterable, List, Optional, Sequence
import math

from teamforge.models.schemas import (
    PlayerAverages,
    PlayerRating,
    PlayerSeasonTotals,
    SeasonTotals,
    StatDrift,
    StatLine,
    TeamSeasonAverages,
    TeamSeasonStats,
)
from teamforge.utils.constants import MAX_LINEUP_SIZE

# Counting stats carried by every stat line, in display order
STAT_FIELDS = list(StatLine.model_fields)

# Balanced lineup thresholds
SCORER_PPG = 8
DEFENDER_STOCKS = 1.5
PLAYMAKER_APG = 3


# ============================================================================
# Rounding
# ============================================================================

def round_half_up(value: float, digits: int = 1) -> float:
    """
    Round to ``digits`` decimals with halves going up (towards +inf).

    Python's round() uses banker's rounding; averages shown to users round
    2.25 to 2.3, so half-up is used throughout.
    """
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def per_game(total: float, games: int) -> float:
    """Per-game average to 0.1; zero when no games were played."""
    if games <= 0:
        return 0
    return round_half_up(total / games)


def percentage(made: int, attempted: int) -> float:
    """Shooting percentage to 0.1%; zero when nothing was attempted."""
    if attempted <= 0:
        return 0
    return round_half_up(made / attempted * 100)


# ============================================================================
# Totals
# ============================================================================

def sum_stat_lines(lines: Iterable[StatLine]) -> StatLine:
    """Add stat lines field by field."""
    totals = {field: 0 for field in STAT_FIELDS}
    for line in lines:
        for field in STAT_FIELDS:
            totals[field] += getattr(line, field)
    return StatLine(**totals)


def count_players_with_stats(lines: Iterable[StatLine]) -> int:
    return sum(1 for line in lines if line.has_activity())


def totals_from_rows(rows: Sequence[StatLine], games_played: Optional[int] = None) -> SeasonTotals:
    """
    Season totals for a set of rows.

    Args:
        rows: Stat lines to add up
        games_played: Number of games the rows span; defaults to one game per row

    Returns:
        SeasonTotals with every total_* summed
    """
    line = sum_stat_lines(rows)
    return SeasonTotals(
        games_played=len(rows) if games_played is None else games_played,
        **{f"total_{field}": getattr(line, field) for field in STAT_FIELDS},
    )


def add_game_to_totals(totals: Dict[str, float], line: StatLine) -> Dict[str, float]:
    """Return a copy of cumulative ``totals`` with one more game of ``line`` added."""
    updated = dict(totals)
    updated["games_played"] = updated.get("games_played", 0) + 1
    for field in STAT_FIELDS:
        key = f"total_{field}"
        updated[key] = updated.get(key, 0) + getattr(line, field)
    return updated


# ============================================================================
# Averages
# ============================================================================

def averages_from_totals(totals: SeasonTotals) -> PlayerAverages:
    games = totals.games_played
    if games <= 0:
        return PlayerAverages()
    return PlayerAverages(
        games_played=games,
        ppg=per_game(totals.total_points, games),
        apg=per_game(totals.total_assists, games),
        rpg=per_game(totals.total_rebounds, games),
        spg=per_game(totals.total_steals, games),
        bpg=per_game(totals.total_blocks, games),
        tpg=per_game(totals.total_turnovers, games),
        mpg=per_game(totals.total_minutes, games),
        fpg=per_game(totals.total_fouls, games),
        fg_percent=percentage(totals.total_fg_made, totals.total_fg_attempted),
        ft_percent=percentage(totals.total_ft_made, totals.total_ft_attempted),
        three_percent=percentage(totals.total_three_made, totals.total_three_attempted),
    )


def calculate_player_averages(rows: Sequence[StatLine]) -> PlayerAverages:
    """
    Per-game averages for one player's game rows.

    Each row is one game. With no rows every field is zero.
    """
    return averages_from_totals(totals_from_rows(rows))


def _team_averages(totals: SeasonTotals, wins: int, losses: int) -> TeamSeasonAverages:
    averages = averages_from_totals(totals)
    games = totals.games_played
    return TeamSeasonAverages(
        **averages.model_dump(),
        wins=wins if games > 0 else 0,
        losses=losses if games > 0 else 0,
        win_percent=percentage(wins, games),
    )


def calculate_team_season_averages(cache: Optional[TeamSeasonStats]) -> TeamSeasonAverages:
    """
    Team averages from the cumulative season cache.

    This trusts the cache. If the cache and the game stat rows ever disagree
    (a game saved twice, or a save that failed half way) these numbers drift
    from calculate_team_averages_from_rows.
    """
    if cache is None or cache.games_played <= 0:
        return TeamSeasonAverages()
    return _team_averages(cache, cache.wins, cache.losses)


def team_totals_from_rows(rows: Sequence) -> SeasonTotals:
    """Team totals from player game rows: one game per distinct game_id."""
    games = len({row.game_id for row in rows})
    return totals_from_rows(rows, games_played=games)


def calculate_team_averages_from_rows(rows: Sequence, wins: int = 0, losses: int = 0) -> TeamSeasonAverages:
    """Team averages recomputed from raw player game rows for that team."""
    totals = team_totals_from_rows(rows)
    if totals.games_played <= 0:
        return TeamSeasonAverages()
    return _team_averages(totals, wins, losses)


def calculate_player_season_totals(player_id: str, rows: Sequence[StatLine], season: int) -> PlayerSeasonTotals:
    totals = totals_from_rows(rows)
    return PlayerSeasonTotals(player_id=player_id, season=season, **totals.model_dump())


def compare_totals(cached: Optional[SeasonTotals], recomputed: SeasonTotals) -> List[StatDrift]:
    """Fields where the cache differs from totals recomputed from rows."""
    cached = cached or SeasonTotals()
    drift = []
    for field in SeasonTotals.model_fields:
        cached_value = getattr(cached, field)
        recomputed_value = getattr(recomputed, field)
        if not math.isclose(cached_value, recomputed_value, abs_tol=1e-9):
            drift.append(StatDrift(field=field, cached=cached_value, recomputed=recomputed_value))
    return drift


# ============================================================================
# Ratings
# ============================================================================

def player_efficiency(averages: PlayerAverages) -> int:
    """PTS + 2*REB + 2*AST + 3*STL + 3*BLK - 3*TO, rounded to a whole number."""
    return math.floor(
        averages.ppg
        + averages.rpg * 2
        + averages.apg * 2
        + averages.spg * 3
        + averages.bpg * 3
        - averages.tpg * 3
        + 0.5
    )


def overall_rating(averages: PlayerAverages) -> float:
    scoring = averages.ppg * 0.25
    rebounding = averages.rpg * 0.20
    playmaking = averages.apg * 0.25
    defense = (averages.spg + averages.bpg) * 0.15
    shooting = averages.fg_percent * 0.10
    turnovers = averages.tpg * -0.05
    return round_half_up(scoring + rebounding + playmaking + defense + shooting + turnovers)


def offensive_rating(averages: PlayerAverages) -> float:
    return (
        averages.ppg * 2.0
        + averages.apg * 1.5
        + averages.fg_percent * 0.1
        + averages.three_percent * 0.05
    )


def defensive_rating(averages: PlayerAverages) -> float:
    return (averages.spg + averages.bpg) * 3.0 + averages.rpg * 1.5 - averages.tpg * 1.0


def rate_player(player_id: str, name: str, averages: PlayerAverages) -> PlayerRating:
    return PlayerRating(
        player_id=player_id,
        name=name,
        averages=averages,
        efficiency=player_efficiency(averages),
        overall_rating=overall_rating(averages),
        offensive_rating=offensive_rating(averages),
        defensive_rating=defensive_rating(averages),
    )


# ============================================================================
# Lineup selection
# ============================================================================

def select_balanced_lineup(players: Sequence[PlayerRating], size: int = MAX_LINEUP_SIZE) -> List[PlayerRating]:
    """
    Pick a lineup mixing scoring, defense and playmaking.

    Players are taken in overall-rating order while the lineup still needs
    up to two scorers, two defenders and one playmaker (or has fewer than
    three players); remaining spots go to the best players left.
    """
    ranked = sorted(players, key=lambda p: p.overall_rating, reverse=True)
    selected: List[PlayerRating] = []
    scorers = defenders = playmakers = 0

    for player in ranked:
        if len(selected) >= size:
            break
        averages = player.averages
        is_scorer = averages.ppg >= SCORER_PPG
        is_defender = averages.spg + averages.bpg >= DEFENDER_STOCKS
        is_playmaker = averages.apg >= PLAYMAKER_APG

        if (
            (is_scorer and scorers < 2)
            or (is_defender and defenders < 2)
            or (is_playmaker and playmakers < 1)
            or len(selected) < 3
        ):
            selected.append(player)
            scorers += is_scorer
            defenders += is_defender
            playmakers += is_playmaker

    for player in ranked:
        if len(selected) >= size:
            break
        if player not in selected:
            selected.append(player)

    return selected[:size]


def select_offensive_lineup(players: Sequence[PlayerRating], size: int = MAX_LINEUP_SIZE) -> List[PlayerRating]:
    return sorted(players, key=lambda p: p.offensive_rating, reverse=True)[:size]


def select_defensive_lineup(players: Sequence[PlayerRating], size: int = MAX_LINEUP_SIZE) -> List[PlayerRating]:
    return sorted(players, key=lambda p: p.defensive_rating, reverse=True)[:size]
