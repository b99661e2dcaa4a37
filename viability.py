"""
Candidate Viability Metrics

This module computes electoral competitiveness metrics from per-zone,
per-candidate vote tallies of a single election. Each candidate is classified
using the effective number of candidates (Laakso-Taagepera, 1 / sum of squared
shares) of their party and of every zone they ran in.

Functions:
    - effective_number(): Effective number of candidates per group
    - within_threshold(): Rank <= ceiling(effective number) check
    - aggregate_by_party(): Per-candidate totals, party effective count, viability
    - aggregate_by_zone(): Per-zone shares, zone effective count, association
    - classify_candidates(): Join of both aggregations, intermediate flag
    - partition_masks(): Elected / Unelected Viable / Intermediate row filters
    - summarize_partitions(): Summary statistics per partition
    - party_effective_counts(): One row per party
    - zone_effective_counts(): One row per zone
    - summarize_candidates(): One row per candidate across zones
    - compute_viability(): Run the full pipeline
"""

import numpy as np
import pandas as pd
from typing import Dict, Iterable, List, Tuple


# Configuration
EFFECTIVE_COUNT_DECIMALS = 9
IDENTITY_COLUMNS = [
    'candidate_number',
    'candidate_name',
    'ballot_name',
    'party_number',
    'party_name',
    'situation_code',
    'situation_description',
]
PARTITIONS = ['Elected', 'Unelected Viable', 'Intermediate']
SUMMARY_METRICS = [
    'Number',
    'Mean rank in party',
    'Min rank in party',
    'Max rank in party',
    'Max share in zone (%)',
]


class DataIntegrityError(ValueError):
    """Raised when candidate identities do not line up across aggregations."""

    def __init__(self, message: str, candidate_ids: Iterable):
        self.candidate_ids = sorted(set(candidate_ids), key=str)
        super().__init__(f"{message}: {self.candidate_ids}")


def _require_columns(df: pd.DataFrame, columns: List[str]) -> None:
    missing = [col for col in columns if col not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")


def effective_number(
    shares: pd.Series,
    groups: pd.Series,
    group_total: pd.Series
) -> pd.Series:
    """
    Calculate the effective number of candidates for every row's group.

    The effective number is 1 / sum(share^2) over the group. It equals N for N
    equal shares and approaches 1 as a single share dominates.

    Args:
        shares: Share of each row within its group (0-1)
        groups: Group key of each row (party or zone)
        group_total: Total votes of each row's group

    Returns:
        Series aligned with `shares`. Groups with zero total votes get NaN.

    Example:
        >>> shares = pd.Series([0.5, 0.5, 1.0])
        >>> groups = pd.Series(['X', 'X', 'Y'])
        >>> effective_number(shares, groups, pd.Series([10, 10, 5])).tolist()
        [2.0, 2.0, 1.0]
    """
    sum_of_squares = (shares ** 2).groupby(groups).transform('sum')
    return (1 / sum_of_squares).where(group_total > 0)


def within_threshold(rank: pd.Series, effective: pd.Series) -> pd.Series:
    """
    Check rank <= ceiling(effective number) for every row.

    Returns a nullable boolean Series; rows whose effective number is NaN
    (zero-vote groups) are NA rather than False.
    """
    threshold = np.ceil(effective.round(EFFECTIVE_COUNT_DECIMALS))
    return (rank <= threshold).astype('boolean').mask(effective.isna())


def aggregate_by_party(raw: pd.DataFrame) -> pd.DataFrame:
    """
    Collapse zone rows into per-candidate totals and classify viability.

    Args:
        raw: Raw results with zone, candidate_id, party_accronym and votes
            columns (one row per candidate per zone)

    Returns:
        DataFrame with one row per candidate:
        - candidate_id, party_accronym and the identity columns present in raw
        - total_votes: Votes summed across zones
        - party_vote: Total votes of the candidate's party
        - share: total_votes / party_vote
        - eff_in_party: Effective number of candidates in the party
        - rank_in_party: Rank by total_votes within party (ties share the
          minimum rank)
        - viable: rank_in_party <= ceiling(eff_in_party)

    Example:
        >>> by_party = aggregate_by_party(raw)
        >>> print(by_party[by_party['viable']].head())
    """
    _require_columns(raw, ['zone', 'candidate_id', 'party_accronym', 'votes'])

    # A candidate listed under two parties keeps two rows here; the join reports it
    identity = [col for col in IDENTITY_COLUMNS if col in raw.columns]
    aggregations = {'total_votes': ('votes', 'sum')}
    aggregations.update({col: (col, 'first') for col in identity})

    by_party = raw.groupby(
        ['candidate_id', 'party_accronym'], sort=False
    ).agg(**aggregations).reset_index()

    party = by_party['party_accronym']
    by_party['party_vote'] = by_party.groupby('party_accronym')['total_votes'].transform('sum')
    by_party['share'] = by_party['total_votes'] / by_party['party_vote']
    by_party['eff_in_party'] = effective_number(by_party['share'], party, by_party['party_vote'])
    by_party['rank_in_party'] = (
        by_party.groupby('party_accronym')['total_votes']
        .rank(ascending=False, method='min')
        .astype(int)
    )
    by_party['viable'] = within_threshold(by_party['rank_in_party'], by_party['eff_in_party'])

    print(f"Aggregated {len(by_party):,} candidates in {party.nunique()} parties")
    print(f"Viable candidates: {by_party['viable'].sum():,}")

    return by_party


def aggregate_by_zone(raw: pd.DataFrame) -> pd.DataFrame:
    """
    Calculate zone shares and classify association for every zone row.

    Args:
        raw: Raw results (one row per candidate per zone)

    Returns:
        Copy of raw (same rows, same order) with added columns:
        - zone_vote: Total votes in the zone
        - share: votes / zone_vote
        - eff_in_zone: Effective number of candidates in the zone
        - rank_in_zone: Rank by votes within zone (ties share the minimum rank)
        - associate: rank_in_zone <= ceiling(eff_in_zone)
    """
    _require_columns(raw, ['zone', 'candidate_id', 'votes'])

    by_zone = raw.copy()
    by_zone['zone_vote'] = by_zone.groupby('zone')['votes'].transform('sum')
    by_zone['share'] = by_zone['votes'] / by_zone['zone_vote']
    by_zone['eff_in_zone'] = effective_number(by_zone['share'], by_zone['zone'], by_zone['zone_vote'])
    by_zone['rank_in_zone'] = (
        by_zone.groupby('zone')['votes']
        .rank(ascending=False, method='min')
        .astype(int)
    )
    by_zone['associate'] = within_threshold(by_zone['rank_in_zone'], by_zone['eff_in_zone'])

    print(f"Aggregated {len(by_zone):,} candidate-zone rows in {by_zone['zone'].nunique()} zones")
    print(f"Associate rows: {by_zone['associate'].sum():,}")

    return by_zone


def classify_candidates(by_party: pd.DataFrame, by_zone: pd.DataFrame) -> pd.DataFrame:
    """
    Join party-level viability onto zone rows and flag intermediate candidates.

    Every zone row must match exactly one party-level row by candidate_id.

    Args:
        by_party: DataFrame from aggregate_by_party()
        by_zone: DataFrame from aggregate_by_zone()

    Returns:
        by_zone rows with eff_in_party, rank_in_party, viable and
        intermediate (associate and not viable) columns added

    Raises:
        DataIntegrityError: A candidate has zero or several party-level rows
    """
    duplicated = by_party.loc[by_party['candidate_id'].duplicated(keep=False), 'candidate_id']
    if not duplicated.empty:
        raise DataIntegrityError(
            "Candidates with more than one party-level record", duplicated
        )

    unmatched = ~by_zone['candidate_id'].isin(by_party['candidate_id'])
    if unmatched.any():
        raise DataIntegrityError(
            "Candidates without a party-level record", by_zone.loc[unmatched, 'candidate_id']
        )

    classified = by_zone.merge(
        by_party[['candidate_id', 'eff_in_party', 'rank_in_party', 'viable']],
        on='candidate_id',
        how='left',
        validate='many_to_one'
    )
    classified['intermediate'] = classified['associate'] & ~classified['viable']

    print(f"Classified {len(classified):,} candidate-zone rows")
    print(f"Intermediate rows: {classified['intermediate'].sum():,}")

    return classified


def partition_masks(classified: pd.DataFrame, elected_codes: Iterable[int]) -> Dict[str, pd.Series]:
    """
    Build the row filters for the Elected, Unelected Viable and Intermediate
    partitions.

    The filters are independent: a row may satisfy more than one of them.
    NA viability or intermediate flags count as False.
    """
    _require_columns(classified, ['situation_code', 'viable', 'intermediate'])

    elected = classified['situation_code'].isin(list(elected_codes))
    viable = classified['viable'].fillna(False).astype(bool)
    intermediate = classified['intermediate'].fillna(False).astype(bool)

    return {
        'Elected': elected,
        'Unelected Viable': viable & ~elected,
        'Intermediate': intermediate,
    }


def summarize_partitions(classified: pd.DataFrame, elected_codes: Iterable[int]) -> pd.DataFrame:
    """
    Calculate summary statistics for each candidate partition.

    Args:
        classified: DataFrame from classify_candidates()
        elected_codes: situation_code values that denote an elected candidate

    Returns:
        DataFrame indexed by metric (Number, Mean/Min/Max rank in party,
        Max share in zone (%)) with one column per partition. Rank metrics
        are taken over the partition's distinct candidates, the share over
        its zone rows. Empty partitions have Number 0 and NaN elsewhere.
        The frame is float throughout, so Number is a whole float (2.0).

    Example:
        >>> summary = summarize_partitions(classified, elected_codes=(2, 3))
        >>> print(summary)
    """
    stats = {}
    for name, mask in partition_masks(classified, elected_codes).items():
        rows = classified[mask]
        candidates = rows.drop_duplicates('candidate_id')
        stats[name] = {
            'Number': len(candidates),
            'Mean rank in party': candidates['rank_in_party'].mean(),
            'Min rank in party': candidates['rank_in_party'].min(),
            'Max rank in party': candidates['rank_in_party'].max(),
            'Max share in zone (%)': rows['share'].max() * 100,
        }

    summary = pd.DataFrame(stats, index=SUMMARY_METRICS, columns=PARTITIONS)

    for name in PARTITIONS:
        print(f"{name}: {summary.loc['Number', name]:,.0f} candidates")

    return summary


def party_effective_counts(by_party: pd.DataFrame) -> pd.DataFrame:
    """
    One row per party, sorted by party vote (descending).

    Columns: party_accronym, Num_Candidates, Party_Vote, Eff_In_Party,
    Num_Viable.
    """
    party_counts = by_party.groupby('party_accronym').agg(
        Num_Candidates=('candidate_id', 'nunique'),
        Party_Vote=('total_votes', 'sum'),
        Eff_In_Party=('eff_in_party', 'first'),
        Num_Viable=('viable', 'sum'),
    ).reset_index()

    return party_counts.sort_values('Party_Vote', ascending=False, ignore_index=True)


def zone_effective_counts(by_zone: pd.DataFrame) -> pd.DataFrame:
    """One row per zone with candidate count, zone vote, effective number and associates."""
    zone_counts = by_zone.groupby('zone').agg(
        Num_Candidates=('candidate_id', 'nunique'),
        Zone_Vote=('votes', 'sum'),
        Eff_In_Zone=('eff_in_zone', 'first'),
        Num_Associates=('associate', 'sum'),
    ).reset_index()

    return zone_counts


def summarize_candidates(classified: pd.DataFrame) -> pd.DataFrame:
    """
    Collapse classified zone rows into one row per candidate.

    Returns:
        DataFrame with columns:
        - candidate_id
        - Num_Zones: Zones where the candidate has a row
        - Zones_Associate: Zones where the candidate is an associate
        - Zones_Intermediate: Zones where the candidate is intermediate
        - Max_Share_In_Zone: Best zone share (%)
        - rank_in_party, eff_in_party, viable
    """
    candidates = classified.groupby('candidate_id', sort=False).agg(
        Num_Zones=('zone', 'nunique'),
        Zones_Associate=('associate', 'sum'),
        Zones_Intermediate=('intermediate', 'sum'),
        Max_Share_In_Zone=('share', 'max'),
        rank_in_party=('rank_in_party', 'first'),
        eff_in_party=('eff_in_party', 'first'),
        viable=('viable', 'first'),
    ).reset_index()
    candidates['Max_Share_In_Zone'] = candidates['Max_Share_In_Zone'] * 100

    return candidates


def compute_viability(
    raw: pd.DataFrame,
    elected_codes: Iterable[int]
) -> Tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame, pd.DataFrame]:
    """
    Run the full pipeline on one race.

    Args:
        raw: Raw results (one row per candidate per zone)
        elected_codes: situation_code values that denote an elected candidate

    Returns:
        Tuple of (by_party, by_zone, classified, summary)

    Example:
        >>> raw = rrl.load_raw_results("votacao_candidato_munzona_2020_SP.csv", office="Vereador")
        >>> _, _, classified, summary = compute_viability(raw, rrl.DEFAULT_ELECTED_CODES)
    """
    by_party = aggregate_by_party(raw)
    by_zone = aggregate_by_zone(raw)
    classified = classify_candidates(by_party, by_zone)
    summary = summarize_partitions(classified, elected_codes)
    return by_party, by_zone, classified, summary
