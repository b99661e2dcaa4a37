"""
Raw Result Loading Utilities

This module reads candidate vote tallies from a local TSE (Brazilian Superior
Electoral Court) "votacao_candidato_munzona" CSV export and turns them into
raw result rows (one row per candidate per zone) for a single race. Files are
cached locally as Parquet for faster subsequent loads.

Functions:
    - read_raw_results(): Read the CSV export, with local caching
    - filter_race(): Narrow the export to one year/state/municipality/office/round
    - select_raw_columns(): Select and rename columns to the raw result schema
    - check_raw_results(): Validate required columns, votes and row uniqueness
    - load_raw_results(): Read, filter, select and check in one call
"""

import pandas as pd
from pathlib import Path
from typing import Optional

from viability import DataIntegrityError


# Configuration
DEFAULT_CACHE_DIR = Path(".")
DEFAULT_ELECTED_CODES = (2, 3)  # CD_SIT_TOT_TURNO: elected by quotient / by average
CSV_SEPARATOR = ';'
CSV_ENCODING = 'latin-1'

RAW_COLUMN_MAP = {
    'NR_ZONA': 'zone',
    'SQ_CANDIDATO': 'candidate_id',
    'NR_CANDIDATO': 'candidate_number',
    'NM_CANDIDATO': 'candidate_name',
    'NM_URNA_CANDIDATO': 'ballot_name',
    'NR_PARTIDO': 'party_number',
    'SG_PARTIDO': 'party_accronym',
    'NM_PARTIDO': 'party_name',
    'QT_VOTOS_NOMINAIS': 'votes',
    'CD_SIT_TOT_TURNO': 'situation_code',
    'DS_SIT_TOT_TURNO': 'situation_description',
}
INTEGER_COLUMNS = ['zone', 'candidate_number', 'party_number', 'votes', 'situation_code']
REQUIRED_COLUMNS = ['zone', 'candidate_id', 'party_accronym', 'votes', 'situation_code']

# Raw export columns used by filter_race()
YEAR_COLUMN = 'ANO_ELEICAO'
STATE_COLUMN = 'SG_UF'
MUNICIPALITY_COLUMN = 'NM_MUNICIPIO'
OFFICE_COLUMN = 'DS_CARGO'
ROUND_COLUMN = 'NR_TURNO'


def read_raw_results(
    csv_path: str,
    cache_file: Optional[str] = None,
    force_reload: bool = False
) -> pd.DataFrame:
    """
    Read a TSE candidate-by-zone CSV export, with local caching.

    The first read parses the CSV and caches it as a Parquet file in
    DEFAULT_CACHE_DIR; later reads load the cache.

    Args:
        csv_path: Path to the CSV export
        cache_file: Path to the cache file (default: "<csv stem>.parquet")
        force_reload: If True, parse the CSV even if the cache exists

    Returns:
        DataFrame with the raw export columns (NR_ZONA, SQ_CANDIDATO, ...)

    Raises:
        FileNotFoundError: The CSV is missing and there is no cache to fall back on

    Example:
        >>> df = read_raw_results("votacao_candidato_munzona_2020_SP.csv")
        >>> print(f"Loaded {len(df):,} rows")
    """
    csv_file = Path(csv_path)
    if cache_file is None:
        cache_file = DEFAULT_CACHE_DIR / f"{csv_file.stem}.parquet"

    parquet_file = Path(cache_file)

    if parquet_file.exists() and not force_reload:
        print(f"Loading cached raw results from {parquet_file}")
        df = pd.read_parquet(parquet_file)
    else:
        if not csv_file.exists():
            raise FileNotFoundError(f"Raw results file not found: {csv_file}")

        print(f"Reading raw results from {csv_file}...")
        df = pd.read_csv(
            csv_file,
            sep=CSV_SEPARATOR,
            encoding=CSV_ENCODING,
            dtype={'SQ_CANDIDATO': str}
        )

        df.to_parquet(parquet_file)
        print(f"Data cached to {parquet_file}")

    print(f"Loaded {len(df):,} raw result records")
    return df


def filter_race(
    df: pd.DataFrame,
    year: Optional[int] = None,
    state: Optional[str] = None,
    municipality: Optional[str] = None,
    office: Optional[str] = None,
    round_number: Optional[int] = None
) -> pd.DataFrame:
    """
    Narrow a raw export to a single race.

    Every argument left as None is not filtered on. Text filters ignore case
    and surrounding whitespace.

    Args:
        df: DataFrame from read_raw_results()
        year: Election year (ANO_ELEICAO)
        state: State abbreviation (SG_UF), e.g. "SP"
        municipality: Municipality name (NM_MUNICIPIO)
        office: Office description (DS_CARGO), e.g. "Vereador"
        round_number: Election round (NR_TURNO)

    Returns:
        Filtered copy of df
    """
    mask = pd.Series(True, index=df.index)

    for column, value in [(YEAR_COLUMN, year), (ROUND_COLUMN, round_number)]:
        if value is not None:
            mask &= df[column].astype(int) == int(value)

    for column, value in [
        (STATE_COLUMN, state),
        (MUNICIPALITY_COLUMN, municipality),
        (OFFICE_COLUMN, office),
    ]:
        if value is not None:
            mask &= df[column].astype(str).str.strip().str.upper() == value.strip().upper()

    race = df[mask].copy()
    print(f"Filtered to {len(race):,} of {len(df):,} records")
    return race


def select_raw_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Select and rename the raw export columns to the raw result schema.

    Returns:
        DataFrame with columns zone, candidate_id, candidate_number,
        candidate_name, ballot_name, party_number, party_accronym, party_name,
        votes, situation_code, situation_description. Columns missing from
        the export are skipped; numeric ones are cast to integers.
    """
    present = [col for col in RAW_COLUMN_MAP if col in df.columns]
    raw = df[present].rename(columns=RAW_COLUMN_MAP)

    for col in INTEGER_COLUMNS:
        if col in raw.columns:
            raw[col] = pd.to_numeric(raw[col]).astype('int64')

    return raw.reset_index(drop=True)


def check_raw_results(raw: pd.DataFrame) -> pd.DataFrame:
    """
    Validate raw result rows before aggregation.

    Raises:
        ValueError: Required columns are missing or empty, or a vote count is negative
        DataIntegrityError: A (zone, candidate_id) pair appears more than once

    Returns:
        raw, unchanged
    """
    missing = [col for col in REQUIRED_COLUMNS if col not in raw.columns]
    if missing:
        raise ValueError(f"Raw results are missing required columns: {missing}")

    incomplete = [col for col in REQUIRED_COLUMNS if raw[col].isna().any()]
    if incomplete:
        raise ValueError(f"Raw results have empty values in required columns: {incomplete}")

    negative = raw[raw['votes'] < 0]
    if not negative.empty:
        raise ValueError(
            f"Negative vote counts for candidates: {sorted(negative['candidate_id'].unique(), key=str)}"
        )

    duplicated = raw.duplicated(subset=['zone', 'candidate_id'], keep=False)
    if duplicated.any():
        raise DataIntegrityError(
            "Candidates with more than one row in a zone", raw.loc[duplicated, 'candidate_id']
        )

    return raw


def load_raw_results(
    csv_path: str,
    year: Optional[int] = None,
    state: Optional[str] = None,
    municipality: Optional[str] = None,
    office: Optional[str] = None,
    round_number: Optional[int] = None,
    cache_file: Optional[str] = None,
    force_reload: bool = False
) -> pd.DataFrame:
    """
    Load the raw result rows of one race.

    Example:
        >>> raw = load_raw_results(
        ...     "votacao_candidato_munzona_2020_SP.csv",
        ...     year=2020, municipality="São Paulo", office="Vereador", round_number=1
        ... )
        >>> print(raw[['zone', 'candidate_id', 'votes']].head())
    """
    df = read_raw_results(csv_path, cache_file=cache_file, force_reload=force_reload)
    race = filter_race(
        df,
        year=year,
        state=state,
        municipality=municipality,
        office=office,
        round_number=round_number
    )
    raw = check_raw_results(select_raw_columns(race))

    print(f"Raw results: {len(raw):,} rows, {raw['candidate_id'].nunique():,} candidates, "
          f"{raw['zone'].nunique()} zones")
    return raw
