# test_raw_results_loader.py
import pandas as pd
import pytest
from pathlib import Path
from typing import List

import raw_results_loader as rrl
from viability import DataIntegrityError


EXPORT_HEADERS = [
    'ANO_ELEICAO', 'NR_TURNO', 'SG_UF', 'NM_MUNICIPIO', 'NR_ZONA', 'DS_CARGO',
    'SQ_CANDIDATO', 'NR_CANDIDATO', 'NM_CANDIDATO', 'NM_URNA_CANDIDATO',
    'NR_PARTIDO', 'SG_PARTIDO', 'NM_PARTIDO', 'CD_SIT_TOT_TURNO',
    'DS_SIT_TOT_TURNO', 'QT_VOTOS_NOMINAIS',
]


def export_row(zone, candidate_id, party, votes, situation_code=4,
               office='VEREADOR', municipality='SÃO PAULO', year=2020) -> List:
    return [
        year, 1, 'SP', municipality, zone, office,
        candidate_id, 10000 + zone, f"CANDIDATO {candidate_id}", f"CAND {candidate_id}",
        10, party, f"PARTIDO {party}", situation_code,
        'ELEITO POR QP' if situation_code == 2 else 'SUPLENTE', votes,
    ]


def create_export_file(tmp_path: Path, filename: str, rows: List[List]) -> Path:
    """Creates a temporary TSE-style CSV export for tests."""
    file_path = tmp_path / filename
    pd.DataFrame(rows, columns=EXPORT_HEADERS).to_csv(
        file_path, sep=rrl.CSV_SEPARATOR, encoding=rrl.CSV_ENCODING, index=False
    )
    return file_path


@pytest.fixture
def export_rows() -> List[List]:
    return [
        export_row(1, '250000001', 'AAA', 60, situation_code=2),
        export_row(1, '250000002', 'BBB', 40),
        export_row(2, '250000001', 'AAA', 30, situation_code=2),
        export_row(2, '250000003', 'AAA', 30),
        export_row(2, '250000004', 'BBB', 40),
        export_row(1, '250000099', 'AAA', 500, office='PREFEITO'),
        export_row(5, '250000098', 'CCC', 70, municipality='CAMPINAS'),
    ]


# --- Tests for read_raw_results ---
def test_read_raw_results_creates_cache(tmp_path: Path, export_rows: List[List]):
    csv_file = create_export_file(tmp_path, "export.csv", export_rows)
    cache_file = tmp_path / "export.parquet"

    df = rrl.read_raw_results(str(csv_file), cache_file=str(cache_file))

    assert len(df) == len(export_rows)
    assert cache_file.exists()
    assert df['SQ_CANDIDATO'].iloc[0] == '250000001'


def test_read_raw_results_uses_cache(tmp_path: Path, export_rows: List[List]):
    csv_file = create_export_file(tmp_path, "export.csv", export_rows)
    cache_file = tmp_path / "export.parquet"
    rrl.read_raw_results(str(csv_file), cache_file=str(cache_file))

    csv_file.unlink()
    df = rrl.read_raw_results(str(csv_file), cache_file=str(cache_file))
    assert len(df) == len(export_rows)


def test_read_raw_results_force_reload(tmp_path: Path, export_rows: List[List]):
    csv_file = create_export_file(tmp_path, "export.csv", export_rows)
    cache_file = tmp_path / "export.parquet"
    rrl.read_raw_results(str(csv_file), cache_file=str(cache_file))

    create_export_file(tmp_path, "export.csv", export_rows[:2])
    df = rrl.read_raw_results(str(csv_file), cache_file=str(cache_file), force_reload=True)
    assert len(df) == 2


def test_read_raw_results_file_not_found(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        rrl.read_raw_results(str(tmp_path / "missing.csv"), cache_file=str(tmp_path / "missing.parquet"))


# --- Tests for filter_race / select_raw_columns ---
def test_filter_race_case_insensitive(export_rows: List[List]):
    df = pd.DataFrame(export_rows, columns=EXPORT_HEADERS)
    race = rrl.filter_race(df, year=2020, municipality="São Paulo", office="Vereador", round_number=1)
    assert len(race) == 5
    assert set(race['DS_CARGO']) == {'VEREADOR'}


def test_filter_race_without_filters_keeps_everything(export_rows: List[List]):
    df = pd.DataFrame(export_rows, columns=EXPORT_HEADERS)
    assert len(rrl.filter_race(df)) == len(export_rows)


def test_select_raw_columns_renames_and_casts(export_rows: List[List]):
    df = pd.DataFrame(export_rows, columns=EXPORT_HEADERS)
    df['QT_VOTOS_NOMINAIS'] = df['QT_VOTOS_NOMINAIS'].astype(str)

    raw = rrl.select_raw_columns(df)

    assert list(raw.columns) == list(rrl.RAW_COLUMN_MAP.values())
    assert raw['votes'].dtype == 'int64'
    assert raw.loc[0, 'party_accronym'] == 'AAA'
    assert raw.loc[0, 'situation_code'] == 2


# --- Tests for check_raw_results ---
def test_check_raw_results_missing_columns():
    raw = pd.DataFrame({'zone': [1], 'candidate_id': ['A'], 'votes': [3]})
    with pytest.raises(ValueError, match="party_accronym"):
        rrl.check_raw_results(raw)


def test_check_raw_results_negative_votes(export_rows: List[List]):
    raw = rrl.select_raw_columns(pd.DataFrame(export_rows, columns=EXPORT_HEADERS))
    raw.loc[1, 'votes'] = -5
    with pytest.raises(ValueError, match="Negative vote counts"):
        rrl.check_raw_results(raw)


def test_check_raw_results_duplicate_zone_rows(export_rows: List[List]):
    rows = export_rows + [export_row(2, '250000004', 'BBB', 1)]
    raw = rrl.select_raw_columns(pd.DataFrame(rows, columns=EXPORT_HEADERS))
    with pytest.raises(DataIntegrityError) as excinfo:
        rrl.check_raw_results(raw)
    assert excinfo.value.candidate_ids == ['250000004']


# --- Tests for load_raw_results ---
def test_load_raw_results_one_race(tmp_path: Path, export_rows: List[List]):
    csv_file = create_export_file(tmp_path, "export.csv", export_rows)

    raw = rrl.load_raw_results(
        str(csv_file),
        municipality="são paulo",
        office="VEREADOR",
        cache_file=str(tmp_path / "export.parquet")
    )

    assert len(raw) == 5
    assert raw['candidate_id'].nunique() == 4
    assert sorted(raw['zone'].unique().tolist()) == [1, 2]
    assert raw.groupby('candidate_id')['votes'].sum()['250000001'] == 90


def test_check_raw_results_empty_party(export_rows: List[List]):
    raw = rrl.select_raw_columns(pd.DataFrame(export_rows, columns=EXPORT_HEADERS))
    raw.loc[1, 'party_accronym'] = None
    with pytest.raises(ValueError, match="empty values in required columns: \\['party_accronym'\\]"):
        rrl.check_raw_results(raw)
