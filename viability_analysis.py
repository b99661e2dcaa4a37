import marimo

__generated_with = "0.17.8"
app = marimo.App(width="medium")


@app.cell
def __():
    import marimo as mo
    import pandas as pd
    import plotly.express as px
    import raw_results_loader as rrl
    import viability

    # Configure pandas display for HTML export (disable pager, limit rows)
    pd.set_option('display.max_rows', 30)
    pd.set_option('display.show_dimensions', True)
    return mo, pd, px, rrl, viability


@app.cell
def __(mo):
    mo.md(
        """
        # Candidate Viability Analysis

        Classifies the candidates of one race by how competitive they are
        within their party and within each electoral zone.

        ## Methodology

        1. Sum each candidate's votes across zones and compute their share of the party vote
        2. Compute the **effective number of candidates** of each party: 1 / Σ share²
        3. A candidate is **viable** when their rank in the party is within the ceiling of that number
        4. Repeat per zone on zone votes: a candidate is an **associate** of a zone when their zone rank is within the zone's threshold
        5. **Intermediate** candidates are associates of a zone without being viable in their party
        """
    )
    return


@app.cell
def __(mo):
    # Race selection
    csv_path = "votacao_candidato_munzona_2020_SP.csv"
    race = {
        'year': 2020,
        'municipality': "São Paulo",
        'office': "Vereador",
        'round_number': 1,
    }

    mo.md(f"## Data Loading\n\nRace: `{race}` from `{csv_path}`")
    return csv_path, race


@app.cell
def __(csv_path, race, rrl):
    raw = rrl.load_raw_results(csv_path, **race)
    raw
    return (raw,)


@app.cell
def __(raw, rrl, viability):
    by_party, by_zone, classified, summary = viability.compute_viability(
        raw, rrl.DEFAULT_ELECTED_CODES
    )
    return by_party, by_zone, classified, summary


@app.cell
def __(mo, summary):
    mo.md(
        """
        ## Summary by Partition

        Partitions are independent filters: an elected candidate can also count as
        intermediate in a zone. Check **Number** before reading the other metrics,
        empty partitions have no rank or share values.
        """
    )
    summary.round(2)
    return


@app.cell
def __(by_party, viability):
    party_counts = viability.party_effective_counts(by_party)
    party_counts
    return (party_counts,)


@app.cell
def __(by_zone, px, viability):
    zone_counts = viability.zone_effective_counts(by_zone)

    fig_zones = px.histogram(
        zone_counts,
        x='Eff_In_Zone',
        nbins=50,
        title='Effective Number of Candidates by Zone',
        labels={'Eff_In_Zone': 'Effective number of candidates', 'count': 'Number of Zones'}
    )
    fig_zones
    return fig_zones, zone_counts


@app.cell
def __(classified, px, rrl, viability):
    candidates = viability.summarize_candidates(classified)

    masks = viability.partition_masks(classified, rrl.DEFAULT_ELECTED_CODES)
    candidates['Partition'] = 'Other'
    # Later partitions win where filters overlap
    for partition_name, mask in masks.items():
        members = classified.loc[mask, 'candidate_id'].unique()
        candidates.loc[candidates['candidate_id'].isin(members), 'Partition'] = partition_name

    fig_candidates = px.scatter(
        candidates,
        x='rank_in_party',
        y='Max_Share_In_Zone',
        color='Partition',
        hover_data=['candidate_id', 'eff_in_party', 'Zones_Associate'],
        title='Rank in Party vs. Best Zone Share',
        labels={
            'rank_in_party': 'Rank in party',
            'Max_Share_In_Zone': 'Max share in zone (%)'
        }
    )
    fig_candidates
    return candidates, fig_candidates, masks


if __name__ == "__main__":
    app.run()
