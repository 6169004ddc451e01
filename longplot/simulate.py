"""
longplot/simulate.py

Synthetic clinical-trial data for examples and tests.

Generates long-format longitudinal measurements with a known treatment
effect trajectory per arm, so the summaries and comparisons longplot
produces can be checked against ground truth.

Core design:
    - Subjects are randomised to arms (first arm is treated as placebo)
    - Each subject has a random baseline level
    - Each active arm adds a response curve (linear, step or plateau) that
      reaches its full effect at the final visit
    - Visits can be reported as labels ("Baseline", "Week 4", ...) or as
      nominal indices, and optionally as a jittered study day
    - Dropout removes all visits after a random drop point
"""

import numpy as np
import pandas as pd
from typing import Dict, Optional, Sequence


# ---------------------------------------------------------------------------
# Primary simulation entry point
# ---------------------------------------------------------------------------

def simulate_trial(
    n_per_arm: int = 20,
    arms: Sequence[str] = ("Placebo", "Drug A"),
    effects: Optional[Dict[str, float]] = None,
    visit_weeks: Sequence[int] = (0, 4, 8, 12),
    response_type: str = "linear",
    baseline_mean: float = 50.0,
    baseline_sd: float = 10.0,
    noise_sd: float = 3.0,
    dropout_rate: float = 0.0,
    n_sites: int = 1,
    visit_labels: bool = True,
    study_day_jitter: Optional[int] = None,
    seed: Optional[int] = 42,
) -> pd.DataFrame:
    """
    Simulate a parallel-group trial in long format.

    Parameters
    ----------
    n_per_arm : int
        Subjects randomised to each arm.
    arms : sequence of str
        Arm labels. The first arm gets no effect unless ``effects`` says
        otherwise.
    effects : dict, optional
        Mean change at the final visit per arm, relative to no treatment.
        Defaults to 0 for the first arm and -5, -10, ... for the others.
    visit_weeks : sequence of int
        Nominal visit weeks; the first is baseline.
    response_type : str
        Shape of the effect over time:
        "linear"  → proportional to elapsed time
        "step"    → full effect from the first post-baseline visit
        "plateau" → fast early response that levels off
    baseline_mean, baseline_sd : float
        Distribution of subject baseline levels.
    noise_sd : float
        Within-subject visit-to-visit noise.
    dropout_rate : float
        Probability that a subject drops out before the final visit. A
        dropped subject keeps the visits before a random drop point.
    n_sites : int
        Number of study sites; subjects are assigned round-robin. Adds a
        ``site`` column usable as a facet.
    visit_labels : bool
        If True the ``visit`` column holds "Baseline", "Week 4", ...; if
        False it holds the numeric week.
    study_day_jitter : int, optional
        If given, add a ``study_day`` column: the nominal day (week × 7 + 1)
        plus uniform jitter of up to ± this many days.
    seed : int, optional
        Random seed for reproducibility.

    Returns
    -------
    pd.DataFrame
        Long-format dataframe with columns subject_id, arm, site, visit,
        week, measure (and study_day if requested). Ground truth is attached
        in ``df.attrs``.

    Examples
    --------
    >>> df = simulate_trial(n_per_arm=30, arms=("Placebo", "Low", "High"), seed=0)
    >>> df.head()
    """
    if response_type not in ("linear", "step", "plateau"):
        raise ValueError(
            f"Unknown response_type '{response_type}'. Choose from: linear, step, plateau."
        )
    if not 0 <= dropout_rate < 1:
        raise ValueError("dropout_rate must be in [0, 1)")
    if len(visit_weeks) < 2:
        raise ValueError("visit_weeks needs a baseline and at least one follow-up visit")

    rng = np.random.default_rng(seed)
    arms = list(arms)
    if effects is None:
        effects = {arm: -5.0 * i for i, arm in enumerate(arms)}
    effects = {arm: float(effects.get(arm, 0.0)) for arm in arms}

    weeks = np.asarray(visit_weeks, dtype=float)
    shape = _build_response_curve(response_type, weeks)

    records = []
    subject_no = 0
    for arm in arms:
        for _ in range(n_per_arm):
            subj = f"S{subject_no:03d}"
            site = f"Site {subject_no % n_sites + 1}"
            subject_no += 1

            level = rng.normal(baseline_mean, baseline_sd)
            n_visits = len(weeks)
            if dropout_rate and rng.random() < dropout_rate:
                n_visits = int(rng.integers(1, len(weeks)))

            for i in range(n_visits):
                week = int(visit_weeks[i])
                record = {
                    "subject_id": subj,
                    "arm": arm,
                    "site": site,
                    "visit": _visit_label(week, i) if visit_labels else week,
                    "week": week,
                    "measure": level + effects[arm] * shape[i] + rng.normal(0, noise_sd),
                }
                if study_day_jitter is not None:
                    jitter = int(rng.integers(-study_day_jitter, study_day_jitter + 1))
                    record["study_day"] = week * 7 + 1 + (jitter if i > 0 else 0)
                records.append(record)

    df = pd.DataFrame(records)

    df.attrs["arms"] = arms
    df.attrs["effects"] = effects
    df.attrs["response_type"] = response_type
    df.attrs["visit_weeks"] = [int(w) for w in visit_weeks]
    df.attrs["baseline"] = _visit_label(int(visit_weeks[0]), 0) if visit_labels else int(visit_weeks[0])
    df.attrs["expected_change"] = {
        arm: [float(effects[arm] * s) for s in shape] for arm in arms
    }
    return df


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def get_ground_truth(df: pd.DataFrame) -> dict:
    """
    Extract ground truth metadata from a simulated dataframe.

    Returns
    -------
    dict
        arms, effects, response_type, visit_weeks, baseline,
        expected_change ({arm: [expected mean change per visit]}) and
        n_subjects ({arm: count}).

    Raises
    ------
    ValueError
        If the dataframe carries no simulation metadata.
    """
    if not df.attrs or "effects" not in df.attrs:
        raise ValueError(
            "This dataframe does not have simulation metadata. "
            "Make sure it was generated by simulate_trial."
        )
    return {
        "arms": df.attrs["arms"],
        "effects": df.attrs["effects"],
        "response_type": df.attrs["response_type"],
        "visit_weeks": df.attrs["visit_weeks"],
        "baseline": df.attrs["baseline"],
        "expected_change": df.attrs["expected_change"],
        "n_subjects": df.groupby("arm")["subject_id"].nunique().to_dict(),
    }


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _build_response_curve(response_type, weeks):
    """Fraction of the full effect reached at each visit (0 at baseline, 1 at the end)."""
    elapsed = weeks - weeks[0]
    span = elapsed[-1] if elapsed[-1] > 0 else 1.0

    if response_type == "linear":
        curve = elapsed / span
    elif response_type == "step":
        curve = (elapsed > 0).astype(float)
    else:
        rate = 3.0 / span
        curve = (1 - np.exp(-rate * elapsed)) / (1 - np.exp(-rate * span))
    return curve


def _visit_label(week, index):
    return "Baseline" if index == 0 else f"Week {week}"
