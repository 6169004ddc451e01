"""
longplot/cdisc.py

Helpers for CDISC ADaM-style clinical datasets.

    suggest_clinical_vars — detect standard variable names and suggest a
                            formula, cluster variable and baseline value.
    validate_cdisc_data   — score how closely a dataset follows ADaM naming.
    get_cdisc_template    — recommended variables for common analyses.

Detection is by exact column name only. The suggested formula is a plain
string and goes through ``longplot.formula.parse`` like any other.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

logger = logging.getLogger(__name__)

# category -> role -> candidate names, most standard first
CDISC_LOOKUP: Dict[str, Dict[str, List[str]]] = {
    "subject_id": {
        "primary": ["USUBJID"],
        "secondary": ["SUBJID", "SUBJ", "PTNO", "PATIENT"],
    },
    "visit": {
        "numeric": ["AVISITN", "VISITNUM", "VISIT_N", "VISITN"],
        "character": ["AVISIT", "VISIT", "VISITC", "AVISITC"],
    },
    "analysis_value": {
        "primary": ["AVAL", "AVALC"],
        "secondary": ["VALUE", "RESULT", "SCORE", "MEASURE"],
    },
    "change": {
        "primary": ["CHG", "CHANGE"],
        "percent": ["PCHG", "PCHANGE", "CHGPCT"],
        "secondary": ["DIFF", "DELTA"],
    },
    "treatment": {
        "planned": ["TRT01P", "TRTPN", "ARM", "ARMCD"],
        "actual": ["TRT01A", "TRTAN", "ACTTRT", "ACTARM"],
        "reference": ["TRT01PN", "TRT01AN"],
    },
    "population": {
        "safety": ["SAFFL", "SAF", "SAFETY"],
        "efficacy": ["FASFL", "FAS", "ITT", "ITTFL", "EFFICACY"],
        "per_protocol": ["PPSFL", "PP", "PERPROTFL"],
    },
    "parameter": {
        "name": ["PARAM", "PARAMETER", "TEST"],
        "code": ["PARAMCD", "PARAMCODE", "TESTCD"],
    },
    "baseline": {
        "value": ["BASE", "BASELINE", "BL", "BLVAL"],
        "flag": ["BASEFL", "BLFL", "BASELINE_FL"],
    },
    "study": {
        "id": ["STUDYID", "STUDY", "PROTOCOL"],
        "site": ["SITEID", "SITE", "CENTER", "INVESTIGATOR"],
    },
}

CDISC_TEMPLATES: Dict[str, List[str]] = {
    "efficacy": [
        "USUBJID", "SUBJID", "STUDYID", "AVISITN", "AVISIT", "AVAL", "CHG",
        "BASE", "TRT01P", "FASFL", "PARAM", "PARAMCD",
    ],
    "safety": [
        "USUBJID", "SUBJID", "STUDYID", "AVISITN", "AVISIT", "AVAL", "CHG",
        "BASE", "TRT01A", "SAFFL", "PARAM", "PARAMCD", "ATOXGR", "AESEV",
    ],
    "pk": [
        "USUBJID", "SUBJID", "STUDYID", "AVISITN", "AVISIT", "AVAL", "AVALC",
        "TRT01P", "TRT01A", "PCSFL", "PARAM", "PARAMCD", "PCORRES",
        "PCSTRESC", "PCDTC",
    ],
    "biomarker": [
        "USUBJID", "SUBJID", "STUDYID", "AVISITN", "AVISIT", "AVAL", "CHG",
        "BASE", "TRT01P", "FASFL", "PARAM", "PARAMCD", "LBSTRESC", "LBORRES",
        "LBNRIND", "LBSTNRLO", "LBSTNRHI",
    ],
}

_BASELINE_NUMERIC = (0, 1)
_BASELINE_LABELS = (
    "baseline", "screening", "bl", "screen", "visit 1", "day 0", "week 0",
)

# points per validation component
_SCORE_WEIGHTS = {
    "required_vars": 25,
    "subject_id": 20,
    "visit_vars": 15,
    "analysis_values": 15,
    "change_vars": 10,
    "treatment_vars": 10,
    "population_flags": 5,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def suggest_clinical_vars(data: pd.DataFrame) -> Dict[str, Any]:
    """
    Detect CDISC variables in a dataset and suggest how to plot it.

    Parameters
    ----------
    data : pd.DataFrame
        Clinical dataset, typically an ADaM BDS dataset such as ADLB.

    Returns
    -------
    dict
        suggested_formula — e.g. "AVAL ~ AVISITN | TRT01P", or None when no
                            analysis value or visit variable was found
        detected_vars     — {category: [matched column names]}
        cluster_var       — subject identifier column, or None
        baseline_value    — likely baseline visit value, or None
        warnings          — list of human-readable notes on non-standard
                            naming or data shape

    Raises
    ------
    TypeError
        If ``data`` is not a DataFrame.
    """
    if not isinstance(data, pd.DataFrame):
        raise TypeError("Input must be a pandas DataFrame")

    columns = list(data.columns)
    warnings: List[str] = []
    detected: Dict[str, List[str]] = {}
    matches: Dict[str, Dict[str, List[str]]] = {}

    for category in ("subject_id", "visit", "analysis_value", "treatment",
                     "change", "population"):
        matches[category] = {
            role: [c for c in names if c in columns]
            for role, names in CDISC_LOOKUP[category].items()
        }
        detected[category] = [
            c for found in matches[category].values() for c in found
        ]

    subject = _first(matches["subject_id"], "primary")
    if subject is None:
        subject = _first(matches["subject_id"], "secondary")
        if subject is not None:
            warnings.append(f"Using non-standard subject ID '{subject}'. Consider USUBJID.")

    visit = _first(matches["visit"], "numeric") or _first(matches["visit"], "character")

    aval = _first(matches["analysis_value"], "primary")
    if aval is None:
        aval = _first(matches["analysis_value"], "secondary")
        if aval is not None:
            warnings.append(f"Using non-standard analysis variable '{aval}'. Consider AVAL.")

    treatment = _first(matches["treatment"], "planned")
    if treatment is None:
        treatment = _first(matches["treatment"], "actual")
        if treatment is not None:
            warnings.append(
                "Using actual treatment instead of planned. Consider TRT01P for ITT analysis."
            )

    baseline_value = _detect_baseline(data[visit]) if visit is not None else None

    suggested = None
    if aval is not None and visit is not None:
        suggested = f"{aval} ~ {visit}"
        if treatment is not None:
            suggested += f" | {treatment}"

    if subject is not None and len(data):
        per_subject = len(data) / data[subject].nunique()
        if per_subject < 2:
            warnings.append(
                "Dataset appears to have limited longitudinal data "
                "(< 2 observations per subject)."
            )

    if not detected["population"]:
        warnings.append("No population analysis flags detected. Consider adding SAFFL, FASFL.")

    logger.info(
        "CDISC detection: formula=%r, cluster=%r, baseline=%r",
        suggested, subject, baseline_value,
    )
    for w in warnings:
        logger.info("CDISC note: %s", w)

    return {
        "suggested_formula": suggested,
        "detected_vars": detected,
        "cluster_var": subject,
        "baseline_value": baseline_value,
        "warnings": warnings,
    }


def validate_cdisc_data(
    data: pd.DataFrame,
    required_vars: Sequence[str] = ("USUBJID", "AVISITN", "AVAL"),
    check_population_flags: bool = True,
) -> Dict[str, Any]:
    """
    Score a dataset's adherence to CDISC ADaM naming.

    Components and their maximum points: required variables 25, subject
    identifier 20, visit variables 15, analysis value 15, change from
    baseline 10, treatment 10, population flags 5.

    Returns
    -------
    dict
        compliance_score    — percentage of the maximum score, rounded
        score_breakdown     — {component: points}
        issues              — problems that block standard analysis
        recommendations     — optional improvements
        max_possible_score  — 100
        actual_score        — sum of the breakdown
    """
    if not isinstance(data, pd.DataFrame):
        raise TypeError("Input must be a pandas DataFrame")

    columns = set(data.columns)
    issues: List[str] = []
    recommendations: List[str] = []
    score: Dict[str, int] = {}

    missing = [v for v in required_vars if v not in columns]
    if missing:
        issues.append(f"Missing required variables: {', '.join(missing)}")
        score["required_vars"] = 0
    else:
        score["required_vars"] = 25

    if "USUBJID" in columns:
        score["subject_id"] = 20
    elif "SUBJID" in columns:
        score["subject_id"] = 15
        recommendations.append("Consider using USUBJID for unique subject identification")
    else:
        score["subject_id"] = 0
        issues.append("No standard subject identifier found")

    if columns & {"AVISITN", "VISITNUM"}:
        score["visit_vars"] = 15
    elif columns & {"VISIT", "AVISIT"}:
        score["visit_vars"] = 10
        recommendations.append("Consider adding numeric visit variable (AVISITN)")
    else:
        score["visit_vars"] = 0
        issues.append("No standard visit variable found")

    if "AVAL" in columns:
        score["analysis_values"] = 15
    else:
        score["analysis_values"] = 0
        issues.append("No standard analysis value variable (AVAL) found")

    if columns & {"CHG", "CHANGE"}:
        score["change_vars"] = 10
    else:
        score["change_vars"] = 5
        recommendations.append("Consider pre-calculating change from baseline (CHG)")

    if columns & {"TRT01P", "ARM"}:
        score["treatment_vars"] = 10
    else:
        score["treatment_vars"] = 0
        issues.append("No standard treatment variable found")

    if check_population_flags:
        flags = columns & {"SAFFL", "FASFL", "PPSFL"}
        if len(flags) >= 2:
            score["population_flags"] = 5
        elif len(flags) == 1:
            score["population_flags"] = 3
            recommendations.append("Consider adding additional population flags (SAFFL, FASFL)")
        else:
            score["population_flags"] = 0
            recommendations.append("Add population analysis flags (SAFFL, FASFL, PPSFL)")

    max_score = sum(_SCORE_WEIGHTS.values())
    actual = sum(score.values())
    return {
        "compliance_score": round(actual / max_score * 100),
        "score_breakdown": score,
        "issues": issues,
        "recommendations": recommendations,
        "max_possible_score": max_score,
        "actual_score": actual,
    }


def get_cdisc_template(scenario: str = "efficacy") -> List[str]:
    """
    Recommended CDISC variables for an analysis scenario.

    ``scenario`` is one of "efficacy", "safety", "pk", "biomarker".
    """
    if scenario not in CDISC_TEMPLATES:
        raise ValueError(
            f"Unknown scenario '{scenario}'. Choose from: {', '.join(CDISC_TEMPLATES)}."
        )
    return list(CDISC_TEMPLATES[scenario])


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _first(found: Dict[str, List[str]], role: str) -> Optional[str]:
    names = found.get(role) or []
    return names[0] if names else None


def _detect_baseline(visits: pd.Series):
    values = visits.dropna().unique().tolist()
    if pd.api.types.is_numeric_dtype(visits):
        return next((v for v in _BASELINE_NUMERIC if v in values), None)
    return next(
        (v for v in values if str(v).strip().lower() in _BASELINE_LABELS), None
    )
