"""
longplot/export.py

Saving figures at journal and regulatory-submission specifications.

    save_publication    — write a figure at a journal's column width, DPI and
                          preferred format.
    publication_panels  — empty multi-panel figure with A, B, C… labels.
    get_journal_specs   — the specification dict for one journal.
    list_journals       — overview table of every known specification.
"""

import logging
import math
import string
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

import matplotlib.pyplot as plt
import pandas as pd

logger = logging.getLogger(__name__)

MM_PER_INCH = 25.4
GOLDEN_RATIO = 1.618

JOURNAL_SPECS: Dict[str, dict] = {
    "nature": {
        "name": "Nature",
        "single_column_mm": 90,
        "double_column_mm": 180,
        "max_height_mm": 170,
        "min_dpi": 600,
        "preferred_dpi": 600,
        "font_size": 8,
        "formats": ("pdf", "eps", "tiff"),
        "notes": "Nature Publishing Group standards",
    },
    "science": {
        "name": "Science",
        "single_column_mm": 85,
        "double_column_mm": 178,
        "max_height_mm": 170,
        "min_dpi": 300,
        "preferred_dpi": 600,
        "font_size": 7,
        "formats": ("pdf", "eps", "tiff", "png"),
        "notes": "AAAS Science journal standards",
    },
    "nejm": {
        "name": "New England Journal of Medicine",
        "single_column_mm": 85,
        "double_column_mm": 170,
        "max_height_mm": 200,
        "min_dpi": 600,
        "preferred_dpi": 600,
        "font_size": 8,
        "formats": ("tiff", "eps", "pdf"),
        "notes": "Clinical publication standards",
    },
    "cell": {
        "name": "Cell",
        "single_column_mm": 85,
        "double_column_mm": 178,
        "max_height_mm": 234,
        "min_dpi": 300,
        "preferred_dpi": 600,
        "font_size": 8,
        "formats": ("pdf", "eps", "tiff"),
        "notes": "Cell Press standards",
    },
    "fda": {
        "name": "FDA Regulatory",
        "single_column_mm": 100,
        "double_column_mm": 200,
        "max_height_mm": 250,
        "min_dpi": 600,
        "preferred_dpi": 600,
        "font_size": 10,
        "formats": ("pdf", "tiff"),
        "notes": "FDA regulatory submission standards",
    },
    "ema": {
        "name": "EMA Regulatory",
        "single_column_mm": 100,
        "double_column_mm": 200,
        "max_height_mm": 250,
        "min_dpi": 600,
        "preferred_dpi": 600,
        "font_size": 10,
        "formats": ("pdf", "tiff"),
        "notes": "EMA regulatory submission standards",
    },
}

_LAYOUTS = ("horizontal", "vertical", "grid")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def get_journal_specs(journal: str) -> dict:
    """
    Return the specification for one journal.

    Raises
    ------
    ValueError
        If ``journal`` is unknown.
    """
    if journal not in JOURNAL_SPECS:
        raise ValueError(
            f"Unknown journal '{journal}'. Choose from: {', '.join(JOURNAL_SPECS)}."
        )
    return dict(JOURNAL_SPECS[journal])


def list_journals(detailed: bool = False) -> pd.DataFrame:
    """
    Overview of the known journal specifications.

    Parameters
    ----------
    detailed : bool
        Add max_height_mm, formats and notes columns.

    Returns
    -------
    pd.DataFrame
        One row per journal with columns journal, name, single_column_mm,
        double_column_mm, preferred_dpi, font_size.
    """
    records = []
    for key, spec in JOURNAL_SPECS.items():
        record = {
            "journal": key,
            "name": spec["name"],
            "single_column_mm": spec["single_column_mm"],
            "double_column_mm": spec["double_column_mm"],
            "preferred_dpi": spec["preferred_dpi"],
            "font_size": spec["font_size"],
        }
        if detailed:
            record["max_height_mm"] = spec["max_height_mm"]
            record["formats"] = ", ".join(spec["formats"])
            record["notes"] = spec["notes"]
        records.append(record)
    return pd.DataFrame(records)


def save_publication(
    fig,
    filename: Union[str, Path],
    journal: str = "nature",
    width_mm: Optional[float] = None,
    height_mm: Optional[float] = None,
    dpi: Optional[int] = None,
    format: Optional[str] = None,
    column_type: str = "double",
    panel_label: Optional[str] = None,
) -> Path:
    """
    Save a figure to a journal's specification.

    Parameters
    ----------
    fig : matplotlib.figure.Figure
        Figure to save, e.g. the output of ``longplot.lplot``.
    filename : str or Path
        Output path. The format is taken from the extension; without one the
        figure is saved as PDF and ".pdf" is appended.
    journal : str
        Key of JOURNAL_SPECS.
    width_mm, height_mm : float, optional
        Figure size in millimetres. Width defaults to the journal's single or
        double column width; height defaults to width / golden ratio. Height
        is clipped to the journal maximum.
    dpi : int, optional
        Resolution. Defaults to the journal's preferred DPI; values below the
        journal minimum are used but logged as a warning.
    format : str, optional
        Explicit output format, overriding the extension.
    column_type : str
        "single" or "double".
    panel_label : str, optional
        Bold label (e.g. "A") drawn in the top-left corner.

    Returns
    -------
    pathlib.Path
        The path actually written.

    Raises
    ------
    ValueError
        If the journal or column type is unknown.
    """
    spec = get_journal_specs(journal)
    if column_type not in ("single", "double"):
        raise ValueError(
            f"Unknown column_type '{column_type}'. Choose from: 'single', 'double'."
        )

    path = Path(filename)
    if format is None:
        format = path.suffix.lstrip(".").lower()
        if not format:
            format = "pdf"
            path = path.with_name(path.name + ".pdf")
    format = format.lower()

    if format not in spec["formats"]:
        logger.warning(
            "Format '%s' is not recommended for %s. Recommended formats: %s",
            format, spec["name"], ", ".join(spec["formats"]),
        )

    if width_mm is None:
        width_mm = spec[f"{column_type}_column_mm"]

    if dpi is None:
        dpi = spec["preferred_dpi"]
    elif dpi < spec["min_dpi"]:
        logger.warning(
            "DPI %d is below the %s minimum of %d DPI", dpi, spec["name"], spec["min_dpi"]
        )

    if height_mm is None:
        height_mm = width_mm / GOLDEN_RATIO
    if height_mm > spec["max_height_mm"]:
        logger.warning(
            "Height adjusted to the %s maximum of %d mm", spec["name"], spec["max_height_mm"]
        )
        height_mm = spec["max_height_mm"]

    if panel_label is not None:
        fig.text(
            0.01, 0.99, panel_label,
            fontsize=spec["font_size"] * 1.5, fontweight="bold",
            ha="left", va="top",
        )

    fig.set_size_inches(width_mm / MM_PER_INCH, height_mm / MM_PER_INCH)
    fig.savefig(path, dpi=dpi, format=format)

    logger.info(
        "Saved %s for %s: %d x %d mm, %d DPI, %s",
        path, spec["name"], round(width_mm), round(height_mm), dpi, format.upper(),
    )
    return path


def publication_panels(
    n_panels: int,
    labels: Optional[Sequence[str]] = None,
    layout: str = "horizontal",
    ncol: Optional[int] = None,
    nrow: Optional[int] = None,
    journal: Optional[str] = None,
) -> Tuple[plt.Figure, List]:
    """
    Create a labelled multi-panel figure.

    Parameters
    ----------
    n_panels : int
        Number of panels.
    labels : sequence of str, optional
        Panel labels. Defaults to "A", "B", ..., "Z", "AA", "AB", ...
    layout : str
        "horizontal" (one row), "vertical" (one column) or "grid". A grid
        without ncol/nrow is as square as possible.
    ncol, nrow : int, optional
        Grid dimensions; only used with layout="grid".
    journal : str, optional
        Size the figure to this journal's double-column width.

    Returns
    -------
    tuple of (Figure, list of Axes)
        Axes in label order. Unused grid cells are hidden.

    Raises
    ------
    ValueError
        If the layout is unknown or the number of labels does not match.
    """
    if n_panels < 1:
        raise ValueError("n_panels must be at least 1")
    if layout not in _LAYOUTS:
        raise ValueError(
            f"Unknown layout '{layout}'. Choose from: {', '.join(_LAYOUTS)}."
        )
    if labels is None:
        labels = [_panel_letter(i) for i in range(n_panels)]
    elif len(labels) != n_panels:
        raise ValueError("Number of labels must match number of panels")

    if layout == "horizontal":
        nrow, ncol = 1, n_panels
    elif layout == "vertical":
        nrow, ncol = n_panels, 1
    else:
        if ncol is None and nrow is None:
            ncol = math.ceil(math.sqrt(n_panels))
        if ncol is None:
            ncol = math.ceil(n_panels / nrow)
        if nrow is None:
            nrow = math.ceil(n_panels / ncol)
        if nrow * ncol < n_panels:
            raise ValueError(
                f"A {nrow} x {ncol} grid cannot hold {n_panels} panels."
            )

    if journal is not None:
        width_in = get_journal_specs(journal)["double_column_mm"] / MM_PER_INCH
        figsize = (width_in, width_in / GOLDEN_RATIO * nrow / max(ncol, 1))
    else:
        figsize = (4 * ncol, 3.5 * nrow)

    fig, axes_arr = plt.subplots(nrow, ncol, figsize=figsize, squeeze=False)
    axes_flat = axes_arr.flatten().tolist()
    for unused in axes_flat[n_panels:]:
        unused.set_visible(False)
    axes_flat = axes_flat[:n_panels]

    for ax, label in zip(axes_flat, labels):
        ax.text(
            -0.12, 1.05, label, transform=ax.transAxes,
            fontsize=12, fontweight="bold", ha="left", va="bottom",
        )

    return fig, axes_flat


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _panel_letter(index: int) -> str:
    """0 -> "A", 25 -> "Z", 26 -> "AA", spreadsheet-column style."""
    letters = ""
    index += 1
    while index:
        index, rem = divmod(index - 1, 26)
        letters = string.ascii_uppercase[rem] + letters
    return letters
