"""
longplot/themes.py

Colour palettes and publication themes for longitudinal plots.

    clinical_colors          — named clinical and journal palettes as hex lists.
    assign_treatment_colors  — map treatment labels to colours, placebo in grey.
    get_colorblind_palette   — colour-blind friendly palettes via seaborn.
    get_publication_theme    — journal styling as a matplotlib rcParams dict.
    publication_style        — context manager applying a theme while drawing.
    apply_publication_style  — restyle an already drawn figure.
"""

import logging
import re
from contextlib import contextmanager
from typing import Dict, List, Optional, Sequence

import matplotlib as mpl
import seaborn as sns

logger = logging.getLogger(__name__)

CLINICAL_PALETTES: Dict[str, List[str]] = {
    # placebo grey first, then active arms
    "treatment": [
        "#7F7F7F", "#1F77B4", "#D62728", "#FF7F0E",
        "#2CA02C", "#9467BD", "#8C564B", "#E377C2",
    ],
    "severity": ["#E8F5E8", "#A8DBA8", "#79C079", "#4A904A", "#2D5D2D"],
    "outcome": ["#2CA02C", "#7F7F7F", "#D62728"],
    "fda": [
        "#000000", "#E69F00", "#56B4E9", "#009E73",
        "#F0E442", "#0072B2", "#D55E00", "#CC79A7",
    ],
    "nejm": [
        "#BC3C29", "#0072B5", "#E18727", "#20854E",
        "#7876B1", "#6F99AD", "#FFDC91", "#EE4C97",
    ],
    "nature": [
        "#E64B35", "#4DBBD5", "#00A087", "#3C5488", "#F39B7F",
        "#8491B4", "#91D1C2", "#DC0000", "#7E6148", "#B09C85",
    ],
    "lancet": [
        "#00468B", "#ED0000", "#42B540", "#0099B4", "#925E9F",
        "#FDAF91", "#AD002A", "#ADB6B6", "#1B1919",
    ],
    "jama": [
        "#374E55", "#DF8F44", "#00A1D5", "#B24745",
        "#79AF97", "#6A6599", "#80796B",
    ],
    "science": [
        "#3B4992", "#EE0000", "#008B45", "#631879", "#008280",
        "#BB0021", "#5F559B", "#A20056", "#808180", "#1B1919",
    ],
    "jco": [
        "#0073C2", "#EFC000", "#868686", "#CD534C", "#7AA6DC",
        "#003C67", "#8F7700", "#3B3B3B", "#A73030", "#4A6990",
    ],
}

_COLORBLIND_PALETTES = {
    "qualitative": "Dark2",
    "sequential": "Blues",
    "diverging": "RdBu",
}

_PLACEBO_PATTERN = re.compile(r"placebo|control|sham|vehicle", re.IGNORECASE)

# Shared by every journal theme
_BASE_THEME = {
    "font.family": "sans-serif",
    "font.sans-serif": ["Arial", "Helvetica", "DejaVu Sans"],
    "axes.facecolor": "white",
    "figure.facecolor": "white",
    "axes.edgecolor": "black",
    "axes.labelcolor": "black",
    "xtick.color": "black",
    "ytick.color": "black",
    "axes.spines.top": True,
    "axes.spines.right": True,
    "grid.linestyle": "-",
    "legend.frameon": False,
    "savefig.facecolor": "white",
}

PUBLICATION_THEMES: Dict[str, dict] = {
    "nature": {
        "font.size": 7,
        "axes.titlesize": 8.4,
        "axes.labelsize": 7.7,
        "axes.linewidth": 0.5,
        "axes.grid": False,
        "xtick.major.width": 0.25,
        "ytick.major.width": 0.25,
        "xtick.major.size": 4.25,
        "ytick.major.size": 4.25,
        "legend.fontsize": 6.3,
        "legend.loc": "upper center",
        "axes.titlelocation": "left",
        "axes.titleweight": "normal",
        "axes.labelweight": "normal",
    },
    "science": {
        "font.size": 7,
        "axes.titlesize": 9.1,
        "axes.labelsize": 7.7,
        "axes.linewidth": 0.5,
        "axes.grid": True,
        "grid.color": "#F0F0F0",
        "grid.linewidth": 0.25,
        "xtick.major.width": 0.25,
        "ytick.major.width": 0.25,
        "xtick.major.size": 3.4,
        "ytick.major.size": 3.4,
        "legend.fontsize": 6.3,
        "legend.loc": "lower center",
        "axes.titlelocation": "center",
        "axes.titleweight": "normal",
        "axes.labelweight": "normal",
    },
    "nejm": {
        "font.size": 8,
        "axes.titlesize": 9.6,
        "axes.labelsize": 8.8,
        "axes.linewidth": 0.75,
        "axes.grid": False,
        "xtick.major.width": 0.5,
        "ytick.major.width": 0.5,
        "xtick.major.size": 5.7,
        "ytick.major.size": 5.7,
        "legend.fontsize": 7.2,
        "legend.loc": "lower center",
        "axes.titlelocation": "left",
        "axes.titleweight": "bold",
        "axes.labelweight": "bold",
    },
    "fda": {
        "font.size": 10,
        "axes.titlesize": 11,
        "axes.labelsize": 10,
        "axes.linewidth": 1.0,
        "axes.grid": True,
        "grid.color": "#D0D0D0",
        "grid.linewidth": 0.25,
        "xtick.major.width": 0.5,
        "ytick.major.width": 0.5,
        "xtick.major.size": 7.1,
        "ytick.major.size": 7.1,
        "legend.fontsize": 9,
        "legend.loc": "lower center",
        "axes.titlelocation": "center",
        "axes.titleweight": "bold",
        "axes.labelweight": "bold",
    },
    "default": {
        "font.size": 10,
        "axes.titlesize": 12,
        "axes.labelsize": 10,
        "axes.linewidth": 0.8,
        "axes.grid": True,
        "grid.color": "#EBEBEB",
        "grid.linewidth": 0.5,
        "xtick.major.width": 0.8,
        "ytick.major.width": 0.8,
        "xtick.major.size": 3.5,
        "ytick.major.size": 3.5,
        "legend.fontsize": 9,
        "legend.loc": "best",
        "axes.titlelocation": "left",
        "axes.titleweight": "normal",
        "axes.labelweight": "normal",
    },
}


# ---------------------------------------------------------------------------
# Palettes
# ---------------------------------------------------------------------------

def clinical_colors(
    type: str = "treatment",
    n: Optional[int] = None,
    placebo_first: bool = True,
) -> List[str]:
    """
    Return a named clinical or journal colour palette.

    Parameters
    ----------
    type : str
        One of the keys of CLINICAL_PALETTES: "treatment", "severity",
        "outcome", "fda", "nejm", "nature", "lancet", "jama", "science", "jco".
    n : int, optional
        Number of colours to return. Colours are recycled (with a warning)
        when n exceeds the palette length. Defaults to the full palette.
    placebo_first : bool
        For the "treatment" palette only: if False, the grey placebo colour
        is moved to the end.

    Returns
    -------
    list of str
        Hex colour strings.

    Raises
    ------
    ValueError
        If ``type`` is not a known palette.
    """
    if type not in CLINICAL_PALETTES:
        raise ValueError(
            f"Unknown clinical color type '{type}'. "
            f"Choose from: {', '.join(CLINICAL_PALETTES)}."
        )
    colors = list(CLINICAL_PALETTES[type])
    if type == "treatment" and not placebo_first:
        colors = colors[1:] + colors[:1]

    if n is None:
        return colors
    if n > len(colors):
        logger.warning(
            "Requested %d colors but palette '%s' only has %d; recycling colors.",
            n, type, len(colors),
        )
        colors = [colors[i % len(colors)] for i in range(n)]
    return colors[:n]


def assign_treatment_colors(
    treatments: Sequence,
    palette_type: str = "treatment",
) -> Dict:
    """
    Map each distinct treatment label to a colour.

    With the "treatment" palette the first label that looks like a placebo
    or control arm (placebo, control, sham, vehicle; case-insensitive) is
    given the grey first colour and the remaining labels take the active
    colours in order of appearance.

    Examples
    --------
    >>> assign_treatment_colors(["Drug A", "Placebo"])
    {'Placebo': '#7F7F7F', 'Drug A': '#1F77B4'}
    """
    labels = list(dict.fromkeys(treatments))
    colors = clinical_colors(palette_type, n=len(labels))

    placebo = next((t for t in labels if _PLACEBO_PATTERN.search(str(t))), None)
    if placebo is None or palette_type != "treatment":
        return dict(zip(labels, colors))

    others = [t for t in labels if t != placebo]
    assignment = {placebo: colors[0]}
    assignment.update(zip(others, colors[1:]))
    return assignment


def get_colorblind_palette(n: int = 8, type: str = "qualitative") -> List[str]:
    """
    Colour-blind friendly palette as hex strings.

    ``type`` selects the ColorBrewer scheme: "qualitative" (Dark2),
    "sequential" (Blues) or "diverging" (RdBu). Unknown types fall back to
    qualitative. Requests beyond the scheme's size are interpolated.
    """
    name = _COLORBLIND_PALETTES.get(type, "Dark2")
    if n <= 8 or name != "Dark2":
        palette = sns.color_palette(name, n_colors=n)
    else:
        palette = sns.blend_palette(sns.color_palette(name, n_colors=8), n_colors=n)
    return list(palette.as_hex())


# ---------------------------------------------------------------------------
# Themes
# ---------------------------------------------------------------------------

def get_publication_theme(name: str = "default") -> dict:
    """
    Return the rcParams for a publication theme.

    Parameters
    ----------
    name : str
        "nature", "science", "nejm", "fda" or "default".

    Returns
    -------
    dict
        A fresh dict that can be passed to ``matplotlib.rc_context``.

    Raises
    ------
    ValueError
        If ``name`` is not a known theme.
    """
    if name not in PUBLICATION_THEMES:
        raise ValueError(
            f"Unknown theme '{name}'. Choose from: {', '.join(PUBLICATION_THEMES)}."
        )
    theme = dict(_BASE_THEME)
    theme.update(PUBLICATION_THEMES[name])
    return theme


def theme_palette(name: str) -> Optional[List[str]]:
    """Journal colour palette matching a theme name, or None."""
    return list(CLINICAL_PALETTES[name]) if name in CLINICAL_PALETTES else None


@contextmanager
def publication_style(name: str = "default"):
    """
    Context manager that draws everything inside it in a publication theme.

    >>> with publication_style("nejm"):
    ...     fig = lplot(df, "aval ~ avisit | trt01p", cluster_var="usubjid",
    ...                 baseline_value="Baseline")
    """
    params = get_publication_theme(name)
    palette = theme_palette(name)
    if palette is not None:
        params["axes.prop_cycle"] = mpl.cycler(color=palette)
    with mpl.rc_context(params):
        yield


def apply_publication_style(fig, name: str = "default", color_palette=None):
    """
    Restyle an existing figure with a publication theme.

    Font sizes, spine widths, grid and tick styling of every axes are
    updated in place. Line colours are replaced when ``color_palette`` is
    given, or when the theme has a matching journal palette.

    Returns
    -------
    matplotlib.figure.Figure
        The same figure, for chaining.
    """
    theme = get_publication_theme(name)
    palette = color_palette or theme_palette(name)

    for ax in fig.get_axes():
        for spine in ax.spines.values():
            spine.set_linewidth(theme["axes.linewidth"])
            spine.set_edgecolor(theme["axes.edgecolor"])
        ax.tick_params(
            labelsize=theme["font.size"],
            width=theme["xtick.major.width"],
            length=theme["xtick.major.size"],
        )
        ax.xaxis.label.set_size(theme["axes.labelsize"])
        ax.yaxis.label.set_size(theme["axes.labelsize"])
        ax.xaxis.label.set_weight(theme["axes.labelweight"])
        ax.yaxis.label.set_weight(theme["axes.labelweight"])
        ax.title.set_size(theme["axes.titlesize"])
        ax.title.set_weight(theme["axes.titleweight"])
        if theme["axes.grid"]:
            ax.grid(True, color=theme.get("grid.color", "#EBEBEB"),
                    linewidth=theme.get("grid.linewidth", 0.5))
        else:
            ax.grid(False)

        if palette:
            for i, line in enumerate(ax.get_lines()):
                if line.get_label().startswith("_"):
                    continue
                line.set_color(palette[i % len(palette)])

    return fig
