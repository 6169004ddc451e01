"""
tests/test_export.py

Unit tests for longplot.export.

All tests use matplotlib's Agg backend and close figures after each check.
Files are written to pytest's tmp_path.
"""

import logging

import pytest
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from longplot.export import (
    JOURNAL_SPECS,
    MM_PER_INCH,
    get_journal_specs,
    list_journals,
    publication_panels,
    save_publication,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def fig():
    f, ax = plt.subplots()
    ax.plot([0, 1, 2], [1, 3, 2])
    yield f
    plt.close(f)


# ---------------------------------------------------------------------------
# journal specifications
# ---------------------------------------------------------------------------

class TestJournalSpecs:

    def test_known_journals(self):
        assert set(JOURNAL_SPECS) == {"nature", "science", "nejm", "cell", "fda", "ema"}

    def test_get_returns_copy(self):
        spec = get_journal_specs("nature")
        spec["min_dpi"] = 1
        assert JOURNAL_SPECS["nature"]["min_dpi"] == 600

    def test_unknown_journal(self):
        with pytest.raises(ValueError, match="Unknown journal"):
            get_journal_specs("lancet")

    def test_list_journals(self):
        table = list_journals()
        assert len(table) == len(JOURNAL_SPECS)
        assert "max_height_mm" not in table.columns

    def test_list_journals_detailed(self):
        table = list_journals(detailed=True)
        assert {"max_height_mm", "formats", "notes"} <= set(table.columns)
        assert table.set_index("journal").loc["fda", "formats"] == "pdf, tiff"


# ---------------------------------------------------------------------------
# save_publication
# ---------------------------------------------------------------------------

class TestSavePublication:

    def test_default_pdf_appended(self, fig, tmp_path):
        path = save_publication(fig, tmp_path / "figure1")
        assert path.name == "figure1.pdf"
        assert path.exists()

    def test_double_column_width_and_golden_height(self, fig, tmp_path):
        save_publication(fig, tmp_path / "f.pdf", journal="nature")
        width, height = fig.get_size_inches()
        assert width * MM_PER_INCH == pytest.approx(180)
        assert height * MM_PER_INCH == pytest.approx(180 / 1.618)

    def test_single_column(self, fig, tmp_path):
        save_publication(fig, tmp_path / "f.pdf", journal="science", column_type="single")
        assert fig.get_size_inches()[0] * MM_PER_INCH == pytest.approx(85)

    def test_png_for_science(self, fig, tmp_path, caplog):
        with caplog.at_level(logging.WARNING, logger="longplot.export"):
            path = save_publication(fig, tmp_path / "f.png", journal="science", dpi=300)
        assert path.exists()
        assert "not recommended" not in caplog.text

    def test_unrecommended_format_warns(self, fig, tmp_path, caplog):
        with caplog.at_level(logging.WARNING, logger="longplot.export"):
            save_publication(fig, tmp_path / "f.png", journal="nature", dpi=600)
        assert "not recommended" in caplog.text

    def test_low_dpi_warns(self, fig, tmp_path, caplog):
        with caplog.at_level(logging.WARNING, logger="longplot.export"):
            save_publication(fig, tmp_path / "f.pdf", journal="nejm", dpi=150)
        assert "below" in caplog.text

    def test_height_clipped(self, fig, tmp_path, caplog):
        with caplog.at_level(logging.WARNING, logger="longplot.export"):
            save_publication(fig, tmp_path / "f.pdf", journal="nature", height_mm=500)
        assert fig.get_size_inches()[1] * MM_PER_INCH == pytest.approx(170)
        assert "Height adjusted" in caplog.text

    def test_panel_label_added(self, fig, tmp_path):
        save_publication(fig, tmp_path / "f.pdf", panel_label="B")
        assert "B" in [t.get_text() for t in fig.texts]

    def test_bad_column_type(self, fig, tmp_path):
        with pytest.raises(ValueError, match="column_type"):
            save_publication(fig, tmp_path / "f.pdf", column_type="triple")


# ---------------------------------------------------------------------------
# publication_panels
# ---------------------------------------------------------------------------

class TestPublicationPanels:

    def _labels(self, axes):
        return [ax.texts[0].get_text() for ax in axes]

    def test_horizontal_default_labels(self):
        f, axes = publication_panels(3)
        assert len(axes) == 3
        assert self._labels(axes) == ["A", "B", "C"]
        plt.close(f)

    def test_vertical(self):
        f, axes = publication_panels(2, layout="vertical")
        assert axes[0].get_position().y0 > axes[1].get_position().y0
        plt.close(f)

    def test_grid_hides_unused(self):
        f, axes = publication_panels(5, layout="grid")
        assert len(axes) == 5
        hidden = [ax for ax in f.get_axes() if not ax.get_visible()]
        assert len(hidden) == 1
        plt.close(f)

    def test_grid_with_ncol(self):
        f, axes = publication_panels(4, layout="grid", ncol=4)
        assert len({round(ax.get_position().y0, 3) for ax in axes}) == 1
        plt.close(f)

    def test_labels_continue_past_z(self):
        f, axes = publication_panels(28, layout="grid")
        labels = self._labels(axes)
        assert len(labels) == 28
        assert labels[25:] == ["Z", "AA", "AB"]
        assert len(set(labels)) == 28
        plt.close(f)

    def test_custom_labels(self):
        f, axes = publication_panels(2, labels=["i", "ii"])
        assert self._labels(axes) == ["i", "ii"]
        plt.close(f)

    def test_journal_width(self):
        f, _ = publication_panels(2, journal="cell")
        assert f.get_size_inches()[0] * MM_PER_INCH == pytest.approx(178)
        plt.close(f)

    def test_label_count_mismatch(self):
        with pytest.raises(ValueError, match="labels"):
            publication_panels(3, labels=["A", "B"])

    def test_unknown_layout(self):
        with pytest.raises(ValueError, match="layout"):
            publication_panels(2, layout="diagonal")

    def test_grid_too_small(self):
        with pytest.raises(ValueError, match="grid"):
            publication_panels(5, layout="grid", ncol=2, nrow=2)
