import logging

from epub2obsidian.assets import extract_assets, unique_asset_name
from epub2obsidian.models import AssetItem

from helpers import make_asset


def test_colliding_basenames_get_counter_suffix(tmp_path):
    assets = [
        make_asset("cover-a", "images/a/cover.jpg", b"A", media_type="image/jpeg"),
        make_asset("cover-b", "images/b/cover.jpg", b"B", media_type="image/jpeg"),
    ]

    renames = extract_assets(assets, tmp_path)

    assert renames["images/a/cover.jpg"] == "cover.jpg"
    assert renames["images/b/cover.jpg"] == "cover_1.jpg"
    assert renames["cover.jpg"] in {"cover.jpg", "cover_1.jpg"}
    assert (tmp_path / "cover.jpg").read_bytes() == b"A"
    assert (tmp_path / "cover_1.jpg").read_bytes() == b"B"


def test_rename_map_is_keyed_by_decoded_basename(tmp_path):
    renames = extract_assets([make_asset("p", "Images/My%20Plate.png", b"png")], tmp_path)

    assert renames["My Plate.png"] == "My Plate.png"
    assert (tmp_path / "My Plate.png").exists()


def test_failed_asset_is_skipped(tmp_path, caplog):
    def _boom():
        raise IOError("truncated zip member")

    assets = [
        AssetItem(id="broken", media_type="image/png", href="broken.png", fetch=_boom),
        make_asset("fine", "fine.png"),
    ]

    with caplog.at_level(logging.WARNING):
        renames = extract_assets(assets, tmp_path)

    assert "broken.png" not in renames
    assert renames["fine.png"] == "fine.png"
    assert any("broken" in record.getMessage() for record in caplog.records)


def test_unique_asset_name_counts_upwards():
    used = {"fig.png", "fig_1.png"}

    assert unique_asset_name("fig.png", used) == "fig_2.png"
    assert unique_asset_name("noext", used) == "noext"
    assert "fig_2.png" in used
