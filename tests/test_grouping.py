"""Tests for group keys and collision-free placement."""
import pytest

from photo_organizer.errors import PlacementExhaustionError
from photo_organizer.grouper import format_gps_segment, resolve_group_key
from photo_organizer.models import ExtractedMetadata, GpsBucket, UNKNOWN_DATE
from photo_organizer import placement
from photo_organizer.placement import NameRegistry, place
from photo_organizer.utils.paths import PLACEHOLDER_NAME, clean_filename


class TestResolveGroupKey:
    def test_date_only_when_gps_disabled(self):
        meta = ExtractedMetadata("2021-03", GpsBucket(40.71, -74.01))
        assert resolve_group_key(meta, use_gps=False) == ("2021-03",)

    def test_date_and_gps(self):
        meta = ExtractedMetadata("2021-03", GpsBucket(40.71, -74.01))
        assert resolve_group_key(meta, use_gps=True) == ("2021-03", "gps_40.71_-74.01")

    def test_gps_requested_but_absent(self):
        assert resolve_group_key(ExtractedMetadata.unknown(), use_gps=True) == (UNKNOWN_DATE,)

    def test_gps_segment_keeps_trailing_zeros(self):
        assert format_gps_segment(GpsBucket(40.7, -74.0)) == "gps_40.70_-74.00"
        assert format_gps_segment(GpsBucket(0.0, 5.0)) == "gps_0.00_5.00"


class TestCleanFilename:
    @pytest.mark.parametrize("raw, expected", [
        ("IMG_1.jpg", "IMG_1.jpg"),
        ("holiday/IMG_1.jpg", "IMG_1.jpg"),
        ("C:\\Users\\me\\IMG_1.jpg", "IMG_1.jpg"),
        ("../../etc/passwd", "passwd"),
        ("..", PLACEHOLDER_NAME),
        ("", PLACEHOLDER_NAME),
        (None, PLACEHOLDER_NAME),
        ("dir/", PLACEHOLDER_NAME),
    ])
    def test_clean(self, raw, expected):
        assert clean_filename(raw) == expected


class TestPlace:
    """Same key and same name must never produce the same path."""

    def test_first_item_keeps_name(self):
        assert place(("2021-03",), "IMG_1.jpg", NameRegistry()) == "2021-03/IMG_1.jpg"

    def test_sequence_of_suffixes(self):
        registry = NameRegistry()
        paths = [place(("2021-03", "gps_40.71_-74.01"), "IMG.jpg", registry) for _ in range(5)]
        assert paths == [
            "2021-03/gps_40.71_-74.01/IMG.jpg",
            "2021-03/gps_40.71_-74.01/IMG_1.jpg",
            "2021-03/gps_40.71_-74.01/IMG_2.jpg",
            "2021-03/gps_40.71_-74.01/IMG_3.jpg",
            "2021-03/gps_40.71_-74.01/IMG_4.jpg",
        ]
        assert len(registry) == 5

    def test_suffixed_name_already_uploaded(self):
        registry = NameRegistry()
        first = place(("2021-03",), "IMG.jpg", registry)
        literal = place(("2021-03",), "IMG_1.jpg", registry)
        third = place(("2021-03",), "IMG.jpg", registry)
        assert (first, literal, third) == ("2021-03/IMG.jpg", "2021-03/IMG_1.jpg", "2021-03/IMG_2.jpg")

    def test_same_name_different_groups(self):
        registry = NameRegistry()
        assert place(("2021-03",), "IMG.jpg", registry) == "2021-03/IMG.jpg"
        assert place(("2021-04",), "IMG.jpg", registry) == "2021-04/IMG.jpg"

    def test_extension_preserved(self):
        registry = NameRegistry()
        place(("d",), "archive.tar.gz", registry)
        assert place(("d",), "archive.tar.gz", registry) == "d/archive.tar_1.gz"

    def test_no_extension(self):
        registry = NameRegistry()
        place(("d",), "README", registry)
        assert place(("d",), "README", registry) == "d/README_1"

    def test_missing_names_get_distinct_placeholders(self):
        registry = NameRegistry()
        assert place(("d",), "", registry) == "d/photo.jpg"
        assert place(("d",), None, registry) == "d/photo_1.jpg"

    def test_registries_are_independent(self):
        assert place(("d",), "a.jpg", NameRegistry()) == place(("d",), "a.jpg", NameRegistry())

    def test_exhaustion_ceiling(self, monkeypatch):
        monkeypatch.setattr(placement, "MAX_DISAMBIGUATION", 2)
        registry = NameRegistry()
        for _ in range(3):
            place(("d",), "a.jpg", registry)
        with pytest.raises(PlacementExhaustionError):
            place(("d",), "a.jpg", registry)
