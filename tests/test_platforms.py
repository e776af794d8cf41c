"""Tests for release_gateway/platforms.py."""

import pytest

from conftest import put_bytes
from release_gateway.config import DEFAULT_PLATFORM_MANIFESTS
from release_gateway.errors import UnsupportedPlatform
from release_gateway.platforms import PlatformTable, PlatformTableRefresher, StaticPlatformTable


class TestPlatformTable:
    """Test extension to manifest name mapping."""

    def setup_method(self):
        self.table = PlatformTable.from_mapping(DEFAULT_PLATFORM_MANIFESTS)

    @pytest.mark.parametrize(
        "ext,name",
        [("dmg", "latest-mac.yml"), ("exe", "latest.yml"), ("deb", "latest-linux.yml")],
    )
    def test_supported(self, ext, name):
        assert self.table.manifest_name(ext) == name

    @pytest.mark.parametrize("ext", ["README", "zip", "rpm", "DMG", ""])
    def test_unsupported(self, ext):
        with pytest.raises(UnsupportedPlatform):
            self.table.manifest_name(ext)

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            self.table.suffixes["rpm"] = "-rpm"

    def test_static_source(self):
        assert StaticPlatformTable(self.table).snapshot() is self.table


class TestPlatformTableRefresher:
    """Test reloading the table from storage."""

    def setup_method(self):
        self.initial = PlatformTable.from_mapping(DEFAULT_PLATFORM_MANIFESTS)

    def test_refresh_loads_object(self, storage):
        put_bytes(storage, "config/platforms.yml", b'dmg: "-mac"\nexe: ""\ndeb: "-linux"\nappimage: "-linux"\n')
        refresher = PlatformTableRefresher(storage, "config/platforms.yml", self.initial)
        table = refresher.refresh()
        assert table.manifest_name("appimage") == "latest-linux.yml"
        assert refresher.snapshot() is table

    def test_null_suffix_means_windows_style(self, storage):
        put_bytes(storage, "config/platforms.yml", b"exe:\n")
        table = PlatformTableRefresher(storage, "config/platforms.yml", self.initial).refresh()
        assert table.manifest_name("exe") == "latest.yml"

    def test_snapshot_unchanged_by_later_refresh(self, storage):
        refresher = PlatformTableRefresher(storage, "config/platforms.yml", self.initial)
        before = refresher.snapshot()
        put_bytes(storage, "config/platforms.yml", b'rpm: "-linux"\n')
        refresher.refresh()
        assert before.manifest_name("dmg") == "latest-mac.yml"
        assert refresher.snapshot().manifest_name("rpm") == "latest-linux.yml"

    @pytest.mark.parametrize("body", [b"[not, a, mapping]", b"key: [unclosed", b""])
    def test_bad_object_keeps_previous(self, storage, body):
        put_bytes(storage, "config/platforms.yml", body)
        refresher = PlatformTableRefresher(storage, "config/platforms.yml", self.initial)
        assert refresher.refresh() is self.initial

    def test_missing_object_keeps_previous(self, storage):
        refresher = PlatformTableRefresher(storage, "config/platforms.yml", self.initial)
        assert refresher.refresh() is self.initial

    def test_start_and_stop(self, storage):
        put_bytes(storage, "config/platforms.yml", b'rpm: "-linux"\n')
        refresher = PlatformTableRefresher(storage, "config/platforms.yml", self.initial, interval_seconds=3600)
        refresher.start()
        try:
            assert refresher._thread is not None and refresher._thread.is_alive()
            assert refresher.snapshot().manifest_name("rpm") == "latest-linux.yml"
        finally:
            refresher.stop()
        assert refresher._thread is None
