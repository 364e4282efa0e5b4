"""Tests for merging fragments into device records."""

import math
from pathlib import Path, PurePosixPath

import pytest

from zram_generator.config.fragments import Fragment, parse_fragment_text
from zram_generator.config.resolver import (
    DeviceResolver,
    parse_absolute_path,
    parse_compression_algorithms,
    parse_optional_size,
    parse_swap_priority,
    resolve_fragments,
)
from zram_generator.domain import Algorithms
from zram_generator.exceptions import ConfigValueError, DirectiveError


def fragment(text: str, name: str = "a.conf", precedence: int = 0) -> Fragment:
    return parse_fragment_text(text, Path("/etc/systemd/zram-generator.conf.d") / name, precedence)


def resolve(*texts: str, kernel_override: bool = False):
    fragments = [fragment(text, f"{index:02d}.conf", index) for index, text in enumerate(texts)]
    return resolve_fragments(fragments, kernel_override)


class TestValueParsers:
    """Test parsing of individual key values."""

    def test_optional_size(self):
        """Test sizes parse as integers and 'none' means unlimited."""
        assert parse_optional_size("2048") == 2048
        assert parse_optional_size("none") is None

    @pytest.mark.parametrize("value", ["", "-1", "1.5", "lots", "NONE"])
    def test_optional_size_rejects(self, value):
        """Test invalid sizes raise ValueError."""
        with pytest.raises(ValueError):
            parse_optional_size(value)

    @pytest.mark.parametrize("value,expected", [("-1", -1), ("0", 0), ("32767", 32767), ("+5", 5)])
    def test_swap_priority_range(self, value, expected):
        """Test priorities within [-1, 32767] are accepted."""
        assert parse_swap_priority(value) == expected

    @pytest.mark.parametrize("value", ["-2", "32768", "high", ""])
    def test_swap_priority_rejects(self, value):
        """Test out-of-range or non-integer priorities are rejected."""
        with pytest.raises(ValueError):
            parse_swap_priority(value)

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("/foo/./bar/", "/foo/bar"),
            ("/foo//bar/baz/", "/foo/bar/baz"),
            ("///", "/"),
            ("/.żupan-ci3pły", "/.żupan-ci3pły"),
            ("/dev/sda1", "/dev/sda1"),
        ],
    )
    def test_absolute_path_normalized(self, value, expected):
        """Test paths collapse repeated separators and '.' components."""
        assert parse_absolute_path(value) == PurePosixPath(expected)
        assert str(parse_absolute_path(value)) == expected

    @pytest.mark.parametrize("value", ["/foo/../bar", "foo/bar", "./foo", "", "/.."])
    def test_absolute_path_rejects(self, value):
        """Test relative and '..'-containing paths are rejected."""
        with pytest.raises(ValueError):
            parse_absolute_path(value)

    def test_compression_single_algorithm(self):
        """Test a bare algorithm name."""
        assert parse_compression_algorithms("zstd") == Algorithms([("zstd", "")], "")

    def test_compression_with_params_and_global(self):
        """Test parameters turn commas into spaces and '(...)' sets the global string."""
        algorithms = parse_compression_algorithms(
            "zstd(dictionary=/etc/gaming,level=9) (recompargs)"
        )
        assert algorithms == Algorithms(
            [("zstd", "dictionary=/etc/gaming level=9")], "recompargs"
        )

    def test_compression_recompression_stages(self):
        """Test multiple algorithms become ordered stages."""
        algorithms = parse_compression_algorithms("lzo-rle zstd(level=3) (type=idle)")
        assert list(algorithms.stages()) == [(0, "lzo-rle", ""), (1, "zstd", "level=3")]
        assert algorithms.recompression_global == "type=idle"

    def test_compression_unterminated_params(self):
        """Test a missing closing parenthesis is rejected."""
        with pytest.raises(ValueError):
            parse_compression_algorithms("zstd(level=3")


class TestDeviceResolver:
    """Test per-device merging across fragments."""

    def test_defaults_on_first_sight(self):
        """Test a bare section creates a device with defaults."""
        config = resolve("[zram0]\n")
        device = config.devices["zram0"]
        assert device.host_memory_limit_mb is None
        assert device.zram_size is None
        assert device.zram_resident_limit is None
        assert device.swap_priority == 100
        assert device.options == "discard"
        assert device.compression_algorithms == Algorithms()
        assert device.disksize == 0
        assert device.is_swap

    def test_all_recognized_keys(self):
        """Test every recognized key lands in its field."""
        config = resolve(
            "[zram3]\n"
            "host-memory-limit=4096\n"
            "zram-size=min(ram, 1024)\n"
            "zram-resident-limit=ram / 8\n"
            "compression-algorithm=lz4 zstd\n"
            "writeback-device=/dev/disk/by-partuuid/1234\n"
            "swap-priority=5\n"
            "mount-point=/var/tmp\n"
            "fs-type=ext4\n"
            "options=discard,noatime\n"
        )
        device = config.devices["zram3"]
        assert device.host_memory_limit_mb == 4096
        assert device.zram_size.text == "min(ram, 1024)"
        assert device.zram_resident_limit.text == "ram / 8"
        assert device.compression_algorithms.compression_algorithms == [("lz4", ""), ("zstd", "")]
        assert device.writeback_dev == PurePosixPath("/dev/disk/by-partuuid/1234")
        assert device.swap_priority == 5
        assert device.mount_point == PurePosixPath("/var/tmp")
        assert device.fs_type == "ext4"
        assert device.options == "discard,noatime"
        assert not device.is_swap

    def test_expression_remembers_origin(self):
        """Test compiled expressions record the fragment that set them."""
        config = resolve("[zram0]\nzram-size=ram\n", "[zram0]\nzram-resident-limit=1\n")
        device = config.devices["zram0"]
        assert device.zram_size.origin == Path("/etc/systemd/zram-generator.conf.d/00.conf")
        assert device.zram_resident_limit.origin == Path("/etc/systemd/zram-generator.conf.d/01.conf")

    def test_deprecated_memory_limit_alias(self):
        """Test memory-limit sets host_memory_limit_mb."""
        config = resolve("[zram0]\nmemory-limit=none\n[zram1]\nmemory-limit=512\n")
        assert config.devices["zram0"].host_memory_limit_mb is None
        assert config.devices["zram1"].host_memory_limit_mb == 512

    def test_legacy_fields(self):
        """Test zram-fraction and max-zram-size are recorded separately."""
        config = resolve(
            "[zram0]\nzram-fraction=0.1\nmax-zram-size=2048\n"
            "[zram1]\nzram-fraction=0.1\nmax-zram-size=none\n"
            "[zram2]\n"
        )
        assert config.devices["zram0"].zram_fraction == 0.1
        assert config.devices["zram0"].max_zram_size_mb == 2048
        assert config.devices["zram1"].max_zram_size_mb == math.inf
        assert config.devices["zram1"].uses_legacy_sizing
        assert not config.devices["zram2"].uses_legacy_sizing

    def test_last_fragment_wins_per_key(self):
        """Test later fragments override only the keys they set."""
        config = resolve(
            "[zram0]\nhost-memory-limit=1235\noptions=discard,first\nswap-priority=10\n",
            "[zram0]\noptions=\n",
            "[zram0]\nswap-priority=20\n",
        )
        device = config.devices["zram0"]
        assert device.host_memory_limit_mb == 1235
        assert device.options == ""
        assert device.swap_priority == 20

    def test_later_fragment_may_create_device(self):
        """Test a device first named by a later fragment still gets earlier-independent defaults."""
        config = resolve("[zram0]\n", "[zram2]\nzram-size=ram*0.8\noptions=\n")
        assert set(config.devices) == {"zram0", "zram2"}
        assert config.devices["zram2"].zram_size.text == "ram*0.8"

    def test_ignored_sections(self, log_messages):
        """Test non-device sections are reported and skipped."""
        config = resolve("[swap]\noptions=x\n[zram]\n[zramx]\n[zram1]\n")
        assert list(config.devices) == ["zram1"]
        assert any("ignoring section [swap]" in message for message in log_messages)
        assert any("ignoring section [zramx]" in message for message in log_messages)

    def test_unknown_key_warns(self, log_messages):
        """Test unknown keys are reported and do not error."""
        config = resolve("[zram0]\nturbo=yes\noptions=x\n")
        assert config.devices["zram0"].options == "x"
        assert any("unknown key turbo" in message for message in log_messages)

    def test_invalid_value_is_fatal_with_context(self):
        """Test a bad value raises ConfigValueError carrying path, key and value."""
        with pytest.raises(ConfigValueError) as exc_info:
            resolve("[zram0]\n", "[zram0]\nswap-priority=40000\n")
        error = exc_info.value
        assert error.path == Path("/etc/systemd/zram-generator.conf.d/01.conf")
        assert error.section == "zram0"
        assert error.key == "swap-priority"
        assert error.value == "40000"
        assert "01.conf" in str(error)

    def test_malformed_expression_is_fatal(self):
        """Test a zram-size that does not parse aborts resolution."""
        with pytest.raises(ConfigValueError) as exc_info:
            resolve("[zram0]\nzram-size=ram *\n")
        assert exc_info.value.key == "zram-size"

    def test_relative_mount_point_is_fatal(self):
        """Test relative mount points are rejected."""
        with pytest.raises(ConfigValueError):
            resolve("[zram0]\nmount-point=var/tmp\n")

    def test_kernel_override_synthesizes_zram0(self):
        """Test the kernel flag adds a default zram0 when none is configured."""
        config = resolve("[zram1]\n", kernel_override=True)
        assert set(config.devices) == {"zram0", "zram1"}
        assert config.devices["zram0"].options == "discard"

    def test_kernel_override_keeps_configured_zram0(self):
        """Test a configured zram0 is not replaced by the kernel flag."""
        config = resolve("[zram0]\noptions=x\n", kernel_override=True)
        assert config.devices["zram0"].options == "x"

    def test_ordered_devices_by_number(self):
        """Test devices are ordered numerically, not lexically."""
        config = resolve("[zram10]\n[zram2]\n[zram0]\n")
        assert [device.name for device in config.ordered_devices()] == ["zram0", "zram2", "zram10"]


class TestTopLevelDirectives:
    """Test handling of keys outside any section."""

    def test_set_directives_collected_in_order(self):
        """Test set! directives are kept in fragment order with their origin."""
        config = resolve("set!a = echo 1\nset!b = echo a + 1\n", "set!a = echo 5\n")
        assert [(d.name, d.command) for d in config.directives] == [
            ("a", "echo 1"),
            ("b", "echo a + 1"),
            ("a", "echo 5"),
        ]
        assert config.directives[2].origin.name == "01.conf"
        assert config.directives[0].key == "set!a"

    def test_unknown_directive_warns(self, log_messages):
        """Test an unrecognized prefix is reported and ignored."""
        config = resolve("get!a = echo 1\nplain = 2\n")
        assert config.directives == []
        assert any("unknown top-level directive get!a" in message for message in log_messages)

    def test_set_without_name_is_fatal(self):
        """Test set! with an empty variable name aborts."""
        with pytest.raises(DirectiveError):
            resolve("set! = echo 1\n")

    def test_resolver_accepts_fragments_incrementally(self):
        """Test the resolver can be fed one fragment at a time."""
        resolver = DeviceResolver()
        resolver.apply_fragment(fragment("[zram0]\nzram-size=ram\n"))
        resolver.apply_fragment(fragment("[zram0]\nfs-type=ext2\n", "b.conf", 1))
        device = resolver.finish().devices["zram0"]
        assert device.zram_size.text == "ram"
        assert device.effective_fs_type() == "ext2"
