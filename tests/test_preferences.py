"""
Tests for debian_workstation.preferences module.
"""

import os

import pytest

from debian_workstation.errors import PreferencesError, PriorityInvariantError
from debian_workstation.preferences import (
    DEFAULT_CHANNELS,
    DEFAULT_GROUPS,
    KERNEL_GROUP,
    LOCK_PRIORITY,
    SHELL_GROUP,
    STABLE,
    STABLE_BACKPORTS,
    TESTING,
    LockedGroup,
    PreferenceSet,
    Stanza,
    build_preferences,
    load_preferences,
    normalize_pattern,
    write_preferences,
)


class TestChannels:
    """Tests for channel priorities."""

    def test_priorities(self):
        assert TESTING.priority == 990
        assert STABLE_BACKPORTS.priority == 500
        assert STABLE.priority == 400

    def test_testing_outranks_backports_outranks_stable(self):
        assert TESTING.priority > STABLE_BACKPORTS.priority > STABLE.priority

    def test_locks_outrank_every_channel(self):
        for group in DEFAULT_GROUPS:
            assert group.priority == LOCK_PRIORITY
            assert all(group.priority > c.priority for c in DEFAULT_CHANNELS)

    def test_pin_expression(self):
        assert TESTING.pin == "release a=testing"


class TestNormalizePattern:
    """Tests for package pattern normalization."""

    def test_globs_are_kept(self):
        assert normalize_pattern("linux-image-*") == "linux-image-*"
        assert normalize_pattern("lib?[0-9]*") == "lib?[0-9]*"

    def test_whitespace_collapsed(self):
        assert normalize_pattern("  gnome   gnome-*  ") == "gnome gnome-*"

    def test_empty_rejected(self):
        with pytest.raises(PreferencesError):
            normalize_pattern("   ")

    def test_source_and_regex_patterns_kept(self):
        assert normalize_pattern("src:mesa") == "src:mesa"
        assert normalize_pattern("/^linux-(image|headers)-6\\./") == (
            "/^linux-(image|headers)-6\\./"
        )

    def test_newline_rejected(self):
        with pytest.raises(PreferencesError):
            normalize_pattern("gnome\nPin-Priority: 1")


class TestStanza:
    """Tests for Stanza."""

    def test_version_pin(self):
        stanza = Stanza("linux-image-*", "version 6.10*", 1001)
        assert stanza.is_version_pin
        assert stanza.version == "6.10"
        assert stanza.release_archive is None

    def test_release_pin(self):
        stanza = Stanza("*", "release a=stable-backports", 500)
        assert not stanza.is_version_pin
        assert stanza.version is None
        assert stanza.release_archive == "stable-backports"

    def test_release_pin_with_several_keys(self):
        stanza = Stanza("*", "release o=Debian,a=testing,n=forky", 990)
        assert stanza.release_archive == "testing"

    def test_with_version_keeps_pattern_and_priority(self):
        stanza = Stanza("gnome gnome-*", "version 46*", 1001, ("# GNOME",))
        updated = stanza.with_version("47")
        assert updated.pin == "version 47*"
        assert updated.package == "gnome gnome-*"
        assert updated.priority == 1001
        assert updated.comments == ("# GNOME",)

    def test_render(self):
        stanza = Stanza("linux-image-*", "version 6.10*", 1001)
        assert stanza.render() == (
            "Package: linux-image-*\nPin: version 6.10*\nPin-Priority: 1001"
        )


class TestBuildPreferences:
    """Tests for build_preferences."""

    def test_renders_expected_file(self, preferences_text):
        prefs = build_preferences(
            DEFAULT_CHANNELS,
            DEFAULT_GROUPS,
            {"kernel": "6.10", "desktop-shell": "46"},
        )
        assert prefs.render() == preferences_text

    def test_kernel_stanza(self):
        prefs = build_preferences(
            DEFAULT_CHANNELS,
            DEFAULT_GROUPS,
            {"kernel": "6.10", "desktop-shell": "46"},
        )
        (stanza,) = prefs.find("linux-image-*")
        assert stanza.render().endswith(
            "Package: linux-image-*\nPin: version 6.10*\nPin-Priority: 1001"
        )

    def test_missing_version_rejected(self):
        with pytest.raises(PreferencesError):
            build_preferences(DEFAULT_CHANNELS, DEFAULT_GROUPS, {"kernel": "6.10"})

    def test_weak_lock_rejected(self):
        weak = LockedGroup(
            name="kernel",
            patterns=("linux-image-*",),
            query_package="linux-image-amd64",
            components=2,
            priority=990,
        )
        with pytest.raises(PriorityInvariantError):
            build_preferences(DEFAULT_CHANNELS, [weak], {"kernel": "6.10"})


class TestParse:
    """Tests for PreferenceSet.parse."""

    def test_round_trip_is_byte_identical(self, preferences_text):
        prefs = PreferenceSet.parse(preferences_text)
        assert len(prefs.stanzas) == 6
        assert prefs.render() == preferences_text

    def test_comments_stay_with_stanza(self, preferences_text):
        prefs = PreferenceSet.parse(preferences_text)
        (stanza,) = prefs.find("gnome gnome-*")
        assert stanza.comments == ("# Hold current GNOME packages",)

    def test_channel_priorities(self, preferences_text):
        prefs = PreferenceSet.parse(preferences_text)
        assert prefs.channel_priorities() == {
            "testing": 990,
            "stable-backports": 500,
            "stable": 400,
        }

    def test_extra_blank_lines_and_indentation(self):
        text = "\n\nPackage: *\n  Pin: release a=testing\nPin-Priority: 990\n\n\n"
        prefs = PreferenceSet.parse(text)
        assert prefs.stanzas == (Stanza("*", "release a=testing", 990),)

    def test_explanation_kept_as_field(self):
        text = "Explanation: keep firmware\nPackage: firmware-*\nPin: release a=stable\nPin-Priority: 400\n"
        prefs = PreferenceSet.parse(text)
        (stanza,) = prefs.stanzas
        assert stanza.explanations == ("keep firmware",)
        assert stanza.comments == ()
        assert prefs.render() == text

    def test_comment_between_fields(self):
        text = (
            "Package: firefox\n"
            "# pinned by admin\n"
            "Pin: release a=stable\n"
            "Pin-Priority: 500\n"
        )
        prefs = PreferenceSet.parse(text)
        (stanza,) = prefs.stanzas
        assert stanza.package == "firefox"
        assert stanza.comments == ("# pinned by admin",)
        assert prefs.render() == text

    def test_trailing_comments(self, preferences_text):
        text = preferences_text + "\n# local note: keep this\n#\n# end\n"
        prefs = PreferenceSet.parse(text)
        assert len(prefs.stanzas) == 6
        assert prefs.trailer == ("# local note: keep this", "#", "# end")
        assert prefs.render() == text

    def test_comment_block_above_stanza(self):
        text = (
            "# Managed by debian-workstation\n"
            "\n"
            "Package: *\n"
            "Pin: release a=testing\n"
            "Pin-Priority: 990\n"
        )
        prefs = PreferenceSet.parse(text)
        assert prefs.stanzas[0].comments == ("# Managed by debian-workstation",)
        assert prefs.render() == text

    def test_comments_only(self):
        prefs = PreferenceSet.parse("# nothing pinned yet\n")
        assert prefs.stanzas == ()
        assert prefs.render() == "# nothing pinned yet\n"

    def test_source_package_pattern(self):
        text = "Package: src:mesa\nPin: release a=stable\nPin-Priority: 500\n"
        prefs = PreferenceSet.parse(text)
        assert prefs.stanzas[0].package == "src:mesa"
        assert prefs.render() == text

    def test_explanation_without_stanza(self):
        with pytest.raises(PreferencesError, match="missing Package"):
            PreferenceSet.parse("Explanation: dangling\n")

    def test_empty_text(self):
        assert PreferenceSet.parse("").stanzas == ()
        assert PreferenceSet().render() == ""

    def test_missing_field(self):
        with pytest.raises(PreferencesError, match="Pin-Priority"):
            PreferenceSet.parse("Package: *\nPin: release a=testing\n")

    def test_bad_priority(self):
        with pytest.raises(PreferencesError, match="Invalid Pin-Priority"):
            PreferenceSet.parse("Package: *\nPin: release a=testing\nPin-Priority: high\n")

    def test_duplicate_field(self):
        with pytest.raises(PreferencesError, match="Duplicate"):
            PreferenceSet.parse("Package: *\nPackage: gnome\nPin: version 1*\nPin-Priority: 1\n")

    def test_unknown_field(self):
        with pytest.raises(PreferencesError, match="Unknown field"):
            PreferenceSet.parse("Package: *\nPriority: 1\n")

    def test_garbage_line(self):
        with pytest.raises(PreferencesError, match="Unparsable"):
            PreferenceSet.parse("this is not a stanza\n")

    def test_rewrites_rule_spanning_three_lines(self):
        text = "Package: linux-headers-*\nPin: version 6.1*\nPin-Priority: 1001\n"
        prefs = PreferenceSet.parse(text).with_group_version(
            LockedGroup("headers", ("linux-headers-*",), "linux-headers-amd64", 2),
            "6.12",
        )
        assert prefs.render() == (
            "Package: linux-headers-*\nPin: version 6.12*\nPin-Priority: 1001\n"
        )


class TestWithGroupVersion:
    """Tests for PreferenceSet.with_group_version."""

    def test_only_version_field_changes(self, preferences_text):
        prefs = PreferenceSet.parse(preferences_text)
        updated = prefs.with_group_version(KERNEL_GROUP, "6.12")
        expected = preferences_text.replace("Pin: version 6.10*", "Pin: version 6.12*")
        assert updated.render() == expected

    def test_channels_untouched(self, preferences_text):
        prefs = PreferenceSet.parse(preferences_text)
        updated = prefs.with_group_version(SHELL_GROUP, "47")
        assert updated.stanzas[:3] == prefs.stanzas[:3]

    def test_trailer_kept(self, preferences_text):
        prefs = PreferenceSet.parse(preferences_text + "\n# local note\n")
        updated = prefs.with_group_version(KERNEL_GROUP, "6.12")
        assert updated.trailer == ("# local note",)

    def test_original_set_unchanged(self, preferences_text):
        prefs = PreferenceSet.parse(preferences_text)
        prefs.with_group_version(SHELL_GROUP, "47")
        assert prefs.render() == preferences_text

    def test_missing_group(self):
        prefs = PreferenceSet.parse(
            "Package: *\nPin: release a=testing\nPin-Priority: 990\n"
        )
        with pytest.raises(PreferencesError, match="kernel"):
            prefs.with_group_version(KERNEL_GROUP, "6.12")

    def test_partially_missing_group(self):
        prefs = PreferenceSet.parse(
            "Package: linux-image-*\nPin: version 6.10*\nPin-Priority: 1001\n"
        )
        with pytest.raises(PreferencesError, match="linux-headers-"):
            prefs.with_group_version(KERNEL_GROUP, "6.12")


class TestValidate:
    """Tests for the priority invariant."""

    def test_valid_file(self, preferences_text):
        PreferenceSet.parse(preferences_text).validate()

    def test_lock_equal_to_channel_rejected(self):
        prefs = PreferenceSet(
            (
                Stanza("*", "release a=testing", 990),
                Stanza("linux-image-*", "version 6.10*", 990),
            )
        )
        with pytest.raises(PriorityInvariantError):
            prefs.validate()

    def test_no_channels(self):
        PreferenceSet((Stanza("linux-image-*", "version 6.10*", 100),)).validate()


class TestWritePreferences:
    """Tests for load_preferences and write_preferences."""

    def test_write_and_load(self, tmp_path, preferences_text):
        path = tmp_path / "preferences"
        write_preferences(path, PreferenceSet.parse(preferences_text))
        assert path.read_text() == preferences_text
        assert load_preferences(path).render() == preferences_text
        assert oct(os.stat(path).st_mode & 0o777) == oct(0o644)

    def test_overwrites_existing_file(self, tmp_path, preferences_text):
        path = tmp_path / "preferences"
        path.write_text("Package: *\nPin: release a=unstable\nPin-Priority: 100\n")
        write_preferences(path, PreferenceSet.parse(preferences_text))
        assert path.read_text() == preferences_text

    def test_invalid_set_is_not_written(self, tmp_path):
        path = tmp_path / "preferences"
        path.write_text("original\n")
        prefs = PreferenceSet(
            (
                Stanza("*", "release a=testing", 990),
                Stanza("gnome gnome-*", "version 46*", 500),
            )
        )
        with pytest.raises(PriorityInvariantError):
            write_preferences(path, prefs)
        assert path.read_text() == "original\n"

    def test_no_temporary_files_left(self, tmp_path, preferences_text):
        path = tmp_path / "preferences"
        write_preferences(path, PreferenceSet.parse(preferences_text))
        leftovers = [p.name for p in tmp_path.iterdir() if p.name.endswith(".tmp")]
        assert leftovers == []

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(PreferencesError, match="does not exist"):
            load_preferences(tmp_path / "missing")
