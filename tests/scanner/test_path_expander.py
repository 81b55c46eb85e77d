"""
Tests for watch path wildcard expansion.
"""

import os

from plugin_guard.services.scanner.path_expander import expand_pattern, expand_watch_paths


class TestExpandWatchPaths:
    def test_pattern_without_wildcard_passes_through(self, temp_dir):
        assert expand_watch_paths(["Modules"], temp_dir) == ["Modules"]

    def test_nonexistent_literal_root_is_kept(self, temp_dir):
        assert expand_watch_paths(["Missing/Plugins"], temp_dir) == ["Missing/Plugins"]

    def test_single_wildcard_expands_subdirectories(self, temp_dir):
        os.makedirs(os.path.join(temp_dir, "Servers", "S1"))
        os.makedirs(os.path.join(temp_dir, "Servers", "S2"))

        result = expand_watch_paths(["Servers/*/Plugins"], temp_dir)

        assert set(result) == {
            os.path.join("Servers", "S1", "Plugins"),
            os.path.join("Servers", "S2", "Plugins"),
        }

    def test_files_are_not_treated_as_subdirectories(self, temp_dir, make_file):
        os.makedirs(os.path.join(temp_dir, "Servers", "S1"))
        make_file(os.path.join(temp_dir, "Servers", "notes.txt"))

        result = expand_watch_paths(["Servers/*"], temp_dir)

        assert result == [os.path.join("Servers", "S1")]

    def test_multiple_wildcards_form_cartesian_product(self, temp_dir):
        for server in ("A", "B"):
            for framework in ("Rocket", "OpenMod"):
                os.makedirs(os.path.join(temp_dir, "Servers", server, framework))

        result = expand_watch_paths(["Servers/*/*/plugins"], temp_dir)

        assert len(result) == 4
        assert os.path.join("Servers", "A", "OpenMod", "plugins") in result
        assert os.path.join("Servers", "B", "Rocket", "plugins") in result

    def test_missing_wildcard_parent_contributes_nothing(self, temp_dir):
        assert expand_watch_paths(["Servers/*/Plugins"], temp_dir) == []

    def test_backslash_separators_are_supported(self, temp_dir):
        os.makedirs(os.path.join(temp_dir, "Servers", "S1"))

        result = expand_pattern("Servers\\*\\Plugins", temp_dir)

        assert result == [os.path.join("Servers", "S1", "Plugins")]

    def test_absolute_pattern_keeps_its_anchor(self, temp_dir):
        os.makedirs(os.path.join(temp_dir, "Servers", "S1"))
        pattern = os.path.join(temp_dir, "Servers", "*", "Plugins")

        result = expand_pattern(pattern, "/does/not/matter")

        assert result == [os.path.join(temp_dir, "Servers", "S1", "Plugins")]

    def test_results_are_concatenated_without_deduplication(self, temp_dir):
        os.makedirs(os.path.join(temp_dir, "Servers", "S1"))

        result = expand_watch_paths(
            ["Modules", "Servers/*", "Modules", "Servers/*"], temp_dir
        )

        assert result == [
            "Modules",
            os.path.join("Servers", "S1"),
            "Modules",
            os.path.join("Servers", "S1"),
        ]
