"""
Test suite for FileScanner og FileHashCache.

Tester filtrering, hash-baseret change detection og cache persistence.
"""

import base64
import hashlib
import json
import os
from unittest.mock import patch

import pytest

from plugin_guard.services.scanner.file_hasher import compute_file_hash
from plugin_guard.services.scanner.file_scanner import FileScanner, matches_pattern
from plugin_guard.services.scanner.hash_cache import FileHashCache


def expected_hash(content: bytes) -> str:
    return base64.b64encode(hashlib.sha256(content).digest()).decode("ascii")


async def collect(scanner, root, include, exclude):
    return [item async for item in scanner.enumerate_changed(root, include, exclude)]


class TestMatchesPattern:
    def test_star_matches_everything(self):
        assert matches_pattern("anything.bin", "*")

    def test_extension_match_is_case_insensitive(self):
        assert matches_pattern("Plugin.DLL", "*.dll")
        assert not matches_pattern("plugin.dll.bak", "*.dll")

    def test_exact_name_match_is_case_insensitive(self):
        assert matches_pattern("Harmony.dll", "harmony.DLL")
        assert not matches_pattern("Harmony2.dll", "harmony.dll")

    def test_other_glob_syntax_is_literal(self):
        assert not matches_pattern("plugin.dll", "plug?n.dll")


class TestFileHashCache:
    def test_missing_file_starts_empty(self, temp_dir):
        cache = FileHashCache(os.path.join(temp_dir, "hashes.json"))
        assert len(cache) == 0
        assert cache.has_changed("/a.dll", "hash")

    def test_corrupt_file_starts_empty(self, temp_dir):
        path = os.path.join(temp_dir, "hashes.json")
        with open(path, "w") as f:
            f.write("{not json")

        cache = FileHashCache(path)

        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_mark_uploaded_persists_and_reloads(self, temp_dir):
        path = os.path.join(temp_dir, "hashes.json")
        cache = FileHashCache(path)

        await cache.mark_uploaded("/srv/Plugins/A.dll", "abc=")

        with open(path) as f:
            assert json.load(f) == {"/srv/Plugins/A.dll": "abc="}
        reloaded = FileHashCache(path)
        assert reloaded.get("/srv/Plugins/A.dll") == "abc="

    @pytest.mark.asyncio
    async def test_paths_compare_case_insensitively(self, temp_dir):
        cache = FileHashCache(os.path.join(temp_dir, "hashes.json"))

        await cache.mark_uploaded("/srv/Plugins/A.dll", "one")
        await cache.mark_uploaded("/SRV/plugins/a.DLL", "two")

        assert len(cache) == 1
        assert not cache.has_changed("/srv/plugins/a.dll", "two")

    @pytest.mark.asyncio
    async def test_clear_removes_entries_and_file(self, temp_dir):
        path = os.path.join(temp_dir, "hashes.json")
        cache = FileHashCache(path)
        await cache.mark_uploaded("/a.dll", "h")

        await cache.clear()

        assert len(cache) == 0
        assert not os.path.exists(path)


class TestFileScanner:
    @pytest.fixture
    def hash_cache(self, temp_dir):
        return FileHashCache(os.path.join(temp_dir, "state", "hashes.json"))

    @pytest.fixture
    def scanner(self, hash_cache):
        return FileScanner(hash_cache)

    @pytest.mark.asyncio
    async def test_compute_file_hash_is_base64_sha256(self, temp_dir, make_file):
        path = make_file(os.path.join(temp_dir, "a.dll"), b"payload")
        assert await compute_file_hash(path) == expected_hash(b"payload")

    @pytest.mark.asyncio
    async def test_missing_root_yields_nothing(self, scanner, temp_dir):
        result = await collect(scanner, os.path.join(temp_dir, "nope"), [], [])
        assert result == []

    @pytest.mark.asyncio
    async def test_include_filter_yields_only_matching_files(self, scanner, temp_dir, make_file):
        root = os.path.join(temp_dir, "plugins")
        dll = make_file(os.path.join(root, "a.dll"), b"dll bytes")
        make_file(os.path.join(root, "a.txt"), b"text")

        result = await collect(scanner, root, ["*.dll"], [])

        assert result == [(os.path.abspath(dll), expected_hash(b"dll bytes"))]

    @pytest.mark.asyncio
    async def test_empty_include_matches_all_and_recurses(self, scanner, temp_dir, make_file):
        root = os.path.join(temp_dir, "plugins")
        make_file(os.path.join(root, "a.dll"))
        make_file(os.path.join(root, "nested", "deep", "b.so"))

        result = await collect(scanner, root, [], [])

        assert {os.path.basename(p) for p, _ in result} == {"a.dll", "b.so"}

    @pytest.mark.asyncio
    async def test_exclude_filter_drops_files(self, scanner, temp_dir, make_file):
        root = os.path.join(temp_dir, "plugins")
        make_file(os.path.join(root, "Keep.dll"))
        make_file(os.path.join(root, "0Harmony.dll"))

        result = await collect(scanner, root, ["*.dll"], ["0harmony.dll"])

        assert [os.path.basename(p) for p, _ in result] == ["Keep.dll"]

    @pytest.mark.asyncio
    async def test_unchanged_file_is_skipped_after_upload(
        self, scanner, hash_cache, temp_dir, make_file
    ):
        root = os.path.join(temp_dir, "plugins")
        make_file(os.path.join(root, "a.dll"), b"v1")

        first = await collect(scanner, root, ["*.dll"], [])
        for path, content_hash in first:
            await hash_cache.mark_uploaded(path, content_hash)
        second = await collect(scanner, root, ["*.dll"], [])

        assert len(first) == 1
        assert second == []

    @pytest.mark.asyncio
    async def test_modified_file_is_yielded_again(
        self, scanner, hash_cache, temp_dir, make_file
    ):
        root = os.path.join(temp_dir, "plugins")
        path = make_file(os.path.join(root, "a.dll"), b"v1")
        for found, content_hash in await collect(scanner, root, [], []):
            await hash_cache.mark_uploaded(found, content_hash)

        make_file(path, b"v2")
        result = await collect(scanner, root, [], [])

        assert result == [(os.path.abspath(path), expected_hash(b"v2"))]

    @pytest.mark.asyncio
    async def test_scanner_does_not_mutate_cache(self, scanner, hash_cache, temp_dir, make_file):
        root = os.path.join(temp_dir, "plugins")
        make_file(os.path.join(root, "a.dll"))

        await collect(scanner, root, [], [])

        assert len(hash_cache) == 0

    @pytest.mark.asyncio
    async def test_unreadable_file_is_skipped(self, scanner, temp_dir, make_file):
        root = os.path.join(temp_dir, "plugins")
        make_file(os.path.join(root, "gone.dll"))
        make_file(os.path.join(root, "ok.dll"))

        real_hash = compute_file_hash

        async def flaky_hash(path):
            if path.endswith("gone.dll"):
                raise FileNotFoundError(path)
            return await real_hash(path)

        with patch(
            "plugin_guard.services.scanner.file_scanner.compute_file_hash",
            side_effect=flaky_hash,
        ):
            result = await collect(scanner, root, [], [])

        assert [os.path.basename(p) for p, _ in result] == ["ok.dll"]
