"""Tests for file membership queries against descriptors."""

import pytest

from scopekit.scope import ResolutionError, Shape, contains_file, filter_files

from sample_workspace import BASE, MAIN, TEST_BASE, TEST_MAIN, url


@pytest.fixture
def tests_descriptor(resolver):
    return resolver.standard_descriptor("ProjectTestFiles")


class TestContainsFile:
    def test_member(self, resolver, tests_descriptor):
        result = contains_file(resolver, tests_descriptor, TEST_MAIN)
        assert result.matches is True
        assert result.file_url == TEST_MAIN
        assert result.scope_display_name == "Project Test Files"
        assert result.shape == Shape.GLOBAL

    def test_non_member(self, resolver, tests_descriptor):
        assert contains_file(resolver, tests_descriptor, MAIN).matches is False

    def test_missing_file(self, resolver, tests_descriptor):
        with pytest.raises(ResolutionError, match="File URL 'file:///ws/nope.py' not found"):
            contains_file(resolver, tests_descriptor, url("nope.py"))

    def test_directory_url(self, resolver, tests_descriptor):
        with pytest.raises(ResolutionError, match="points to a directory"):
            contains_file(resolver, tests_descriptor, url("core"))

    def test_descriptor_diagnostics_carried(self, resolver, tests_descriptor):
        descriptor = tests_descriptor.model_copy(update={"diagnostics": ["Compiled leniently."]})
        assert contains_file(resolver, descriptor, TEST_BASE).diagnostics == ["Compiled leniently."]


class TestFilterFiles:
    def test_partition(self, resolver, tests_descriptor):
        result = filter_files(resolver, tests_descriptor, [MAIN, TEST_MAIN, url("core"), url("ghost.py"), TEST_BASE, BASE])
        assert result.matched_file_urls == [TEST_MAIN, TEST_BASE]
        assert result.excluded_file_urls == [MAIN, BASE]
        assert result.missing_file_urls == [url("core"), url("ghost.py")]
        assert result.diagnostics == [
            f"URL '{url('core')}' points to a directory and was skipped.",
            f"File URL '{url('ghost.py')}' not found.",
        ]

    def test_empty_input(self, resolver, tests_descriptor):
        result = filter_files(resolver, tests_descriptor, [])
        assert result.matched_file_urls == []
        assert result.diagnostics == []
