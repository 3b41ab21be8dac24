"""
Unit tests for candidate path construction.

Covers every combination of application name and hostname sub-key, and the
ordering of the resulting candidates.
"""

import dataclasses

import pytest

from zkfss.modules.feature_switch.paths import KeyPathBuilder, build_candidate_paths


class TestBuildCandidatePaths:
    """Test the four precedence tiers."""

    def test_base_only(self):
        """Without application name or hostname only the base path is probed."""
        assert build_candidate_paths("/zkfss/", "blah") == ("/zkfss/blah",)

    def test_hostname_only(self):
        assert build_candidate_paths("/zkfss/", "blah", hostname="h") == (
            "/zkfss/blah/h",
            "/zkfss/blah",
        )

    def test_application_only(self):
        assert build_candidate_paths("/zkfss/", "blah", application_name="XYZ") == (
            "/zkfss/blah/XYZ",
            "/zkfss/blah",
        )

    def test_all_tiers_most_specific_first(self):
        assert build_candidate_paths("/zkfss/", "blah", "XYZ", "h") == (
            "/zkfss/blah/XYZ/h",
            "/zkfss/blah/XYZ",
            "/zkfss/blah/h",
            "/zkfss/blah",
        )

    def test_nested_key_and_custom_namespace(self):
        assert build_candidate_paths("/flags/", "checkout/v2", "web", None) == (
            "/flags/checkout/v2/web",
            "/flags/checkout/v2",
        )

    def test_distinct_names_give_distinct_paths(self):
        paths = build_candidate_paths("/zkfss/", "blah", "app", "host")
        assert len(set(paths)) == 4


class TestKeyPathBuilder:
    """Test the bound builder used by the resolver."""

    def test_build_uses_bound_settings(self):
        builder = KeyPathBuilder(namespace="/ns/", application_name="app", hostname="host")

        assert builder.build("feature") == (
            "/ns/feature/app/host",
            "/ns/feature/app",
            "/ns/feature/host",
            "/ns/feature",
        )

    def test_builder_is_frozen(self):
        builder = KeyPathBuilder(namespace="/ns/")

        with pytest.raises(dataclasses.FrozenInstanceError):
            builder.namespace = "/other/"
