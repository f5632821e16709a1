"""
Unit tests for TargetResolver and TargetSpec.
"""
import pytest

from routercm.execution.targets import TargetResolver, TargetSpec
from routercm.utils.exceptions import NodeNotFoundError


class TestTargetSpec:
    """Test TargetSpec constructors."""

    def test_default_is_not_explicit(self):
        spec = TargetSpec()

        assert spec.cluster_wide is False
        assert spec.is_explicit is False

    def test_all_means_cluster_wide(self):
        assert TargetSpec.from_node_names("all") == TargetSpec(cluster_wide=True)

    def test_single_name_string(self):
        spec = TargetSpec.from_node_names("chr-1")

        assert spec.node_names == ["chr-1"]
        assert spec.is_explicit

    def test_name_list(self):
        spec = TargetSpec.from_node_names(["chr-1", "chr-2"])

        assert spec.node_names == ["chr-1", "chr-2"]

    def test_empty_list_is_explicit(self):
        assert TargetSpec.from_node_names([]).is_explicit is True
        assert TargetSpec.from_node_ids([]).is_explicit is True


class TestTargetResolver:
    """Test resolution against a real directory."""

    @pytest.fixture
    def resolver(self, populated_directory):
        return TargetResolver(populated_directory)

    def test_default_returns_active_nodes(self, resolver, populated_directory):
        node = populated_directory.get_node_by_name("chr-2")
        populated_directory.set_node_offline(node.id)

        nodes = resolver.resolve()

        assert [n.name for n in nodes] == ["chr-1", "chr-3"]

    def test_cluster_wide_reads_directory_at_call_time(self, resolver, populated_directory):
        assert len(resolver.resolve(TargetSpec.cluster())) == 3

        populated_directory.create_node("chr-4", "10.0.0.4", "admin", "secret")

        assert len(resolver.resolve(TargetSpec.cluster())) == 4

    def test_cluster_wide_takes_priority_over_names(self, resolver):
        spec = TargetSpec(cluster_wide=True, node_names=["chr-1"])

        assert len(resolver.resolve(spec)) == 3

    def test_explicit_names(self, resolver):
        nodes = resolver.resolve(TargetSpec.from_node_names(["chr-3", "chr-1"]))

        assert [n.name for n in nodes] == ["chr-3", "chr-1"]

    def test_explicit_ids(self, resolver, populated_directory):
        node = populated_directory.get_node_by_name("chr-2")

        nodes = resolver.resolve(TargetSpec.from_node_ids([node.id]))

        assert nodes == [node]

    def test_explicit_offline_node_is_included(self, resolver, populated_directory):
        node = populated_directory.get_node_by_name("chr-2")
        populated_directory.set_node_offline(node.id)

        nodes = resolver.resolve(TargetSpec.from_node_names(["chr-2"]))

        assert [n.name for n in nodes] == ["chr-2"]

    def test_unknown_name_fails_whole_request(self, resolver):
        with pytest.raises(NodeNotFoundError) as exc_info:
            resolver.resolve(TargetSpec.from_node_names(["chr-1", "missing"]))

        assert exc_info.value.identifier == "missing"

    def test_unknown_id_fails_whole_request(self, resolver):
        with pytest.raises(NodeNotFoundError):
            resolver.resolve(TargetSpec.from_node_ids([999]))

    def test_duplicates_collapse_in_first_seen_order(self, resolver, populated_directory):
        chr1 = populated_directory.get_node_by_name("chr-1")

        nodes = resolver.resolve(TargetSpec(node_ids=[chr1.id], node_names=["chr-2", "chr-1", "chr-2"]))

        assert [n.name for n in nodes] == ["chr-1", "chr-2"]

    @pytest.mark.parametrize("spec", [
        TargetSpec.from_node_names([]),
        TargetSpec.from_node_ids([]),
        TargetSpec(node_ids=[], node_names=[]),
    ])
    def test_explicit_empty_selection_resolves_to_nothing(self, resolver, spec):
        assert resolver.resolve(spec) == []

    def test_empty_directory_resolves_to_empty_list(self, directory):
        resolver = TargetResolver(directory)

        assert resolver.resolve(TargetSpec.cluster()) == []
        assert resolver.resolve() == []
