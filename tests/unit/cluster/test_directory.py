"""
Unit tests for NodeDirectory and Node.
"""
import dataclasses

import pytest

from routercm.cluster.directory import NodeDirectory
from routercm.cluster.node import Node, STATUS_OFFLINE, STATUS_ONLINE, STATUS_UNKNOWN
from routercm.utils.exceptions import DirectoryError, DuplicateNodeError, NodeNotFoundError


class TestNode:
    """Test the Node record."""

    def test_defaults(self):
        node = Node(id=1, name="chr-1", host="10.0.0.1")

        assert node.port == 80
        assert node.status == STATUS_UNKNOWN
        assert node.is_active

    def test_offline_is_not_active(self):
        assert not Node(id=1, name="chr-1", host="10.0.0.1", status=STATUS_OFFLINE).is_active

    def test_base_url(self):
        assert Node(id=1, name="a", host="10.0.0.1").base_url == "http://10.0.0.1:80"
        assert Node(id=1, name="a", host="10.0.0.1", port=443).base_url == "https://10.0.0.1:443"

    def test_password_hidden(self):
        node = Node(id=1, name="a", host="h", username="admin", password="hunter2")

        assert "hunter2" not in repr(node)
        assert "password" not in node.to_dict()
        assert "username" not in node.to_dict()

    def test_immutable(self):
        node = Node(id=1, name="a", host="h")

        with pytest.raises(dataclasses.FrozenInstanceError):
            node.status = STATUS_ONLINE


class TestNodeDirectory:
    """Test SQLite node storage."""

    def test_create_and_get(self, directory):
        node = directory.create_node("chr-1", "10.0.0.1", "admin", "secret", port=8080)

        assert node.id is not None
        assert directory.get_node(node.id) == node
        assert directory.get_node_by_name("chr-1") == node
        assert node.port == 8080
        assert node.status == STATUS_UNKNOWN

    def test_storage_path_created(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "db.sqlite"

        directory = NodeDirectory(path)

        assert path.parent.exists()
        directory.close()

    def test_missing_node_raises(self, directory):
        with pytest.raises(NodeNotFoundError):
            directory.get_node(42)
        with pytest.raises(NodeNotFoundError):
            directory.get_node_by_name("nope")

    def test_duplicate_name_rejected(self, directory):
        directory.create_node("chr-1", "10.0.0.1", "admin", "secret")

        with pytest.raises(DuplicateNodeError):
            directory.create_node("chr-1", "10.0.0.2", "admin", "secret")

    def test_duplicate_host_port_rejected(self, directory):
        directory.create_node("chr-1", "10.0.0.1", "admin", "secret")

        with pytest.raises(DuplicateNodeError):
            directory.create_node("chr-2", "10.0.0.1", "admin", "secret")

        # Same host on another port is fine
        directory.create_node("chr-2", "10.0.0.1", "admin", "secret", port=8080)

    @pytest.mark.parametrize("kwargs", [
        {"name": ""},
        {"name": "x" * 101},
        {"host": "bad host!"},
        {"port": 0},
        {"port": 70000},
        {"username": ""},
        {"password": ""},
        {"status": "sleeping"},
    ])
    def test_validation(self, directory, kwargs):
        fields = {"name": "chr-1", "host": "10.0.0.1", "username": "admin", "password": "secret"}
        fields.update(kwargs)

        with pytest.raises(DirectoryError):
            directory.create_node(**fields)

    def test_list_nodes_ordered_by_name(self, directory):
        directory.create_node("chr-b", "10.0.0.2", "admin", "secret")
        directory.create_node("chr-a", "10.0.0.1", "admin", "secret")

        assert [n.name for n in directory.list_nodes()] == ["chr-a", "chr-b"]

    def test_list_active_excludes_offline(self, populated_directory):
        node = populated_directory.get_node_by_name("chr-1")
        populated_directory.set_node_offline(node.id)

        active = populated_directory.list_active_nodes()

        assert [n.name for n in active] == ["chr-2", "chr-3"]
        assert len(populated_directory.list_nodes()) == 3

    def test_unknown_status_counts_as_active(self, directory):
        directory.create_node("chr-1", "10.0.0.1", "admin", "secret")

        assert len(directory.list_active_nodes()) == 1

    def test_update_node(self, populated_directory):
        node = populated_directory.get_node_by_name("chr-1")

        updated = populated_directory.update_node(node.id, host="10.0.1.1", port=443)

        assert updated.host == "10.0.1.1"
        assert updated.scheme == "https"

    def test_update_unknown_field_rejected(self, populated_directory):
        node = populated_directory.get_node_by_name("chr-1")

        with pytest.raises(DirectoryError):
            populated_directory.update_node(node.id, color="blue")

    def test_update_collision(self, populated_directory):
        node = populated_directory.get_node_by_name("chr-1")

        with pytest.raises(DuplicateNodeError):
            populated_directory.update_node(node.id, name="chr-2")

    def test_delete_node(self, populated_directory):
        node = populated_directory.get_node_by_name("chr-1")

        deleted = populated_directory.delete_node(node.id)

        assert deleted == node
        with pytest.raises(NodeNotFoundError):
            populated_directory.get_node(node.id)

    def test_touch_node(self, directory):
        node = directory.create_node("chr-1", "10.0.0.1", "admin", "secret", status=STATUS_OFFLINE)

        touched = directory.touch_node(node.id)

        assert touched.status == STATUS_ONLINE
        assert touched.last_seen_at is not None

    def test_cluster_stats(self, populated_directory):
        node = populated_directory.get_node_by_name("chr-3")
        populated_directory.set_node_offline(node.id)

        assert populated_directory.get_cluster_stats() == {
            "total_nodes": 3,
            "active_nodes": 2,
            "offline_nodes": 1
        }
