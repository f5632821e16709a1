"""
Shared pytest fixtures and configuration for routercm tests.

This module provides common fixtures used across all test suites including:
- Sample nodes and a populated SQLite node directory
- A recording audit sink
- Mock RouterOS device clients
- Fast test configuration
"""
import asyncio
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, Mock

import pytest

from routercm.adapters.routeros_http import RouterOSClient
from routercm.cluster.directory import NodeDirectory
from routercm.cluster.node import Node
from routercm.config.loader import Config, DispatchConfig, LoggingConfig
from routercm.core.orchestrator import ClusterOrchestrator


# Node Fixtures


def make_node(node_id: int, name: Optional[str] = None, host: Optional[str] = None, **kwargs) -> Node:
    """Build a node snapshot without touching storage."""
    return Node(
        id=node_id,
        name=name or f"chr-{node_id}",
        host=host or f"10.0.0.{node_id}",
        port=kwargs.pop("port", 80),
        username=kwargs.pop("username", "admin"),
        password=kwargs.pop("password", "secret"),
        **kwargs
    )


@pytest.fixture
def nodes() -> List[Node]:
    """Three in-memory nodes: chr-1..chr-3 on 10.0.0.1..3."""
    return [make_node(1), make_node(2), make_node(3)]


@pytest.fixture
def directory(tmp_path) -> NodeDirectory:
    """Empty node directory backed by a temporary database."""
    node_directory = NodeDirectory(tmp_path / "routercm.db")
    yield node_directory
    node_directory.close()


@pytest.fixture
def populated_directory(directory) -> NodeDirectory:
    """Directory with three online nodes."""
    for i in range(1, 4):
        directory.create_node(
            f"chr-{i}", f"10.0.0.{i}", "admin", "secret", status="online"
        )
    return directory


# Audit Fixtures


class RecordingSink:
    """Audit sink that keeps every record in memory."""

    def __init__(self):
        self.records: List[Dict[str, Any]] = []

    def record(self, action, resource_type, resource_id=None, actor_id=None, details=None, success=True):
        entry = {
            "action": action,
            "resource_type": resource_type,
            "resource_id": resource_id,
            "actor_id": actor_id,
            "details": details or {},
            "success": success
        }
        self.records.append(entry)
        return entry


@pytest.fixture
def audit_sink() -> RecordingSink:
    return RecordingSink()


# Configuration Fixtures


@pytest.fixture
def fast_config() -> Config:
    """Config with short dispatch budgets and console logging off."""
    return Config(
        logging=LoggingConfig(level="DEBUG", console=False),
        dispatch=DispatchConfig(read_timeout_seconds=0.2, write_timeout_seconds=0.2)
    )


# Client Fixtures


@pytest.fixture
def mock_client() -> Mock:
    """RouterOS client double; async methods are AsyncMocks."""
    return Mock(spec=RouterOSClient)


@pytest.fixture
def orchestrator(populated_directory, mock_client, audit_sink, fast_config) -> ClusterOrchestrator:
    return ClusterOrchestrator(populated_directory, mock_client, audit_sink, fast_config)


# Helpers


def hang_on(*hosts: str, result: Any = None, delay: float = 5.0):
    """
    Build an async side effect that sleeps past the budget on ``hosts`` and
    returns ``result`` everywhere else.
    """
    async def side_effect(node, *args, **kwargs):
        if node.host in hosts:
            await asyncio.sleep(delay)
        return result

    return side_effect
