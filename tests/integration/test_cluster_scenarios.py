"""
End-to-end cluster scenarios.

These run the real directory, orchestrator and SQLite audit log together;
only the device client is replaced.
"""
from unittest.mock import Mock

import pytest

from routercm.adapters.routeros_http import RouterOSClient
from routercm.audit.log import AuditLog
from routercm.core.orchestrator import ClusterOrchestrator
from routercm.execution.aggregator import Verdict
from routercm.execution.targets import TargetSpec
from routercm.services.dns import DNSService
from routercm.services.users import RouterOSUserService
from routercm.utils.exceptions import NoTargetsError

from conftest import hang_on


@pytest.fixture
def audit_log(directory):
    log = AuditLog(directory.storage_path)
    yield log
    log.close()


@pytest.fixture
def client():
    return Mock(spec=RouterOSClient)


def build(directory, client, audit_log, config):
    return ClusterOrchestrator(directory, client, audit_log, config)


@pytest.mark.asyncio
async def test_all_nodes_succeed(populated_directory, client, audit_log, fast_config):
    client.create_dns_record.return_value = {".id": "*1"}
    dns = DNSService(build(populated_directory, client, audit_log, fast_config), client)

    result = await dns.create_record({"name": "web.lan", "address": "10.1.1.1"}, actor_id=1)

    assert result.verdict == Verdict.ALL_SUCCEEDED
    assert result.failures == []
    assert len(result.successes) == 3

    logs = audit_log.list_logs()
    assert len(logs) == 1
    assert logs[0]["success"] is True
    assert sorted(logs[0]["details"]["nodes"]) == [1, 2, 3]


@pytest.mark.asyncio
async def test_one_node_times_out(populated_directory, client, audit_log, fast_config):
    client.create_dns_record.side_effect = hang_on("10.0.0.3", result={".id": "*1"})
    dns = DNSService(build(populated_directory, client, audit_log, fast_config), client)

    result = await dns.create_record({"name": "web.lan", "address": "10.1.1.1"})

    assert result.verdict == Verdict.PARTIAL_FAILURE
    assert len(result.successes) == 2
    assert [(node.name, reason) for node, reason in result.failures] == [("chr-3", "timeout")]

    logs = audit_log.list_logs()
    assert len(logs) == 1
    assert logs[0]["success"] is False
    assert logs[0]["details"]["failed_nodes"] == {"3": "timeout"}


@pytest.mark.asyncio
async def test_empty_cluster_has_no_targets(directory, client, audit_log, fast_config):
    orchestrator = build(directory, client, audit_log, fast_config)
    dns = DNSService(orchestrator, client)

    with pytest.raises(NoTargetsError):
        await dns.create_record({"name": "web.lan", "address": "10.1.1.1"})

    with pytest.raises(NoTargetsError):
        await orchestrator.apply("create", "dns_record", "web.lan", client.create_dns_record,
                                 targets=TargetSpec.cluster())

    client.create_dns_record.assert_not_called()
    assert audit_log.count_logs() == 0


@pytest.mark.asyncio
async def test_delete_by_name_on_two_of_three(populated_directory, client, audit_log, fast_config):
    async def list_users(node):
        if node.name == "chr-2":
            return [{".id": "*1", "name": "admin"}]
        return [{".id": "*1", "name": "admin"}, {".id": f"*{node.id}0", "name": "bob"}]

    client.list_users.side_effect = list_users
    client.delete_user.return_value = {}
    users = RouterOSUserService(build(populated_directory, client, audit_log, fast_config), client)

    result = await users.delete_user_by_name("bob", actor_id=4)

    assert result.verdict == Verdict.ALL_SUCCEEDED
    assert client.delete_user.await_count == 2
    assert sorted(call.args[1] for call in client.delete_user.await_args_list) == ["*10", "*30"]
    assert [node.name for node in result.noop_nodes] == ["chr-2"]

    statuses = {entry["node_name"]: entry["status"] for entry in result.to_dict()["successes"]}
    assert statuses == {"chr-1": "deleted", "chr-2": "not_found", "chr-3": "deleted"}

    log = audit_log.list_logs()[0]
    assert log["success"] is True
    assert log["actor_id"] == "4"
    assert log["details"]["not_found"] == [2]


@pytest.mark.asyncio
async def test_offline_nodes_skipped_cluster_wide(populated_directory, client, audit_log, fast_config):
    node = populated_directory.get_node_by_name("chr-1")
    populated_directory.set_node_offline(node.id)
    dns = DNSService(build(populated_directory, client, audit_log, fast_config), client)

    result = await dns.flush_cache()

    assert sorted(n.name for n in result.succeeded_nodes) == ["chr-2", "chr-3"]
