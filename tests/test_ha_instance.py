import stat

import pytest

from conftest import make_outputs
from rancher_ha.deployment.ha_instance import setup_ha_instance
from rancher_ha.utils.async_command_runner import CommandError
from rancher_ha.utils.errors import (
    ExecutionError,
    InstanceSetupError,
    NodeBootstrapError,
    SSHConnectionError,
    TokenUnavailableError,
    ValidationError,
)

S1, S2, S3 = "10.1.0.1", "10.1.0.2", "10.1.0.3"


async def test_successful_instance(remote, local, config, tmp_path):
    result = await setup_ha_instance(1, make_outputs(1), config)

    workspace = tmp_path / "high-availability-1"
    assert result.instance_num == 1
    assert result.workspace == str(workspace)
    assert result.kubeconfig_path == str(workspace / "kube_config.yaml")
    assert result.load_balancer_dns == "ha-1-lb.elb.amazonaws.com"
    assert result.rancher_url == "rancher-1.example.com"

    kubeconfig = (workspace / "kube_config.yaml").read_text()
    assert f"https://{S1}:6443" in kubeconfig

    script = workspace / "install.sh"
    assert "--set hostname=rancher-1.example.com" in script.read_text()
    assert "placeholder" not in script.read_text()
    assert stat.S_IMODE(script.stat().st_mode) == 0o755

    assert len(local.calls) == 1
    assert local.calls[0]["cwd"] == str(workspace)
    assert local.calls[0]["env"] == {"KUBECONFIG": str(workspace / "kube_config.yaml")}


async def test_first_node_then_token_then_joining_nodes(remote, local, config):
    await setup_ha_instance(1, make_outputs(1), config)

    first_probe = remote.index_of(S1, "test -f")
    token_read = remote.index_of(S1, "cat /var/lib/rancher/rke2/server/node-token")
    assert first_probe < token_read
    for host in (S2, S3):
        first_contact = remote.hosts().index(host)
        assert token_read < first_contact
        assert "is-active" in remote.commands_for(host)[-1]


async def test_first_node_failure_stops_instance(remote, local, config):
    remote.fail(S1, "get.rke2.io", ExecutionError("exit 1", S1, 1))

    with pytest.raises(InstanceSetupError) as excinfo:
        await setup_ha_instance(1, make_outputs(1), config)

    assert "failed to setup first server node" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, NodeBootstrapError)
    assert S2 not in remote.hosts()
    assert S3 not in remote.hosts()
    assert local.calls == []


async def test_token_failure_stops_instance(remote, local, config):
    remote.token = ""

    with pytest.raises(InstanceSetupError) as excinfo:
        await setup_ha_instance(1, make_outputs(1), config)

    assert isinstance(excinfo.value.__cause__, TokenUnavailableError)
    assert S2 not in remote.hosts()


async def test_one_joining_node_failure_lets_the_other_finish(remote, local, config):
    remote.fail(S2, "mkdir", SSHConnectionError("refused", S2, 255))

    with pytest.raises(InstanceSetupError) as excinfo:
        await setup_ha_instance(1, make_outputs(1), config)

    assert "server node(s) 2" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, NodeBootstrapError)
    assert excinfo.value.__cause__.host == S2
    assert "is-active" in remote.commands_for(S3)[-1]
    assert local.calls == []


async def test_both_joining_nodes_failing_reports_both(remote, local, config):
    remote.fail(S2, "mkdir", SSHConnectionError("refused", S2, 255))
    remote.fail(S3, "mkdir", SSHConnectionError("refused", S3, 255))

    with pytest.raises(InstanceSetupError, match=r"server node\(s\) 2, 3"):
        await setup_ha_instance(1, make_outputs(1), config)


async def test_kubeconfig_failure_is_degraded_not_fatal(remote, local, config, tmp_path):
    remote.fail(S1, "rke2.yaml", ExecutionError("permission denied", S1, 1))

    result = await setup_ha_instance(1, make_outputs(1), config)

    assert result.kubeconfig_path is None
    assert not (tmp_path / "high-availability-1" / "kube_config.yaml").exists()
    assert len(local.calls) == 1


async def test_install_script_failure_fails_instance(remote, local, config):
    local.fail_with = CommandError("Command failed with return code 1.", 1)

    with pytest.raises(InstanceSetupError, match="install script") as excinfo:
        await setup_ha_instance(1, make_outputs(1), config)
    assert isinstance(excinfo.value.__cause__, CommandError)


async def test_invalid_topology_makes_no_remote_calls(remote, local, config):
    outputs = make_outputs(1)
    outputs["ha_1_server3_private_ip"] = "nope"

    with pytest.raises(InstanceSetupError) as excinfo:
        await setup_ha_instance(1, outputs, config)

    assert isinstance(excinfo.value.__cause__, ValidationError)
    assert remote.calls == []
