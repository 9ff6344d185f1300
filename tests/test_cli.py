import sys

import pytest

from conftest import CONFIG_FILE
from rancher_ha.cli import cleanup, deploy, hactl
from rancher_ha.models.ha import HAInstanceResult
from rancher_ha.utils.errors import FleetSetupError, InstanceSetupError


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "tool-config.yml"
    path.write_text(CONFIG_FILE)
    return str(path)


def test_hactl_rejects_unknown_subcommand(monkeypatch):
    monkeypatch.setattr(sys, "argv", ["hactl", "launch"])
    with pytest.raises(SystemExit) as excinfo:
        hactl.main()
    assert excinfo.value.code == 1


def test_deploy_prints_results(monkeypatch, capsys, config_file):
    async def fake_deploy(config, skip_provision=False):
        assert skip_provision
        return [
            HAInstanceResult(
                instance_num=1,
                workspace="/tmp/high-availability-1",
                kubeconfig_path=None,
                load_balancer_dns="lb-1",
                rancher_url="rancher-1.example.com",
            )
        ]

    monkeypatch.setattr(deploy, "deploy", fake_deploy)
    deploy.main(["--config", config_file, "--skip-provision"])

    out = capsys.readouterr().out
    assert "HA 1:" in out
    assert "(not saved)" in out
    assert "rancher-1.example.com" in out


def test_deploy_exits_1_on_failed_instance(monkeypatch, capsys, config_file):
    async def fake_deploy(config, skip_provision=False):
        cause = InstanceSetupError(2, "failed to setup first server node")
        raise FleetSetupError([2], cause) from cause

    monkeypatch.setattr(deploy, "deploy", fake_deploy)
    with pytest.raises(SystemExit) as excinfo:
        deploy.main(["--config", config_file])

    assert excinfo.value.code == 1
    assert "instance(s) 2" in capsys.readouterr().err


def test_deploy_missing_config(tmp_path, capsys):
    with pytest.raises(SystemExit) as excinfo:
        deploy.main(["--config", str(tmp_path / "absent.yml")])
    assert excinfo.value.code == 1
    assert "Failed to read config" in capsys.readouterr().err


def test_cleanup_skip_destroy(monkeypatch, config_file):
    seen = {}

    async def fake_teardown(config, skip_destroy=False):
        seen["skip_destroy"] = skip_destroy
        seen["total_has"] = config.total_has

    monkeypatch.setattr(cleanup, "teardown", fake_teardown)
    cleanup.main(["--config", config_file, "--skip-destroy"])

    assert seen == {"skip_destroy": True, "total_has": 1}
