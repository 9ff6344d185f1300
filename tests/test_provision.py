import json
import os

import pytest

from conftest import make_config, make_outputs
from rancher_ha.deployment import provision, teardown
from rancher_ha.utils.async_command_runner import CommandError
from rancher_ha.utils.errors import ValidationError
from rancher_ha.utils.terraform import commands, maybe_tfvars


class FakeTerraform:
    def __init__(self, outputs=None):
        self.actions = []
        self.variables = {}
        self.outputs = outputs or {}
        self.destroy_error = None

    async def init(self, terraform_dir, **kwargs):
        self.actions.append("init")

    async def apply(self, terraform_dir, variables=None, **kwargs):
        self.actions.append("apply")
        self.variables = variables

    async def destroy(self, terraform_dir, variables=None, **kwargs):
        self.actions.append("destroy")
        if self.destroy_error is not None:
            raise self.destroy_error

    async def output(self, terraform_dir, **kwargs):
        self.actions.append("output")
        return self.outputs


@pytest.fixture
def terraform(monkeypatch):
    fake = FakeTerraform(make_outputs(2))
    monkeypatch.setattr(provision, "init_terraform", fake.init)
    monkeypatch.setattr(provision, "apply_terraform", fake.apply)
    monkeypatch.setattr(provision, "read_flat_outputs", fake.output)
    monkeypatch.setattr(teardown, "destroy_terraform", fake.destroy)
    return fake


async def test_deploy_provisions_then_bootstraps(terraform, remote, local, config):
    results = await provision.deploy(config)

    assert terraform.actions == ["init", "apply", "output"]
    assert terraform.variables["total_has"] == 2
    assert "aws_access_key" in terraform.variables
    assert [r.instance_num for r in results] == [1, 2]


async def test_skip_provision_only_reads_outputs(terraform, remote, local, config):
    await provision.deploy(config, skip_provision=True)
    assert terraform.actions == ["output"]


async def test_deploy_checks_commands_before_terraform(terraform, remote, local, tmp_path):
    config = make_config(tmp_path, total=3, commands=2)

    with pytest.raises(ValidationError):
        await provision.deploy(config)
    assert terraform.actions == []
    assert remote.calls == []


def _populate(config, tmp_path):
    tf_dir = tmp_path / "terraform"
    (tf_dir / ".terraform" / "providers").mkdir(parents=True)
    for name in teardown.TERRAFORM_STATE_FILES:
        (tf_dir / name).write_text("{}")
    (tf_dir / "main.tf").write_text("")
    for n in (1, 2):
        ws = tmp_path / f"high-availability-{n}"
        ws.mkdir()
        (ws / "install.sh").write_text("#!/bin/bash\n")
        (ws / "kube_config.yaml").write_text("")
    return tf_dir


async def test_teardown_removes_everything(terraform, config, tmp_path):
    tf_dir = _populate(config, tmp_path)

    await teardown.teardown(config)

    assert terraform.actions == ["destroy"]
    assert not (tmp_path / "high-availability-1").exists()
    assert not (tmp_path / "high-availability-2").exists()
    assert sorted(os.listdir(tf_dir)) == ["main.tf"]


async def test_teardown_tolerates_missing_files(terraform, config, tmp_path):
    (tmp_path / "terraform").mkdir()
    await teardown.teardown(config)
    assert terraform.actions == ["destroy"]


async def test_failed_destroy_keeps_state(terraform, config, tmp_path):
    tf_dir = _populate(config, tmp_path)
    terraform.destroy_error = CommandError("Command failed with return code 1.", 1)

    with pytest.raises(CommandError):
        await teardown.teardown(config)

    assert (tf_dir / "terraform.tfstate").exists()
    assert (tmp_path / "high-availability-1").exists()


async def test_skip_destroy(terraform, config, tmp_path):
    _populate(config, tmp_path)
    await teardown.teardown(config, skip_destroy=True)

    assert terraform.actions == []
    assert not (tmp_path / "high-availability-1").exists()


def test_base_commands():
    assert commands._make_base_command("apply") == [
        "terraform",
        "apply",
        "-no-color",
        "-auto-approve",
        "-input=false",
    ]
    assert commands._make_base_command("output") == ["terraform", "output", "-no-color", "-json"]


def test_aws_credentials_parser():
    assert commands._aws_credentials_parser("Error: InvalidClientTokenId") is not None
    assert commands._aws_credentials_parser("Error: something else") is None


async def test_read_flat_outputs(monkeypatch, tmp_path):
    seen = {}

    async def fake_run(command, **kwargs):
        seen["command"] = command
        seen["cwd"] = kwargs["cwd"]
        return json.dumps({"ha_1_server1_ip": "10.1.0.1"})

    monkeypatch.setattr(commands, "run_command", fake_run)
    outputs = await commands.read_flat_outputs(str(tmp_path))

    assert outputs == {"ha_1_server1_ip": "10.1.0.1"}
    assert seen["command"][-1] == "flat_outputs"
    assert seen["cwd"] == str(tmp_path)


@pytest.mark.parametrize("raw", ["{}", "not json", '["a"]', '{"a": {"b": 1}}'])
async def test_read_flat_outputs_rejects_bad_output(monkeypatch, tmp_path, raw):
    async def fake_run(command, **kwargs):
        return raw

    monkeypatch.setattr(commands, "run_command", fake_run)
    with pytest.raises(ValidationError):
        await commands.read_flat_outputs(str(tmp_path))


async def test_missing_terraform_dir(tmp_path):
    with pytest.raises(ValidationError, match="not found"):
        await commands.init_terraform(str(tmp_path / "nope"))


async def test_tfvars_file_lives_only_inside_context():
    async with maybe_tfvars("apply", {"total_has": 2}) as args:
        path = args[0].split("=", 1)[1]
        with open(path) as f:
            assert json.load(f) == {"total_has": 2}
    assert not os.path.exists(path)


async def test_no_tfvars_for_init():
    async with maybe_tfvars("init", {"total_has": 2}) as args:
        assert args == []
