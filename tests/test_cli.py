"""Tests for the jobbridge CLI."""

import json
from unittest.mock import MagicMock

import pytest
import typer
from typer.testing import CliRunner

from jobbridge import __version__
from jobbridge.cli import app, load_job, parse_kv_args


runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep the user's config out of CLI tests."""
    monkeypatch.delenv("JOBBRIDGE_CONFIG", raising=False)
    monkeypatch.delenv("JOBBRIDGE_LOCALE", raising=False)
    monkeypatch.setattr("jobbridge.config.DEFAULT_CONFIG_PATH", tmp_path / "no-config.yaml")


def _module(tmp_path, name, source, script="main.py"):
    module_dir = tmp_path / name
    module_dir.mkdir()
    (module_dir / script).write_text(source)
    return module_dir


class TestParseKvArgs:
    """Tests for parse_kv_args."""

    def test_types(self):
        """Values are parsed as bool, null, numbers, JSON or strings."""
        result = parse_kv_args(
            ["a=true", "b=False", "c=null", "d=3", "e=1.5", 'f={"x": 1}', "g=[1,2]", "h=text"]
        )

        assert result == {
            "a": True,
            "b": False,
            "c": None,
            "d": 3,
            "e": 1.5,
            "f": {"x": 1},
            "g": [1, 2],
            "h": "text",
        }

    def test_value_with_equals(self):
        """Only the first = splits."""
        assert parse_kv_args(["opts=a=b"]) == {"opts": "a=b"}

    def test_bare_argument_rejected(self):
        """An argument without = is an error."""
        with pytest.raises(typer.BadParameter):
            parse_kv_args(["bare"])

    def test_empty(self):
        """None gives an empty dict."""
        assert parse_kv_args(None) == {}


class TestLoadJob:
    """Tests for load_job."""

    def test_defaults(self, tmp_path):
        """main.py and no configuration by default."""
        module_dir = _module(tmp_path, "users", "def run(): pass\n")

        job = load_job(str(module_dir))

        assert job.script_file == "main.py"
        assert job.configuration == {}

    def test_module_desc_and_conf(self, tmp_path):
        """module.desc names the script; <name>.conf is the configuration."""
        module_dir = _module(tmp_path, "users", "def run(): pass\n", script="users.py")
        (module_dir / "module.desc").write_text("type: job\ninterface: python\nscript: users.py\n")
        (module_dir / "users.conf").write_text("defaultGroups: [wheel, audio]\n")

        job = load_job(str(module_dir))

        assert job.script_file == "users.py"
        assert job.configuration == {"defaultGroups": ["wheel", "audio"]}

    def test_explicit_job_config(self, tmp_path):
        """--job-config wins over <name>.conf."""
        module_dir = _module(tmp_path, "users", "def run(): pass\n")
        (module_dir / "users.conf").write_text("a: 1\n")
        other = tmp_path / "other.yaml"
        other.write_text("b: 2\n")

        job = load_job(str(module_dir), job_config=str(other))

        assert job.configuration == {"b": 2}


class TestRunCommand:
    """Tests for `jobbridge run`."""

    def test_ok(self, tmp_path):
        """A succeeding job exits 0 and reports progress."""
        module_dir = _module(
            tmp_path, "hostname", '"""Set the hostname."""\ndef run():\n    pass\n'
        )

        result = runner.invoke(app, ["run", str(module_dir)])

        assert result.exit_code == 0
        assert "Set the hostname." in result.output
        assert "hostname: ok" in result.output

    def test_error(self, tmp_path):
        """A job returning a pair exits 1 with summary and details."""
        module_dir = _module(
            tmp_path, "disk", "def run():\n    return ('Disk full', 'No space left')\n"
        )

        result = runner.invoke(app, ["run", str(module_dir)])

        assert result.exit_code == 1
        assert "Disk full" in result.output
        assert "No space left" in result.output

    def test_internal_error(self, tmp_path):
        """A raising job exits 2."""
        module_dir = _module(tmp_path, "broken", "def run():\n    raise RuntimeError()\n")

        result = runner.invoke(app, ["run", str(module_dir)])

        assert result.exit_code == 2
        assert "Bad main script file" in result.output

    def test_stops_at_first_failure(self, tmp_path):
        """Later modules don't run after a failure."""
        first = _module(tmp_path, "first", "def run():\n    return ('stop', 'here')\n")
        second = _module(
            tmp_path, "second", "def run():\n    open('ran.txt', 'w').close()\n"
        )

        result = runner.invoke(app, ["run", str(first), str(second)])

        assert result.exit_code == 1
        assert "second: ok" not in result.output

    def test_shared_store_between_modules(self, tmp_path):
        """Modules share the store and it is persisted."""
        store_file = tmp_path / "store.json"
        writer = _module(
            tmp_path,
            "writer",
            "import jobhost\n"
            "def run():\n"
            "    seed = jobhost.shared_store.value('seed')\n"
            "    jobhost.shared_store.insert('written', seed + 1)\n",
        )
        reader = _module(
            tmp_path,
            "reader",
            "import jobhost\n"
            "def run():\n"
            "    if jobhost.shared_store.value('written') != 42:\n"
            "        return ('bad', 'store')\n",
        )

        result = runner.invoke(
            app,
            ["run", str(writer), str(reader), "--store", str(store_file), "--set", "seed=41"],
        )

        assert result.exit_code == 0, result.output
        assert json.loads(store_file.read_text()) == {"seed": 41, "written": 42}

    def test_pre_script_and_events(self, tmp_path):
        """--pre-script is injected and --events logs lifecycle events."""
        pre_script = tmp_path / "pre.py"
        pre_script.write_text("import jobhost\njobhost.utils.check_target_env_call = lambda *a, **k: 0\n")
        events = tmp_path / "events.jsonl"
        module_dir = _module(
            tmp_path,
            "grub",
            "import jobhost\ndef run():\n    jobhost.utils.check_target_env_call(['grub-install'])\n",
        )

        result = runner.invoke(
            app,
            ["run", str(module_dir), "--pre-script", str(pre_script), "--events", str(events)],
        )

        assert result.exit_code == 0, result.output
        types = [json.loads(line)["event_type"] for line in events.read_text().splitlines()]
        assert types == ["job.started", "job.completed"]

    def test_host_failure(self, tmp_path, monkeypatch):
        """A host binding failure exits 3."""
        monkeypatch.setattr(
            "jobbridge.bridge.session.build_host_module",
            MagicMock(side_effect=RuntimeError("no runtime")),
        )
        module_dir = _module(tmp_path, "any", "def run():\n    pass\n")

        result = runner.invoke(app, ["run", str(module_dir)])

        assert result.exit_code == 3
        assert "Host failure" in result.output

    def test_bad_module_config(self, tmp_path):
        """A broken <name>.conf is reported, not a crash."""
        module_dir = _module(tmp_path, "users", "def run():\n    pass\n")
        (module_dir / "users.conf").write_text("- just\n- a list\n")

        result = runner.invoke(app, ["run", str(module_dir)])

        assert result.exit_code == 1
        assert "cannot load module" in result.output


class TestDescribeCommand:
    """Tests for `jobbridge describe`."""

    def test_pretty_name(self, tmp_path):
        """Prints what pretty_name() returns."""
        module_dir = _module(
            tmp_path, "locale", "def pretty_name():\n    return 'Configuring locales'\n"
        )

        result = runner.invoke(app, ["describe", str(module_dir)])

        assert result.exit_code == 0
        assert "Configuring locales" in result.output

    def test_fallback_status_message(self, tmp_path):
        """Without any description the generic status message is shown."""
        module_dir = _module(tmp_path, "locale", "x = 1\n")

        result = runner.invoke(app, ["describe", str(module_dir)])

        assert result.exit_code == 0
        assert "Running locale operation." in result.output

    def test_bad_module_desc(self, tmp_path):
        """A broken module.desc exits 1 without a traceback."""
        module_dir = _module(tmp_path, "locale", "x = 1\n")
        (module_dir / "module.desc").write_text("script: [oops\n")

        result = runner.invoke(app, ["describe", str(module_dir)])

        assert result.exit_code == 1
        assert "cannot load module" in result.output

    def test_script_calling_sys_exit(self, tmp_path):
        """A script exiting at load time is an internal error."""
        module_dir = _module(tmp_path, "locale", "import sys\nsys.exit(5)\n")

        result = runner.invoke(app, ["describe", str(module_dir)])

        assert result.exit_code == 2
        assert "while loading" in result.output

    def test_host_failure(self, tmp_path, monkeypatch):
        """A host binding failure exits 3."""
        monkeypatch.setattr(
            "jobbridge.bridge.session.build_host_module",
            MagicMock(side_effect=RuntimeError("no runtime")),
        )
        module_dir = _module(tmp_path, "locale", "x = 1\n")

        result = runner.invoke(app, ["describe", str(module_dir)])

        assert result.exit_code == 3
        assert "Host failure" in result.output

    def test_missing_script(self, tmp_path):
        """Missing script exits 1."""
        (tmp_path / "empty").mkdir()

        result = runner.invoke(app, ["describe", str(tmp_path / "empty")])

        assert result.exit_code == 1


class TestStoreCommands:
    """Tests for `jobbridge store`."""

    def test_set_get_list_remove(self, tmp_path):
        """Round trip through the store subcommands."""
        store_file = str(tmp_path / "store.json")

        result = runner.invoke(
            app, ["store", "set", "rootMountPoint=/mnt/target", "count=2", "--store", store_file]
        )
        assert result.exit_code == 0

        result = runner.invoke(app, ["store", "get", "count", "--store", store_file])
        assert result.exit_code == 0
        assert result.output.strip() == "2"

        result = runner.invoke(app, ["store", "list", "--store", store_file])
        assert 'rootMountPoint = "/mnt/target"' in result.output

        result = runner.invoke(app, ["store", "remove", "count", "--store", store_file])
        assert result.exit_code == 0
        assert json.loads((tmp_path / "store.json").read_text()) == {
            "rootMountPoint": "/mnt/target"
        }

    def test_get_missing_key(self, tmp_path):
        """Unknown keys exit 1."""
        result = runner.invoke(
            app, ["store", "get", "nope", "--store", str(tmp_path / "store.json")]
        )

        assert result.exit_code == 1

    def test_no_store_configured(self):
        """Without --store or store_path there is nothing to edit."""
        result = runner.invoke(app, ["store", "list"])

        assert result.exit_code == 1
        assert "no store file" in result.output


class TestConfigCommands:
    """Tests for `jobbridge config`."""

    def test_validate_defaults(self):
        """Defaults validate."""
        result = runner.invoke(app, ["config", "validate"])

        assert result.exit_code == 0
        assert "Host module: jobhost" in result.output

    def test_validate_invalid(self, tmp_path):
        """Invalid values fail validation."""
        path = tmp_path / "config.yaml"
        path.write_text("host_module_name: 'bad name'\n")

        result = runner.invoke(app, ["config", "validate", "--config", str(path)])

        assert result.exit_code == 1
        assert "identifier" in result.output

    def test_show(self, tmp_path):
        """show prints the effective settings."""
        path = tmp_path / "config.yaml"
        path.write_text("branding:\n  application_name: installer\n")

        result = runner.invoke(app, ["config", "show", "--config", str(path)])

        assert result.exit_code == 0
        assert "application_name: installer" in result.output


class TestVersionCommand:
    """Tests for `jobbridge version`."""

    def test_version(self):
        """Prints the package version."""
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.output
