import json

from service import cli


def test_cli_run_dry_run_prints_report(capsys):
    rc = cli.main([
        "run",
        "modules.job_alert",
        "--kwargs",
        "url=https://jobinja.ir/jobs",
        "skip_network=true",
        "--dry-run",
    ])

    assert rc == 0
    out, _ = capsys.readouterr()
    report = json.loads(out[: out.rindex("}") + 1])
    assert report["skipped"] is True
    assert "DONE" in out


def test_cli_run_config_error_exits_nonzero(capsys):
    rc = cli.main(["run", "--kwargs", "skip_network=true"])

    assert rc == 1
    _, err = capsys.readouterr()
    assert "FAILURE" in err and "URL" in err


def test_cli_parse_kv_pairs_decodes_json_values():
    assert cli._parse_kv_pairs(["a=1", "b=true", 'c=["x"]', "d=plain"]) == {
        "a": 1,
        "b": True,
        "c": ["x"],
        "d": "plain",
    }


def test_cli_validate_and_list_jobs(write_min_config, capsys):
    assert cli.main(["validate-config"]) == 0
    assert cli.main(["list-jobs"]) == 0
    out, _ = capsys.readouterr()
    assert "OK: configuration is valid." in out
    assert "job-alert-hourly" in out


def test_cli_validate_config_reports_errors(tmp_path, capsys):
    p = tmp_path / "bad.json"
    p.write_text(json.dumps({"jobs": [{"module": "m"}]}), encoding="utf-8")

    assert cli.main(["--config", str(p), "validate-config"]) == 1
    _, err = capsys.readouterr()
    assert "configuration invalid" in err


def test_cli_trigger_prints_timestamp(monkeypatch, capsys):
    monkeypatch.setattr(cli._runner, "run_module_once", lambda *a, **k: (cli._runner.RunResult(True, "ok"), "r1"))

    assert cli.main(["trigger"]) == 0
    out, _ = capsys.readouterr()
    assert set(json.loads(out)) == {"datetime"}
