from axe_reporter.workflows import doctor
from axe_reporter.workflows.doctor import build_doctor_report, format_doctor_report


def _checks(report):
    return {check["name"]: check for check in report["checks"]}


def test_doctor_reports_config_errors_without_config():
    report = build_doctor_report(None, config_errors=["concurrency must be an integer between 1 and 10"])
    assert report["ok"] is False
    checks = _checks(report)
    assert checks["settings"]["status"] == "missing"
    assert "url_list" not in checks


def test_doctor_flags_missing_inputs(make_config, monkeypatch):
    monkeypatch.setattr(doctor, "_check_playwright_available", lambda: True)
    monkeypatch.setattr(doctor, "_module_available", lambda name: True)
    report = build_doctor_report(make_config(locale="fr", enable_sandbox=False))
    checks = _checks(report)
    assert checks["url_list"]["status"] == "missing"
    assert checks["output_directory"]["status"] == "ok"
    assert checks["template_path"]["status"] == "ok"
    # Informational checks never fail the report on their own.
    assert checks["locale"]["level"] == "info"
    assert checks["sandbox"]["status"] == "missing"
    assert report["ok"] is False


def test_doctor_ok_when_inputs_exist(tmp_path, make_config, monkeypatch):
    monkeypatch.setattr(doctor, "_check_playwright_available", lambda: True)
    monkeypatch.setattr(doctor, "_module_available", lambda name: True)
    config = make_config()
    (tmp_path / "urls.txt").write_text("https://example.com/\n", encoding="utf-8")
    report = build_doctor_report(config)
    assert report["ok"] is True
    text = format_doctor_report(report)
    assert text.startswith("axe-reporter doctor\n")
    assert "Overall: ok" in text
    assert "remedy:" not in text


def test_doctor_checks_operator_axe_script(tmp_path, make_config, monkeypatch):
    monkeypatch.setattr(doctor, "_check_playwright_available", lambda: True)
    report = build_doctor_report(make_config(axe_script_path=str(tmp_path / "axe.min.js")))
    checks = _checks(report)
    assert checks["axe_script_path"]["status"] == "missing"
    assert "axe-playwright-python" not in checks
