import json

import pytest
from pydantic import ValidationError

from dashboard import app as flask_app
from dashboard.services.record_store import RecordCatalog, RecordNotFound


def test_update_merges_changes(configure_test_env):
    catalog = RecordCatalog(configure_test_env)
    updated = catalog.update("w-2", {"on_sale": "SI"})
    assert updated["on_sale"] == "SI"
    assert catalog.get("w-2")["on_sale"] == "SI"
    assert catalog.get("w-2")["price"] == pytest.approx(45.5)


def test_update_unknown_id_leaves_file_alone(configure_test_env):
    before = configure_test_env.read_text(encoding="utf-8")
    catalog = RecordCatalog(configure_test_env)
    with pytest.raises(RecordNotFound) as excinfo:
        catalog.update("nope", {"price": 1})
    assert excinfo.value.record_id == "nope"
    assert configure_test_env.read_text(encoding="utf-8") == before


def test_patch_validates_before_lookup(configure_test_env):
    catalog = RecordCatalog(configure_test_env)
    with pytest.raises(ValidationError):
        catalog.patch("nope", {"on_sale": "maybe"})
    with pytest.raises(RecordNotFound):
        catalog.patch("nope", {"on_sale": "NO"})


def test_catalog_recovers_from_corrupt_store(configure_test_env):
    catalog = RecordCatalog(configure_test_env, backups=2)
    catalog.update("w-1", {"price": 71.0})
    catalog.update("w-1", {"price": 72.0})
    configure_test_env.write_text("{corrupt", encoding="utf-8")

    assert catalog.get("w-1")["price"] == pytest.approx(71.0)
    client = flask_app.app.test_client()
    response = client.get("/records")
    assert response.status_code == 200
    assert len(response.get_json()) == 3


def test_check_reports_invalid_and_duplicate_records(configure_test_env, seed_records):
    seed_records[1]["on_sale"] = "maybe"
    seed_records[2]["id"] = "w-1"
    configure_test_env.write_text(json.dumps(seed_records), encoding="utf-8")
    problems = RecordCatalog(configure_test_env).check()
    assert any("invalid on_sale" in problem for problem in problems)
    assert any("duplicate id 'w-1'" in problem for problem in problems)


def test_check_records_command(configure_test_env):
    runner = flask_app.app.test_cli_runner()
    result = runner.invoke(args=["check-records"])
    assert result.exit_code == 0
    assert "OK" in result.output

    configure_test_env.write_text(json.dumps([{"id": "w-9", "on_sale": "SI", "price": -3}]), encoding="utf-8")
    result = runner.invoke(args=["check-records"])
    assert result.exit_code == 1
    assert "invalid price" in result.output
