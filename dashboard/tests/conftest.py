import copy
import json

import pytest

from dashboard import app as flask_app

SEED_RECORDS = [
    {
        "id": "w-1",
        "on_sale": "SI",
        "price": 70,
        "location": "Roma - Prati",
        "provider": "Dott. Marco Bianchi",
        "service_name": "Visita cardiologica",
        "company_code": "CARD01",
        "company_service_name": "Visita cardiologica con ECG",
    },
    {
        "id": "w-2",
        "on_sale": "NO",
        "price": 45.5,
        "location": "Milano - Centro",
        "provider": "Dott.ssa Giulia Rossi",
        "service_name": "Ecografia addome",
        "company_code": "ECO02",
        "company_service_name": "Ecografia addome completo",
    },
    {
        "id": "w-3",
        "on_sale": "SI",
        "price": 120,
        "location": "Torino - Centro",
        "provider": "Dott. Paolo Gallo",
        "service_name": "Risonanza magnetica",
        "company_code": "RM03",
        "company_service_name": "RM articolare",
    },
]


@pytest.fixture
def seed_records():
    return copy.deepcopy(SEED_RECORDS)


@pytest.fixture(autouse=True)
def configure_test_env(tmp_path, monkeypatch):
    flask_app.app.config.update(TESTING=True)
    records_file = tmp_path / "records.json"
    records_file.write_text(json.dumps(SEED_RECORDS, indent=2) + "\n", encoding="utf-8")
    monkeypatch.setattr(flask_app, "RECORDS_FILE", records_file)
    monkeypatch.setattr(flask_app, "_RECORD_CATALOG", None)
    yield records_file
