import json
from datetime import date

from eventcerts.app import db
from eventcerts.models import Certificate, Event
from manage import gen_cert, show_layout, verify_cert


def _issue(client, **overrides):
    payload = {
        "event_id": 1,
        "user_id": "u1",
        "participant_name": "Ana Cruz",
        "event_title": "Demo Day",
        "completion_date": "2024-06-15",
    }
    payload.update(overrides)
    return client.post("/certificates/issue", json=payload)


def test_issue_writes_both_artifacts(client, tmp_path):
    resp = _issue(client)
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["certificate_number"] == "CERT1-001"
    assert body["completion_date"] == "2024-06-15"
    assert body["pdf_url"] == "/certificates/files/1/u1/CERT1-001.pdf"
    assert body["png_url"] == "/certificates/files/1/u1/CERT1-001.png"
    cert_dir = tmp_path / "certificates" / "1" / "u1"
    assert (cert_dir / "CERT1-001.pdf").read_bytes().startswith(b"%PDF")
    assert (cert_dir / "CERT1-001.png").read_bytes().startswith(b"\x89PNG")


def test_artifacts_are_served(client):
    _issue(client)
    resp = client.get("/certificates/files/1/u1/CERT1-001.png")
    assert resp.status_code == 200
    assert resp.data.startswith(b"\x89PNG")
    assert client.get("/certificates/files/1/u1/CERT1-999.png").status_code == 404


def test_reissue_keeps_number(client):
    first = _issue(client).get_json()
    second = _issue(client, participant_name=" Ana Cruz ", completion_date="2025-01-01")
    assert second.status_code == 201
    body = second.get_json()
    assert body["certificate_number"] == first["certificate_number"]
    assert body["completion_date"] == "2024-06-15"
    assert db.session.query(Certificate).count() == 1


def test_issue_uses_event_row(client):
    db.session.add(
        Event(id=4, title="Research Summit", end_date=date(2024, 3, 9), venue="Aula Magna")
    )
    db.session.commit()
    resp = _issue(client, event_id=4, event_title=None, completion_date=None)
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["event_title"] == "Research Summit"
    assert body["completion_date"] == "2024-03-09"


def test_issue_validation(client):
    assert _issue(client, event_id="one").status_code == 400
    assert _issue(client, user_id="").status_code == 400
    assert _issue(client, participant_name="  ").status_code == 400
    assert _issue(client, event_title=None).status_code == 400
    resp = _issue(client, completion_date="someday")
    assert resp.status_code == 400
    assert "someday" in resp.get_json()["error"]
    assert db.session.query(Certificate).count() == 0


def test_verify_endpoint(client):
    _issue(client)
    resp = client.get("/verify-certificate/CERT1-001")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["ok"] is True
    assert body["participant_name"] == "Ana Cruz"
    assert body["event_title"] == "Demo Day"
    missing = client.get("/verify-certificate/CERT1-404")
    assert missing.status_code == 404
    assert missing.get_json() == {"ok": False}


def test_layout_requires_event(client):
    assert client.put("/certificates/layouts/9", json={}).status_code == 404


def test_invalid_layout_is_rejected(client):
    db.session.add(Event(id=3, title="Expo"))
    db.session.commit()
    resp = client.put(
        "/certificates/layouts/3",
        json={"signature_blocks": [{"name": "X", "colour": "#000000"}]},
    )
    assert resp.status_code == 400
    error = resp.get_json()["error"]
    assert "signature_blocks" in error
    assert "colour" in error
    resp = client.put("/certificates/layouts/3", json={"cert_id_config": {"prefix": "bad prefix"}})
    assert resp.status_code == 400
    assert client.get("/certificates/layouts/3").get_json()["stored"] == {}


def test_saved_layout_drives_issuance(client):
    db.session.add(Event(id=3, title="Expo"))
    db.session.commit()
    layout = {"cert_id_config": {"prefix": "EXPO"}, "title_config": {"text": "AWARD"}}
    resp = client.put("/certificates/layouts/3", json=layout)
    assert resp.status_code == 200
    shown = client.get("/certificates/layouts/3").get_json()
    assert shown["stored"] == layout
    assert shown["resolved"]["title_config"]["text"] == "AWARD"
    assert shown["resolved"]["name_config"]["font_size"] == 48
    resp = _issue(client, event_id=3, event_title=None)
    assert resp.get_json()["certificate_number"] == "EXPO-001"


def test_gen_cert_cli(app, tmp_path):
    app.cli.add_command(gen_cert)
    runner = app.test_cli_runner()
    result = runner.invoke(
        args=["gen_cert", "--event", "2", "--user", "7", "--name", "Ben Ortiz", "--title", "Hackathon"]
    )
    assert result.exit_code == 0, result.output
    assert "CERT2-001" in result.output
    assert "/certificates/files/2/7/CERT2-001.pdf" in result.output
    assert (tmp_path / "certificates" / "2" / "7" / "CERT2-001.png").exists()


def test_gen_cert_cli_reports_failure(app):
    app.cli.add_command(gen_cert)
    result = app.test_cli_runner().invoke(
        args=["gen_cert", "--event", "2", "--user", "7", "--name", " ", "--title", "Hackathon"]
    )
    assert result.exit_code == 1


def test_verify_and_layout_cli(app):
    app.cli.add_command(gen_cert)
    app.cli.add_command(verify_cert)
    app.cli.add_command(show_layout)
    runner = app.test_cli_runner()
    runner.invoke(args=["gen_cert", "--event", "2", "--user", "7", "--name", "Ben", "--title", "Hack"])
    result = runner.invoke(args=["verify_cert", "CERT2-001"])
    assert result.exit_code == 0
    assert json.loads(result.output)["participant_name"] == "Ben"
    assert runner.invoke(args=["verify_cert", "NOPE-001"]).exit_code == 1
    result = runner.invoke(args=["show_layout", "--event", "2"])
    assert json.loads(result.output)["cert_id_config"]["prefix"] is None


def test_issue_rejects_wrongly_typed_fields(client):
    for overrides in (
        {"completion_date": 20240615},
        {"participant_name": 42},
        {"participant_name": ["Ana"]},
        {"event_title": {"en": "Demo"}},
    ):
        resp = _issue(client, **overrides)
        assert resp.status_code == 400, overrides
        assert resp.get_json()["ok"] is False
    assert client.post("/certificates/issue", json=["Ana"]).status_code == 400
    assert db.session.query(Certificate).count() == 0
