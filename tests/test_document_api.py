"""
Document API tests — versioned documents, visibility, shares, and
document workflow nodes.
"""

import pytest

BASE = "/api/v1/docs"


def _create(client, headers, **body):
    payload = {"title": "Handbook", "content": "v1 text"}
    payload.update(body)
    res = client.post(BASE, json=payload, headers=headers)
    assert res.status_code == 201
    return res.get_json()["data"]


# ── Documents ────────────────────────────────────────────────────────────────


def test_create_writes_first_version(client, alice, auth_header):
    h = auth_header(alice)
    doc = _create(client, h)
    assert doc["visibility"] == "PRIVATE"
    assert doc["latest_version_id"]

    detail = client.get(f"{BASE}/{doc['id']}", headers=h).get_json()["data"]
    assert detail["content"] == "v1 text"
    assert detail["document"]["title"] == "Handbook"


def test_unknown_visibility_falls_back_to_private(client, alice, auth_header):
    doc = _create(client, auth_header(alice), visibility="EVERYONE")
    assert doc["visibility"] == "PRIVATE"


def test_title_required(client, alice, auth_header):
    res = client.post(BASE, json={"title": ""}, headers=auth_header(alice))
    assert res.status_code == 400
    assert res.get_json()["error"]["fields"] == {"title": "required"}


def test_update_appends_version(client, alice, auth_header):
    h = auth_header(alice)
    doc = _create(client, h)
    res = client.put(f"{BASE}/{doc['id']}", json={"title": "Handbook 2", "content": "v2 text"}, headers=h)
    assert res.status_code == 200
    assert res.get_json()["data"]["latest_version_id"] != doc["latest_version_id"]

    versions = client.get(f"{BASE}/{doc['id']}/versions", headers=h).get_json()["data"]
    assert [(v["version_no"], v["content"]) for v in versions] == [(2, "v2 text"), (1, "v1 text")]
    assert client.get(f"{BASE}/{doc['id']}", headers=h).get_json()["data"]["content"] == "v2 text"


@pytest.mark.parametrize("visibility, readable", [("PRIVATE", False), ("PUBLIC", True), ("SHARED", False)])
def test_visibility_controls_reading(client, alice, bob, auth_header, visibility, readable):
    doc = _create(client, auth_header(alice), visibility=visibility)
    res = client.get(f"{BASE}/{doc['id']}", headers=auth_header(bob))
    assert res.status_code == (200 if readable else 403)
    listed = client.get(BASE, headers=auth_header(bob)).get_json()["data"]
    assert len(listed) == (1 if readable else 0)


def test_public_document_is_not_editable_by_others(client, alice, bob, auth_header):
    doc = _create(client, auth_header(alice), visibility="PUBLIC")
    res = client.put(f"{BASE}/{doc['id']}", json={"title": "Mine now"}, headers=auth_header(bob))
    assert res.status_code == 403


def test_shared_view_and_edit(client, alice, bob, auth_header):
    doc = _create(client, auth_header(alice), visibility="SHARED")
    res = client.post(f"{BASE}/{doc['id']}/shares", json={"user_id": bob.id}, headers=auth_header(alice))
    assert res.status_code == 201
    assert client.get(f"{BASE}/{doc['id']}", headers=auth_header(bob)).status_code == 200
    assert client.put(f"{BASE}/{doc['id']}", json={"title": "x"}, headers=auth_header(bob)).status_code == 403

    client.post(f"{BASE}/{doc['id']}/shares", json={"user_id": bob.id, "role": "EDIT"}, headers=auth_header(alice))
    res = client.put(f"{BASE}/{doc['id']}", json={"title": "Bob edit", "content": "b"}, headers=auth_header(bob))
    assert res.status_code == 200


def test_share_unknown_user(client, alice, auth_header):
    doc = _create(client, auth_header(alice), visibility="SHARED")
    res = client.post(f"{BASE}/{doc['id']}/shares", json={"user_id": "ghost"}, headers=auth_header(alice))
    assert res.status_code == 400
    assert res.get_json()["error"]["fields"] == {"user_id": "required"}


def test_admin_reads_private(client, alice, admin, auth_header):
    doc = _create(client, auth_header(alice))
    assert client.get(f"{BASE}/{doc['id']}", headers=auth_header(admin)).status_code == 200


def test_missing_document(client, alice, auth_header):
    assert client.get(f"{BASE}/nope", headers=auth_header(alice)).status_code == 404


# ── Workflow nodes ───────────────────────────────────────────────────────────


def test_workflow_node_defaults(client, alice, auth_header):
    h = auth_header(alice)
    doc = _create(client, h)
    res = client.post(f"{BASE}/{doc['id']}/nodes",
                      json={"name": " Intake ", "exec_form": "OFFLINE_MEETING", "raci": {"R": ["alice"]}},
                      headers=h)
    assert res.status_code == 201
    node = res.get_json()["data"]
    assert node["name"] == "Intake"
    assert node["raci"] == {"R": ["alice"], "A": [], "S": [], "C": [], "I": []}
    assert node["subtasks"] == []
    assert node["diagram_json"] == {"nodes": [], "edges": []}
    assert node["duration_unit"] == "DAY"

    listed = client.get(f"{BASE}/{doc['id']}/nodes", headers=h).get_json()["data"]
    assert [n["id"] for n in listed] == [node["id"]]


def test_workflow_node_validation(client, alice, auth_header):
    h = auth_header(alice)
    doc = _create(client, h)
    res = client.post(f"{BASE}/{doc['id']}/nodes",
                      json={"name": "x", "exec_form": "FAX", "duration_min": 3, "duration_max": 1,
                            "subtasks": [1, 2]},
                      headers=h)
    assert res.status_code == 400
    assert res.get_json()["error"]["fields"] == {
        "exec_form": "invalid_enum", "duration": "min_gt_max", "subtasks": "invalid",
    }


def test_workflow_node_get_and_update(client, alice, bob, auth_header):
    h = auth_header(alice)
    doc = _create(client, h)
    node = client.post(f"{BASE}/{doc['id']}/nodes", json={"name": "A", "exec_form": "DOC_REVIEW"},
                       headers=h).get_json()["data"]

    res = client.put(f"/api/v1/nodes/{node['id']}",
                     json={"name": "A2", "exec_form": "DOC_REVIEW", "subtasks": ["s1"],
                           "diagram_json": {"nodes": [{"id": "x"}]}},
                     headers=h)
    assert res.status_code == 200
    updated = res.get_json()["data"]
    assert updated["name"] == "A2"
    assert updated["subtasks"] == ["s1"]
    assert updated["diagram_json"] == {"nodes": [{"id": "x"}], "edges": []}

    assert client.get(f"/api/v1/nodes/{node['id']}", headers=h).get_json()["data"]["name"] == "A2"
    assert client.get(f"/api/v1/nodes/{node['id']}", headers=auth_header(bob)).status_code == 403
