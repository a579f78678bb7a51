"""文件夹树接口的集成测试：创建、路径、重命名、浏览与级联删除。"""

import os

from fastapi.testclient import TestClient

from app.packages.drive.core.exceptions import StorageError
from app.packages.drive.services.storage_backends import LocalBackend


def _create_folder(client: TestClient, headers: dict, name: str, parent_id=None) -> dict:
    body = {"name": name}
    if parent_id is not None:
        body["parentId"] = parent_id
    response = client.post("/api/v1/folders", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def _upload(client: TestClient, headers: dict, name: str, folder_id=None, content: bytes = b"data"):
    form = {"folderId": str(folder_id)} if folder_id is not None else {}
    return client.post(
        "/api/v1/files/upload",
        files=[("files", (name, content, "text/plain"))],
        data=form,
        headers=headers,
    )


def _blob_path(user_id: int, name: str) -> str:
    return os.path.join(os.environ["LOCAL_STORAGE_ROOT"], str(user_id), name)


def test_full_path_of_nested_folders(client: TestClient, make_user):
    _, headers = make_user()
    a = _create_folder(client, headers, "A")
    b = _create_folder(client, headers, "B", a["id"])
    c = _create_folder(client, headers, "C", b["id"])

    assert a["fullPath"] == "A"
    assert c["fullPath"] == "A/B/C"
    assert c["parentId"] == b["id"]


def test_sibling_names_are_unique(client: TestClient, make_user):
    _, headers = make_user()
    a = _create_folder(client, headers, "A")
    _create_folder(client, headers, "Docs", a["id"])

    root_duplicate = client.post("/api/v1/folders", json={"name": "A"}, headers=headers)
    nested_duplicate = client.post("/api/v1/folders", json={"name": "Docs", "parentId": a["id"]}, headers=headers)
    other_parent = client.post("/api/v1/folders", json={"name": "Docs"}, headers=headers)

    assert root_duplicate.status_code == 409
    assert nested_duplicate.status_code == 409
    assert other_parent.status_code == 201


def test_same_folder_name_for_different_owners(client: TestClient, make_user):
    _, alice = make_user()
    _, bob = make_user("bob@example.com")

    _create_folder(client, alice, "Shared")
    response = client.post("/api/v1/folders", json={"name": "Shared"}, headers=bob)

    assert response.status_code == 201


def test_create_folder_validation(client: TestClient, make_user):
    _, alice = make_user()
    _, bob = make_user("bob@example.com")
    bobs = _create_folder(client, bob, "Private")

    blank = client.post("/api/v1/folders", json={"name": "   "}, headers=alice)
    missing_parent = client.post("/api/v1/folders", json={"name": "X", "parentId": 999}, headers=alice)
    foreign_parent = client.post("/api/v1/folders", json={"name": "X", "parentId": bobs["id"]}, headers=alice)
    root_parent = client.post("/api/v1/folders", json={"name": "X", "parentId": "root"}, headers=alice)

    assert blank.status_code == 400
    assert missing_parent.status_code == 404
    assert foreign_parent.status_code == 404
    assert root_parent.status_code == 201
    assert root_parent.json()["data"]["parentId"] is None


def test_rename_folder(client: TestClient, make_user):
    _, headers = make_user()
    a = _create_folder(client, headers, "A")
    b = _create_folder(client, headers, "B", a["id"])
    _create_folder(client, headers, "Taken", a["id"])

    renamed = client.put(f"/api/v1/folders/{b['id']}/rename", json={"name": "Beta"}, headers=headers)
    same = client.put(f"/api/v1/folders/{b['id']}/rename", json={"name": "Beta"}, headers=headers)
    conflict = client.put(f"/api/v1/folders/{b['id']}/rename", json={"name": "Taken"}, headers=headers)
    empty = client.put(f"/api/v1/folders/{b['id']}/rename", json={"name": ""}, headers=headers)
    root = client.put("/api/v1/folders/root/rename", json={"name": "X"}, headers=headers)

    assert renamed.status_code == 200
    assert renamed.json()["data"]["fullPath"] == "A/Beta"
    assert same.status_code == 200
    assert conflict.status_code == 409
    assert empty.status_code == 400
    assert root.status_code == 404


def test_rename_foreign_folder_is_not_found(client: TestClient, make_user):
    _, alice = make_user()
    _, bob = make_user("bob@example.com")
    bobs = _create_folder(client, bob, "Private")

    response = client.put(f"/api/v1/folders/{bobs['id']}/rename", json={"name": "Mine"}, headers=alice)

    assert response.status_code == 404


def test_folder_contents_are_sorted(client: TestClient, make_user):
    _, headers = make_user()
    parent = _create_folder(client, headers, "Parent")
    _create_folder(client, headers, "zeta", parent["id"])
    _create_folder(client, headers, "alpha", parent["id"])
    _upload(client, headers, "b.txt", parent["id"])
    _upload(client, headers, "a.txt", parent["id"])
    _upload(client, headers, "root.txt")

    inside = client.get(f"/api/v1/folders/{parent['id']}", headers=headers).json()["data"]
    root = client.get("/api/v1/folders/root", headers=headers).json()["data"]

    assert inside["currentFolder"]["name"] == "Parent"
    assert [item["name"] for item in inside["subfolders"]] == ["alpha", "zeta"]
    assert inside["subfolders"][0]["fullPath"] == "Parent/alpha"
    assert [item["originalName"] for item in inside["files"]] == ["a.txt", "b.txt"]
    assert root["currentFolder"] is None
    assert [item["name"] for item in root["subfolders"]] == ["Parent"]
    assert [item["originalName"] for item in root["files"]] == ["root.txt"]


def test_folder_contents_not_found(client: TestClient, make_user):
    _, alice = make_user()
    _, bob = make_user("bob@example.com")
    bobs = _create_folder(client, bob, "Private")

    assert client.get(f"/api/v1/folders/{bobs['id']}", headers=alice).status_code == 404
    assert client.get("/api/v1/folders/9999", headers=alice).status_code == 404
    assert client.get("/api/v1/folders/not-an-id", headers=alice).status_code == 404


def test_cascading_delete_removes_tree_and_blobs(client: TestClient, make_user):
    user_id, headers = make_user()
    a = _create_folder(client, headers, "A")
    b = _create_folder(client, headers, "B", a["id"])
    c = _create_folder(client, headers, "C", b["id"])
    keep = _create_folder(client, headers, "Keep")
    assert _upload(client, headers, "one.txt", a["id"]).status_code == 201
    assert _upload(client, headers, "two.txt", c["id"]).status_code == 201
    assert _upload(client, headers, "kept.txt", keep["id"]).status_code == 201

    response = client.delete(f"/api/v1/folders/{a['id']}", headers=headers)

    assert response.status_code == 200
    assert response.json()["data"] == {"deletedFolders": 3, "deletedFiles": 2}
    assert not os.path.exists(_blob_path(user_id, "one.txt"))
    assert not os.path.exists(_blob_path(user_id, "two.txt"))
    assert os.path.exists(_blob_path(user_id, "kept.txt"))
    root = client.get("/api/v1/folders/root", headers=headers).json()["data"]
    assert [item["name"] for item in root["subfolders"]] == ["Keep"]
    files = client.get("/api/v1/files", headers=headers).json()["data"]
    assert [item["originalName"] for item in files] == ["kept.txt"]
    assert client.get(f"/api/v1/folders/{c['id']}", headers=headers).status_code == 404


def test_cascading_delete_partial_failure_keeps_metadata(client: TestClient, make_user, monkeypatch):
    user_id, headers = make_user()
    a = _create_folder(client, headers, "A")
    b = _create_folder(client, headers, "B", a["id"])
    _upload(client, headers, "ok.txt", a["id"])
    _upload(client, headers, "stuck.txt", b["id"])

    original_delete = LocalBackend.delete

    def flaky_delete(self, key):
        if key.endswith("stuck.txt"):
            raise StorageError("文件删除失败", error="simulated outage")
        return original_delete(self, key)

    monkeypatch.setattr(LocalBackend, "delete", flaky_delete)
    failed = client.delete(f"/api/v1/folders/{a['id']}", headers=headers)

    assert failed.status_code == 500
    assert failed.json()["data"] == {"failedKeys": [f"{user_id}/stuck.txt"]}
    contents = client.get(f"/api/v1/folders/{a['id']}", headers=headers).json()["data"]
    assert [item["originalName"] for item in contents["files"]] == ["ok.txt"]
    assert [item["name"] for item in contents["subfolders"]] == ["B"]

    monkeypatch.setattr(LocalBackend, "delete", original_delete)
    retried = client.delete(f"/api/v1/folders/{a['id']}", headers=headers)

    assert retried.status_code == 200
    assert retried.json()["data"] == {"deletedFolders": 2, "deletedFiles": 2}
    assert client.get(f"/api/v1/folders/{b['id']}", headers=headers).status_code == 404


def test_delete_foreign_folder_is_not_found(client: TestClient, make_user):
    _, alice = make_user()
    _, bob = make_user("bob@example.com")
    bobs = _create_folder(client, bob, "Private")

    response = client.delete(f"/api/v1/folders/{bobs['id']}", headers=alice)

    assert response.status_code == 404
    assert client.get(f"/api/v1/folders/{bobs['id']}", headers=bob).status_code == 200


def test_folder_names_reject_separators(client: TestClient, make_user):
    _, headers = make_user()
    a = _create_folder(client, headers, "A")
    _create_folder(client, headers, "B", a["id"])

    for name in ("A/B", "A\\B", "..", "."):
        response = client.post("/api/v1/folders", json={"name": name}, headers=headers)
        assert response.status_code == 400, name
    renamed = client.put(f"/api/v1/folders/{a['id']}/rename", json={"name": "x/y"}, headers=headers)

    assert renamed.status_code == 400
    root = client.get("/api/v1/folders/root", headers=headers).json()["data"]
    assert [item["fullPath"] for item in root["subfolders"]] == ["A"]


def test_cascading_delete_of_empty_folder(client: TestClient, make_user):
    _, headers = make_user()
    empty = _create_folder(client, headers, "Empty")

    first = client.delete(f"/api/v1/folders/{empty['id']}", headers=headers)
    second = client.delete(f"/api/v1/folders/{empty['id']}", headers=headers)

    assert first.status_code == 200
    assert first.json()["data"] == {"deletedFolders": 1, "deletedFiles": 0}
    assert second.status_code == 404
