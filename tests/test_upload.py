import base64
import json
import os

from webob.request import Request

from imageblob.capture import CaptureStore
from imageblob.exceptions import StorageError
from imageblob.upload import UploadApp

from .test_multipart.utils import MultipartBuilder

PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk+M9QDwADhgGAWjR9awAAAABJRU5ErkJggg==")


def post(app, body, path="/upload", content_type=None):
    req = Request.blank(
        path,
        method="POST",
        body=body.getvalue(),
        content_type=content_type or body.content_type,
    )
    return req.get_response(app)


def test_upload_single_file(upload_dir):
    app = UploadApp(upload_dir)
    body = MultipartBuilder()
    body.write_field("IMG_Upload", PNG, filename="IMG_Upload",
                     content_type="image/png")
    body.write_end()
    resp = post(app, body)

    assert resp.status_code == 200
    assert resp.content_type == "application/json"
    data = json.loads(resp.text)
    assert list(data) == ["files"]
    (descriptor,) = data["files"]
    assert descriptor["fileName"] == "IMG_Upload"
    assert descriptor["fileType"] == "image/png"
    assert descriptor["length"] == len(PNG)
    assert base64.b64decode(descriptor["base64"]) == PNG
    assert descriptor["params"] == {}
    assert len(os.listdir(upload_dir)) == 1


def test_upload_echoes_params(upload_dir):
    app = UploadApp(upload_dir)
    body = MultipartBuilder()
    body.write_field("FOO_PARAM", "FOO_VAL")
    body.write_field("sample.jpg", b"\xff\xd8\xff\xd9", filename="sample.jpg",
                     content_type="image/jpeg")
    body.write_field("red_dot.png", PNG, filename="red_dot.png",
                     content_type="image/png")
    body.write_end()
    resp = post(app, body, path="/upload?q=1&q=2")

    files = resp.json["files"]
    assert [f["fileName"] for f in files] == ["sample.jpg", "red_dot.png"]
    assert [f["fileType"] for f in files] == ["image/jpeg", "image/png"]
    for f in files:
        assert f["params"] == {"q": ["1", "2"], "FOO_PARAM": ["FOO_VAL"]}


def test_upload_without_filename(upload_dir):
    app = UploadApp(upload_dir)
    body = MultipartBuilder()
    body.write_raw_part(
        ['Content-Disposition: form-data; name="blob"',
         "Content-Type: application/octet-stream"],
        b"\x00\x01")
    body.write_end()
    resp = post(app, body)
    assert resp.json["files"][0]["fileName"] is None
    assert resp.json["files"][0]["length"] == 2


def test_upload_full_path_filename(upload_dir):
    app = UploadApp(upload_dir)
    body = MultipartBuilder()
    body.write_raw_part(
        ['Content-Disposition: form-data; name="img"; '
         'filename="C:\\Documents and Settings\\joe\\photo.jpg"',
         "Content-Type: image/jpeg"],
        b"\xff\xd8")
    body.write_end()
    resp = post(app, body)
    assert resp.json["files"][0]["fileName"] == "photo.jpg"


def test_no_file_parts_means_no_body(upload_dir):
    app = UploadApp(upload_dir)
    body = MultipartBuilder()
    body.write_field("FOO_PARAM", "FOO_VAL")
    body.write_end()
    resp = post(app, body)

    assert resp.status_code == 200
    assert resp.body == b""
    assert "Content-Type" not in resp.headers
    assert os.listdir(upload_dir) == []


def test_empty_multipart_means_no_body(upload_dir):
    body = MultipartBuilder()
    body.write_end()
    resp = post(UploadApp(upload_dir), body)
    assert resp.status_code == 200
    assert resp.body == b""


def test_malformed_body_is_server_error(upload_dir):
    body = MultipartBuilder()
    body.write_field("img", PNG, filename="a.png", content_type="image/png")
    # no terminator
    resp = post(UploadApp(upload_dir), body)
    assert resp.status_code == 500
    assert os.listdir(upload_dir) == []


def test_not_multipart_is_server_error(upload_dir):
    req = Request.blank("/upload", method="POST", body=b"a=b",
                        content_type="application/x-www-form-urlencoded")
    resp = req.get_response(UploadApp(upload_dir))
    assert resp.status_code == 500


def test_get_not_allowed(upload_dir):
    resp = Request.blank("/upload").get_response(UploadApp(upload_dir))
    assert resp.status_code == 405
    assert resp.headers["Allow"] == "POST"


def test_storage_error_is_server_error_and_keeps_earlier_files(upload_dir):
    class FailingStore(CaptureStore):
        calls = 0

        def persist(self, filename_hint, stream, content_type=None):
            self.calls += 1
            if self.calls == 2:
                raise StorageError("disk full")
            return super().persist(filename_hint, stream, content_type)

    app = UploadApp(store=FailingStore(upload_dir, cleanup_at_exit=False))
    body = MultipartBuilder()
    body.write_field("a", b"first", filename="a.bin",
                     content_type="application/octet-stream")
    body.write_field("b", b"second", filename="b.bin",
                     content_type="application/octet-stream")
    body.write_end()
    resp = post(app, body)

    assert resp.status_code == 500
    assert "disk full" in resp.text
    # not rolled back
    assert len(os.listdir(upload_dir)) == 1


def test_default_upload_dir_is_temp(monkeypatch, tmp_path):
    monkeypatch.setattr("tempfile.tempdir", str(tmp_path))
    app = UploadApp()
    body = MultipartBuilder()
    body.write_field("a", b"abc", filename="a.bin",
                     content_type="application/octet-stream")
    body.write_end()
    resp = post(app, body)
    assert resp.status_code == 200
    assert len(os.listdir(str(tmp_path))) == 1


def test_length_matches_stored_bytes(upload_dir):
    payload = os.urandom(70000)
    body = MultipartBuilder()
    body.write_field("a", payload, filename="a.bin",
                     content_type="application/octet-stream")
    body.write_end()
    resp = post(UploadApp(upload_dir), body)

    descriptor = resp.json["files"][0]
    (stored,) = os.listdir(upload_dir)
    with open(os.path.join(upload_dir, stored), "rb") as fp:
        assert fp.read() == payload
    assert descriptor["length"] == len(payload)
    assert base64.b64decode(descriptor["base64"]) == payload


def test_multipart_limits_are_passed_through(upload_dir):
    app = UploadApp(upload_dir, part_limit=1)
    body = MultipartBuilder()
    body.write_field("a", b"1", filename="a", content_type="text/plain")
    body.write_field("b", b"2", filename="b", content_type="text/plain")
    body.write_end()
    assert post(app, body).status_code == 500


def test_undecodable_field_is_server_error(upload_dir):
    body = MultipartBuilder()
    body.write_field("FOO_PARAM", b"\xff\xfe")
    body.write_field("img", PNG, filename="a.png", content_type="image/png")
    body.write_end()
    resp = post(UploadApp(upload_dir), body)
    assert resp.status_code == 500
    assert os.listdir(upload_dir) == []
