import pytest

from staybook.errors import ValidationError
from staybook.storage import LocalBlobStore, check_upload, object_path


def test_local_store_writes_under_root(tmp_path):
    store = LocalBlobStore(str(tmp_path), "http://cdn.test/uploads/")
    url = store.put("id_proofs/b1/idproof-1.png", b"abc", "image/png")
    assert url == "http://cdn.test/uploads/id_proofs/b1/idproof-1.png"
    assert (tmp_path / "id_proofs" / "b1" / "idproof-1.png").read_bytes() == b"abc"


def test_local_store_refuses_escape(tmp_path):
    store = LocalBlobStore(str(tmp_path / "root"), "http://cdn.test")
    with pytest.raises(ValidationError):
        store.put("../outside.png", b"abc", "image/png")


def test_object_path_extension():
    path = object_path("payment_screenshots", "b9", "payment", "Proof.PNG", "image/png")
    assert path.startswith("payment_screenshots/b9/payment-")
    assert path.endswith(".png")
    assert object_path("x", "y", "z", None, "application/pdf").endswith(".pdf")


def test_check_upload_rules():
    assert check_upload("IMAGE/JPEG", b"x") == "image/jpeg"
    assert check_upload("application/pdf", b"x", allow_pdf=True) == "application/pdf"
    with pytest.raises(ValidationError) as exc:
        check_upload("application/pdf", b"x", field="payment_screenshot")
    assert exc.value.message == "Only image files are allowed"
    assert exc.value.field == "payment_screenshot"
    with pytest.raises(ValidationError) as exc:
        check_upload("image/png", b"")
    assert exc.value.message == "Empty file"
