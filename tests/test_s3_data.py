# tests/test_s3_data.py
"""S3 backend behaviour when objects change underneath a listing."""

from __future__ import annotations

import base64
import os
from typing import Any

import pytest
from botocore.exceptions import ClientError
from fakes import FakeS3Client

from veilbin.data.s3 import S3Data
from veilbin.utils.hash import fnv1a64_hexdigest


def _record(created: int = 0) -> tuple[str, dict[str, Any]]:
    ct = base64.b64encode(os.urandom(48)).decode()
    return fnv1a64_hexdigest(ct), {"v": 2, "adata": [], "ct": ct, "meta": {"created": created}}


@pytest.fixture()
def s3_client() -> FakeS3Client:
    return FakeS3Client(page_size=10)


@pytest.fixture()
def s3_store(s3_client: FakeS3Client) -> S3Data:
    return S3Data("veilbin-test", prefix="pastes", client=s3_client)


def _discussion(store: S3Data, count: int) -> str:
    paste_id, record = _record()
    store.create(paste_id, record)
    for created in range(1, count + 1):
        comment_id, comment = _record(created)
        store.create_comment(paste_id, paste_id, comment_id, comment)
    return paste_id


def test_comment_deleted_after_listing_is_skipped(s3_store: S3Data, s3_client: FakeS3Client, mocker) -> None:
    paste_id = _discussion(s3_store, 3)
    list_objects = s3_client.list_objects_v2

    def list_then_delete(**kwargs: Any) -> dict[str, Any]:
        response = list_objects(**kwargs)
        s3_client.objects.pop(response["Contents"][0]["Key"])
        return response

    mocker.patch.object(s3_client, "list_objects_v2", side_effect=list_then_delete)

    comments = s3_store.read_comments(paste_id)

    assert len(comments) == 2


def test_other_client_errors_still_abort_the_listing(s3_store: S3Data, s3_client: FakeS3Client, mocker) -> None:
    paste_id = _discussion(s3_store, 2)
    denied = ClientError({"Error": {"Code": "AccessDenied", "Message": "Denied"}}, "GetObject")
    mocker.patch.object(s3_client, "get_object", side_effect=denied)

    assert s3_store.read_comments(paste_id) == {}
