# tests/test_paste_model.py
"""Tests for the paste model: lifetime, burn after reading and delete tokens."""

from __future__ import annotations

import base64
import hashlib
import hmac
import os

import pytest

from veilbin.core.errors import (
    ConfigurationError,
    DeleteTokenMismatchError,
    IdentifierCollisionError,
    InvalidIdentifierError,
    MalformedEnvelopeError,
    PasteExpiredError,
    PasteNotFoundError,
)
from veilbin.services import Model
from veilbin.utils.hash import fnv1a64_hexdigest

FIVE_MINUTES = 300
ONE_WEEK = 604_800


def _store_paste(model: Model, envelope: dict) -> str:
    paste = model.get_paste()
    paste.set_data(envelope)
    paste.store()
    return paste.get_id()


class TestStore:
    def test_identifier_is_derived_from_ciphertext(self, model: Model, paste_envelope) -> None:
        envelope = paste_envelope()
        paste_id = _store_paste(model, envelope)
        assert paste_id == fnv1a64_hexdigest(envelope["ct"])

    def test_stored_record_carries_server_fields(self, model: Model, paste_envelope, clock) -> None:
        paste_id = _store_paste(model, paste_envelope(expire="5min"))

        record = model.get_store().read(paste_id)

        assert record is not None
        assert record["meta"]["created"] == clock.now
        assert record["meta"]["expire_date"] == clock.now + FIVE_MINUTES
        assert len(record["meta"]["salt"]) == 512
        assert "expire" not in record["meta"]

    def test_same_ciphertext_twice_is_a_collision(self, model: Model, paste_envelope) -> None:
        envelope = paste_envelope()
        paste_id = _store_paste(model, envelope)

        with pytest.raises(IdentifierCollisionError) as exc_info:
            _store_paste(model, envelope)

        assert exc_info.value.message == "You are unlucky. Try again."
        assert model.get_store().get_all_pastes() == [paste_id]

    def test_never_expiring_paste(self, model: Model, paste_envelope) -> None:
        paste_id = _store_paste(model, paste_envelope(expire="never"))
        meta = model.get_store().read(paste_id)["meta"]
        assert "expire_date" not in meta

    def test_unknown_expire_label_falls_back_to_default(self, model: Model, paste_envelope, clock) -> None:
        paste_id = _store_paste(model, paste_envelope(expire="fortnight"))
        meta = model.get_store().read(paste_id)["meta"]
        assert meta["expire_date"] == clock.now + ONE_WEEK

    def test_malformed_envelope_is_rejected(self, model: Model, paste_envelope) -> None:
        envelope = paste_envelope()
        envelope["meta"]["created"] = 0
        with pytest.raises(MalformedEnvelopeError):
            model.get_paste().set_data(envelope)

    def test_size_limit(self, test_settings, store, clock, paste_envelope) -> None:
        model = Model(test_settings.model_copy(update={"size_limit": 32}), store, clock=clock)
        with pytest.raises(MalformedEnvelopeError, match="limited to 32 bytes"):
            model.get_paste().set_data(paste_envelope())

    def test_oversized_ciphertext_is_rejected_before_hashing(
        self, test_settings, store, clock, paste_envelope, mocker
    ) -> None:
        hexdigest = mocker.patch("veilbin.services.base.fnv1a64_hexdigest")
        model = Model(test_settings.model_copy(update={"size_limit": 32}), store, clock=clock)
        with pytest.raises(MalformedEnvelopeError):
            model.get_paste().set_data(paste_envelope())
        hexdigest.assert_not_called()


class TestPolicy:
    def test_unknown_formatter(self, model: Model, paste_envelope) -> None:
        with pytest.raises(ConfigurationError):
            model.get_paste().set_data(paste_envelope(formatter="latex"))

    def test_discussion_with_burn_after_reading(self, model: Model, paste_envelope) -> None:
        with pytest.raises(ConfigurationError):
            model.get_paste().set_data(paste_envelope(open_discussion=1, burn_after_reading=1))

    def test_discussion_when_disabled(self, test_settings, store, clock, paste_envelope) -> None:
        model = Model(test_settings.model_copy(update={"discussion": False}), store, clock=clock)
        with pytest.raises(ConfigurationError):
            model.get_paste().set_data(paste_envelope(open_discussion=1))

    @pytest.mark.parametrize("flags", [(2, 0), (0, 2), (True, 0), (0, "1")])
    def test_flags_must_be_zero_or_one(self, model: Model, paste_envelope, flags) -> None:
        open_discussion, burn_after_reading = flags
        with pytest.raises(ConfigurationError):
            model.get_paste().set_data(
                paste_envelope(open_discussion=open_discussion, burn_after_reading=burn_after_reading)
            )


class TestRead:
    def test_read_view(self, model: Model, paste_envelope) -> None:
        paste_id = _store_paste(model, paste_envelope(expire="5min"))

        data = model.get_paste(paste_id).get()

        assert data["meta"]["time_to_live"] == FIVE_MINUTES
        assert "expire_date" not in data["meta"]
        assert data["comments"] == []
        assert data["comment_count"] == 0
        assert data["comment_offset"] == 0
        assert data["@context"] == "?jsonld=paste"

    def test_time_to_live_counts_down(self, model: Model, paste_envelope, clock) -> None:
        paste_id = _store_paste(model, paste_envelope(expire="5min"))
        clock.advance(120)
        assert model.get_paste(paste_id).get()["meta"]["time_to_live"] == FIVE_MINUTES - 120

    def test_expired_paste_is_deleted_on_read(self, model: Model, paste_envelope, clock) -> None:
        paste_id = _store_paste(model, paste_envelope(expire="5min"))
        clock.advance(FIVE_MINUTES + 1)

        with pytest.raises(PasteExpiredError):
            model.get_paste(paste_id).get()

        assert model.get_store().exists(paste_id) is False

    def test_expired_is_reported_as_not_found(self) -> None:
        assert issubclass(PasteExpiredError, PasteNotFoundError)
        assert PasteExpiredError().message == PasteNotFoundError().message

    def test_burn_after_reading_is_served_once(self, model: Model, paste_envelope) -> None:
        envelope = paste_envelope(burn_after_reading=1)
        paste_id = _store_paste(model, envelope)

        data = model.get_paste(paste_id).get()
        assert data["ct"] == envelope["ct"]

        with pytest.raises(PasteNotFoundError):
            model.get_paste(paste_id).get()

    def test_missing_paste(self, model: Model) -> None:
        with pytest.raises(PasteNotFoundError):
            model.get_paste("0123456789abcdef").get()

    @pytest.mark.parametrize("paste_id", ["", "0123456789ABCDEF", "0123456789abcde", "../../etc/passwd"])
    def test_invalid_identifier(self, model: Model, paste_id: str) -> None:
        with pytest.raises(InvalidIdentifierError):
            model.get_paste(paste_id)


class TestLegacy:
    def _legacy(self, **meta) -> tuple[str, dict]:
        data = base64.b64encode(os.urandom(32)).decode()
        return fnv1a64_hexdigest(data), {"data": data, "meta": {"postdate": 1, **meta}}

    def test_syntax_coloring_maps_to_formatter(self, model: Model) -> None:
        paste_id, record = self._legacy(syntaxcoloring=True)
        model.get_store().create(paste_id, record)
        assert model.get_paste(paste_id).get()["meta"]["formatter"] == "syntaxhighlighting"

    def test_default_formatter_for_v1_paste(self, model: Model) -> None:
        paste_id, record = self._legacy()
        model.get_store().create(paste_id, record)
        assert model.get_paste(paste_id).get()["meta"]["formatter"] == "plaintext"

    def test_missing_salt_is_backfilled_from_server_salt(self, model: Model) -> None:
        paste_id, record = self._legacy()
        model.get_store().create(paste_id, record)
        assert model.get_paste(paste_id).get()["meta"]["salt"] == model.server_salt.get()

    def test_legacy_burn_after_reading(self, model: Model) -> None:
        paste_id, record = self._legacy(burnafterreading=True)
        model.get_store().create(paste_id, record)
        model.get_paste(paste_id).get()
        assert model.get_store().exists(paste_id) is False

    def test_legacy_open_discussion(self, model: Model) -> None:
        paste_id, record = self._legacy(opendiscussion=True)
        model.get_store().create(paste_id, record)
        assert model.get_paste(paste_id).is_open_discussion() is True


class TestDeleteToken:
    def test_token_is_hmac_of_id_keyed_by_paste_salt(self, model: Model, paste_envelope) -> None:
        paste_id = _store_paste(model, paste_envelope())
        salt = model.get_store().read(paste_id)["meta"]["salt"]
        expected = hmac.new(salt.encode(), paste_id.encode(), hashlib.sha256).hexdigest()

        assert model.get_paste(paste_id).get_delete_token() == expected

    def test_token_lookup_does_not_burn_the_paste(self, model: Model, paste_envelope) -> None:
        paste_id = _store_paste(model, paste_envelope(burn_after_reading=1))
        model.get_paste(paste_id).get_delete_token()
        assert model.get_store().exists(paste_id) is True

    def test_zerobin_compatibility_uses_sha1(self, test_settings, store, clock, paste_envelope) -> None:
        model = Model(test_settings.model_copy(update={"zerobin_compatibility": True}), store, clock=clock)
        paste_id = _store_paste(model, paste_envelope())
        assert len(model.get_paste(paste_id).get_delete_token()) == 40

    def test_delete_with_valid_token(self, model: Model, paste_envelope) -> None:
        paste = model.get_paste()
        paste.set_data(paste_envelope())
        paste.store()
        token = paste.get_delete_token()

        model.get_paste(paste.get_id()).delete_with_token(token)

        assert model.get_store().exists(paste.get_id()) is False

    def test_delete_with_wrong_token(self, model: Model, paste_envelope) -> None:
        paste_id = _store_paste(model, paste_envelope())
        with pytest.raises(DeleteTokenMismatchError):
            model.get_paste(paste_id).delete_with_token("0" * 64)
        assert model.get_store().exists(paste_id) is True

    def test_delete_missing_paste(self, model: Model) -> None:
        with pytest.raises(PasteNotFoundError):
            model.get_paste("0123456789abcdef").delete_with_token("0" * 64)
