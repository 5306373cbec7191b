from __future__ import annotations

import pytest
from tandem.core.errors import InvalidUUIDError
from tandem.core.ids import as_uuid, new_id, string_to_uuid


def test_string_to_uuid_is_stable() -> None:
    assert string_to_uuid("general") == string_to_uuid("general")
    assert string_to_uuid("general") != string_to_uuid("random")
    assert string_to_uuid(42) == string_to_uuid("42")


def test_as_uuid_accepts_canonical_form() -> None:
    value = new_id()
    assert as_uuid(value) == value
    assert as_uuid(string_to_uuid("x")) == string_to_uuid("x")


@pytest.mark.parametrize("value", ["", "not-a-uuid", None, 123, "8f2c7a51-3d4e-4b6a-9c1f"])
def test_as_uuid_rejects_malformed(value: object) -> None:
    with pytest.raises(InvalidUUIDError):
        as_uuid(value)
