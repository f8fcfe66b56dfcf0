from uuid import UUID, uuid4

import pytest

from multiform.exceptions import ValidationError
from multiform.fields import Auto, Identifier


class TestIdentifier:
    def test_integer_identifiers(self):
        field = Identifier(identity_type="integer")
        assert field._cast_to_type("12") == 12

        with pytest.raises(ValidationError):
            field._cast_to_type("abc")

        with pytest.raises(ValidationError):
            field._cast_to_type(True)

    def test_uuid_identifiers(self):
        value = uuid4()
        field = Identifier(identity_type="uuid")

        assert field._cast_to_type(str(value)) == value
        assert isinstance(field._cast_to_type(value), UUID)
        assert field.as_dict(value) == str(value)

        with pytest.raises(ValidationError):
            field._cast_to_type("not-a-uuid")

    def test_string_identifiers(self):
        assert Identifier()._cast_to_type(12) == "12"

    def test_unknown_identity_type(self):
        with pytest.raises(ValueError):
            Identifier(identity_type="float")

    def test_identifiers_are_always_required(self):
        field = Identifier(identifier=True)
        assert field.required is True


class TestAuto:
    def test_incrementing_auto_fields_are_integers(self):
        field = Auto(increment=True)
        assert field.identity_type == "integer"
        assert field.coerce("3") == 3
        assert field.coerce("new1") is None

    def test_plain_auto_fields_are_strings(self):
        field = Auto()
        assert field.identity_type == "string"
        assert field.coerce("new1") == "new1"

    def test_missing_identity_is_not_an_error(self):
        assert Auto(identifier=True)._load(None) is None
