import pytest

from multiform.coordinator import AggregateForm
from multiform.demo import Parcel, Product
from multiform.exceptions import IncorrectUsageError, InvalidDataError
from multiform.payload import parse_form


class TestLoad:
    def test_first_display_has_no_parent_role(self, new_form):
        assert new_form.load({}) is False
        assert new_form.load({"csrf_token": "abc"}) is False

    def test_submission_has_the_parent_role(self, new_form):
        assert new_form.load({"Product": {"name": "Lamp"}}) is True
        assert new_form.parent.name == "Lamp"

    def test_children_without_parent_role_are_set(self, new_form):
        assert new_form.load({"Parcels": {"new1": {"code": "shade"}}}) is False
        assert list(new_form.children) == ["new1"]

    def test_custom_roles(self, provider):
        form = AggregateForm(
            Product(), Parcel, provider, parent_role="item", children_role="boxes"
        )

        assert form.load({"item": {"name": "Lamp"}, "boxes": {"b1": {"code": "shade"}}})
        assert form.parent.name == "Lamp"
        assert list(form.children) == ["b1"]

    def test_malformed_payloads_are_rejected(self, new_form):
        with pytest.raises(InvalidDataError):
            new_form.load({"Product": "Lamp"})

        with pytest.raises(InvalidDataError):
            new_form.load({"Parcels": [{"code": "shade"}]})

        with pytest.raises(InvalidDataError):
            new_form.load(["Product"])

    def test_parsed_form_data(self, provider, new_form):
        data = parse_form(
            "Product[name]=Lamp"
            "&Parcels[__id__][code]="
            "&Parcels[new1][code]=shade&Parcels[new1][width]=30"
            "&Parcels[new1][height]=30&Parcels[new1][depth]=30"
        )

        assert new_form.load(data) is True
        assert list(new_form.children) == ["new1"]
        assert new_form.validate_and_save()
        assert provider.find_where(Parcel)[0].code == "shade"


class TestErrorReport:
    def test_entries_follow_payload_order(self, new_form):
        new_form.load(
            {
                "Product": {"name": ""},
                "Parcels": {
                    "new3": {"code": ""},
                    "new1": {"code": "keyboard", "width": "50", "height": "5", "depth": "20"},
                    "new2": {"code": "", "width": "10", "height": "5", "depth": "10"},
                },
            }
        )
        new_form.validate_and_save()

        report = new_form.error_report()

        assert [entry.label for entry in report] == [
            "Product",
            "Parcel.new3",
            "Parcel.new2",
        ]
        assert report[0].messages == ["Name is required"]
        assert report[0].errors == {"name": ["is required"]}
        assert report[1].messages == [
            "Code is required",
            "Width is required",
            "Height is required",
            "Depth is required",
        ]

    def test_empty_entries_on_request(self, new_form):
        new_form.load(
            {
                "Product": {"name": "Lamp"},
                "Parcels": {"new1": {"code": ""}, "new2": {"code": "shade"}},
            }
        )
        new_form.validate()

        report = new_form.error_report(include_empty=True)

        assert [entry.label for entry in report] == [
            "Product",
            "Parcel.new1",
            "Parcel.new2",
        ]
        assert report[0].messages == []

    def test_report_before_validation_is_empty(self, new_form):
        new_form.load({"Product": {"name": ""}})

        assert new_form.error_report() == []

    def test_report_needs_a_parent(self, provider):
        form = AggregateForm(None, Parcel, provider)

        with pytest.raises(IncorrectUsageError):
            form.error_report()
