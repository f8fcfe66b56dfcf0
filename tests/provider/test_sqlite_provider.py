import pytest
from mock import Mock, patch
from sqlalchemy.engine import RootTransaction
from sqlalchemy.exc import OperationalError

from multiform.adapters.repository.sqlalchemy import SASession
from multiform.coordinator import AggregateForm, Outcome
from multiform.demo import Parcel, Product, product_form
from multiform.exceptions import ConfigurationError, PersistenceError, TransactionError
from multiform.unit_of_work import UnitOfWork

from ..elements import Member, Team

pytestmark = pytest.mark.sqlite


@pytest.fixture
def registered(sqlite_provider):
    sqlite_provider.register(Team, Member)
    return sqlite_provider


class TestSqliteProvider:
    def test_is_alive(self, sqlite_provider):
        assert sqlite_provider.is_alive()

    def test_unregistered_entities_are_refused(self, sqlite_provider):
        with pytest.raises(ConfigurationError):
            sqlite_provider.find_by_id(Team, 1)

    def test_register_is_idempotent(self, registered):
        registered.register(Team, Member)

        assert registered.save(Team(name="Rovers"))

    def test_save_and_find(self, registered):
        team = Team(name="Rovers", founded_on="1901-04-02")

        assert registered.save(team)
        assert team.identity == 1

        found = registered.find_by_id(Team, team.identity)
        assert found.name == "Rovers"
        assert found.founded_on.isoformat() == "1901-04-02"
        assert found.state_.is_persisted

    def test_update(self, registered):
        team = Team(name="Rovers")
        registered.save(team)

        team.name = "Rangers"
        assert registered.save(team)

        assert registered.find_by_id(Team, team.identity).name == "Rangers"

    def test_find_where_orders_by_identity(self, registered):
        team = Team(name="Rovers")
        registered.save(team)
        for name in ["Ana", "Ben", "Cy"]:
            registered.save(Member(name=name, team_id=team.identity))

        members = registered.find_where(Member, team_id=team.identity)

        assert [member.name for member in members] == ["Ana", "Ben", "Cy"]
        assert registered.find_where(Member, team_id=99) == []

    def test_references_are_checked_against_the_table(self, registered):
        member = Member(name="Ana", team_id=42)

        assert registered.save(member) is False
        assert member.errors["team_id"] == ["does not reference an existing Team"]


class TestSqliteTransactions:
    def test_rollback_discards_all_writes(self, registered):
        team = Team(name="Rovers")
        team.validate()

        with UnitOfWork() as uow:
            registered.save(team, validate=False)
            member = Member(name="Ana", team_id=team.identity)
            member.validate()
            registered.save(member, validate=False)
            uow.rollback()

        assert registered.find_where(Team) == []
        assert registered.find_where(Member) == []

    def test_commit_makes_writes_visible(self, registered):
        team = Team(name="Rovers")
        team.validate()

        with UnitOfWork():
            registered.save(team, validate=False)

        assert len(registered.find_where(Team)) == 1


class TestDemoOnSqlite:
    def test_new_product_with_parcels(self, sqlite_provider):
        form = product_form(sqlite_provider)
        form.load(
            {
                "Product": {"name": "Keyboard and Mouse"},
                "Parcels": {
                    "__id__": {"code": ""},
                    "new1": {"code": "keyboard", "width": "50", "height": "5", "depth": "20"},
                    "new2": {"code": "mouse", "width": "10", "height": "5", "depth": "10"},
                },
            }
        )

        assert form.validate_and_save() is Outcome.SAVED

        stored = sqlite_provider.find_where(Parcel, product_id=form.parent.identity)
        assert [(parcel.code, parcel.fragile) for parcel in stored] == [
            ("keyboard", False),
            ("mouse", False),
        ]

    def test_editing_a_stored_product(self, sqlite_provider):
        form = product_form(sqlite_provider)
        form.load(
            {
                "Product": {"name": "Lamp"},
                "Parcels": {"new1": {"code": "shade", "width": 30, "height": 30, "depth": 30}},
            }
        )
        form.validate_and_save()
        shade = next(iter(form.children.values()))

        edit = product_form(sqlite_provider, str(form.parent.identity))
        assert list(edit.children) == [str(shade.identity)]

        edit.load({"Product": {"name": "Desk lamp"}, "Parcels": {str(shade.identity): {"fragile": True}}})
        assert edit.validate_and_save() is Outcome.SAVED

        assert sqlite_provider.find_by_id(Product, form.parent.identity).name == "Desk lamp"
        assert sqlite_provider.find_by_id(Parcel, shade.identity).fragile is True

    def test_invalid_rows_leave_the_tables_empty(self, sqlite_provider):
        sqlite_provider.register(Product, Parcel)
        form = AggregateForm(Product(), Parcel, sqlite_provider)
        form.load(
            {
                "Product": {"name": "Lamp"},
                "Parcels": {"new1": {"code": "shade"}},
            }
        )

        assert form.validate_and_save() is Outcome.INVALID
        assert sqlite_provider.find_where(Product) == []


def locked(statement="BEGIN"):
    return OperationalError(statement, {}, Exception("database is locked"))


class TestSessionFailures:
    def test_connect_failure_is_a_persistence_error(self):
        engine = Mock()
        engine.connect.side_effect = locked()

        with pytest.raises(PersistenceError):
            SASession(engine)

    def test_begin_failure_closes_the_connection(self):
        engine = Mock()
        engine.connect.return_value.begin.side_effect = locked()

        with pytest.raises(PersistenceError):
            SASession(engine)

        engine.connect.return_value.close.assert_called_once()

    def test_commit_failure_is_a_persistence_error(self, registered):
        session = registered.get_session()

        with patch.object(RootTransaction, "commit", side_effect=locked("COMMIT")):
            with pytest.raises(PersistenceError):
                session.commit()

        session.rollback()
        session.close()

    def test_unit_of_work_commit_failure_discards_writes(self, registered):
        team = Team(name="Rovers")
        team.validate()

        with patch.object(RootTransaction, "commit", side_effect=locked("COMMIT")):
            with pytest.raises(TransactionError):
                with UnitOfWork():
                    registered.save(team, validate=False)

        assert registered.find_where(Team) == []


class TestDemoStoreFailuresOnSqlite:
    @pytest.fixture
    def form(self, sqlite_provider):
        form = product_form(sqlite_provider)
        form.load(
            {
                "Product": {"name": "Lamp"},
                "Parcels": {"new1": {"code": "shade", "width": 30, "height": 30, "depth": 30}},
            }
        )
        assert form.validate()
        return form

    def test_connection_failure_is_not_saved(self, form, sqlite_provider):
        with patch.object(sqlite_provider._engine, "connect", side_effect=locked()):
            assert form.validate_and_save() is Outcome.NOT_SAVED

        assert form.parent.identity is None
        assert form.parent.state_.is_new
        assert sqlite_provider.find_where(Product) == []

    def test_commit_failure_is_not_saved(self, form, sqlite_provider):
        with patch.object(RootTransaction, "commit", side_effect=locked("COMMIT")):
            assert form.validate_and_save() is Outcome.NOT_SAVED

        assert isinstance(form.failure, TransactionError)
        assert form.parent.identity is None
        assert sqlite_provider.find_where(Product) == []
        assert sqlite_provider.find_where(Parcel) == []

        assert form.validate_and_save() is Outcome.SAVED
        assert len(sqlite_provider.find_where(Parcel)) == 1
