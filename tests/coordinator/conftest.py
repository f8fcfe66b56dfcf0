import pytest

from multiform.coordinator import AggregateForm
from multiform.demo import Parcel, Product


@pytest.fixture
def new_form(provider):
    return AggregateForm(Product(), Parcel, provider)


@pytest.fixture
def desk(provider):
    """A stored product with two stored parcels"""
    product = Product(name="Desk")
    assert provider.save(product)

    for code, width in [("top", 100), ("legs", 80)]:
        parcel = Parcel(
            code=code, width=width, height=10, depth=60, product_id=product.identity
        )
        assert provider.save(parcel)

    return product


@pytest.fixture
def desk_form(provider, desk):
    return AggregateForm(provider.find_by_id(Product, desk.identity), Parcel, provider)


def stored_parcels(provider, product):
    return provider.find_where(Parcel, product_id=product.identity)
