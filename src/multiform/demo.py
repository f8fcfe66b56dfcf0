"""The Product/Parcel example aggregate.

A product ships in one or more parcels, edited together on one form. Use
`product_form` as the form factory of `multiform check`::

    multiform check multiform.demo:product_form payload.json
"""

from multiform.coordinator import AggregateForm
from multiform.entity import BaseEntity, invariant
from multiform.exceptions import ObjectNotFoundError, ValidationError
from multiform.fields import Boolean, Integer, Reference, String, Text

# Longest side accepted by the carrier, in centimeters
MAX_PARCEL_SIDE = 120


class Product(BaseEntity):
    name = String(required=True, max_length=100, sanitize=True)
    description = Text(sanitize=True)


class Parcel(BaseEntity):
    code = String(required=True, max_length=50)
    width = Integer(required=True, min_value=1)
    height = Integer(required=True, min_value=1)
    depth = Integer(required=True, min_value=1)
    fragile = Boolean(default=False)
    product_id = Reference("Product")

    @invariant
    def fits_the_carrier(self):
        if max(self.width, self.height, self.depth) > MAX_PARCEL_SIDE:
            raise ValidationError(
                f"Parcel cannot have a side longer than {MAX_PARCEL_SIDE} cm"
            )


def product_form(provider, product_id=None):
    """Return the form for a new product, or for the stored product `product_id`"""
    provider.register(Product, Parcel)

    if product_id is None:
        product = Product()
    else:
        product = provider.find_by_id(Product, Product.id.coerce(product_id))
        if product is None:
            raise ObjectNotFoundError(f"Product `{product_id}` does not exist")

    return AggregateForm(product, Parcel, provider)
