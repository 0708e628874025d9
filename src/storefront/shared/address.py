"""Address value object shared by carts and orders."""

from protean.fields import String

from storefront.domain import storefront


@storefront.value_object
class Address:
    """A delivery or billing address.

    Once recorded on an Order the address is a snapshot; later edits to the
    customer's address book do not affect it.
    """

    name = String(max_length=100)
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=2)
    phone = String(max_length=30)

    def to_dict(self):
        return {
            "name": self.name,
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
            "phone": self.phone,
        }
