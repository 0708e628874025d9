"""Payment confirmation: command and handler."""

from protean import handle
from protean.fields import Identifier

from storefront.domain import storefront
from storefront.payment import coordinator
from storefront.payment.payment import Payment


@storefront.command(part_of="Payment")
class ConfirmPayment:
    payment_id = Identifier(required=True)


@storefront.command_handler(part_of=Payment)
class ConfirmPaymentHandler:
    @handle(ConfirmPayment)
    def confirm_payment(self, command):
        return coordinator.confirm(command.payment_id)
