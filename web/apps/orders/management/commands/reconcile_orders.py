from django.core.management.base import BaseCommand, CommandError

from apps.orders.domain import ConfigurationError, DocumentStoreError, GatewayError, OrderFlowError
from apps.orders import providers


class Command(BaseCommand):
    help = "Mark orders paid from the gateway's payment list when the verification callback never arrived"

    def add_arguments(self, parser):
        parser.add_argument("order_ids", nargs="+", help="Gateway order ids to reconcile")

    def handle(self, *args, **opts):
        service = providers.get_order_service()
        ok = 0
        for order_id in opts["order_ids"]:
            try:
                result = service.reconcile_order(order_id)
            except ConfigurationError as e:
                raise CommandError(str(e))
            except OrderFlowError as e:
                self.stdout.write(self.style.WARNING(f"{order_id}: {e.message}"))
                continue
            except (GatewayError, DocumentStoreError) as e:
                self.stdout.write(self.style.ERROR(f"{order_id}: error {e}"))
                continue

            ok += 1
            if result.already_paid:
                self.stdout.write(f"{order_id}: already paid")
            else:
                self.stdout.write(self.style.SUCCESS(f"{order_id} -> paid ({result.record.gateway_payment_id})"))

        self.stdout.write(self.style.SUCCESS(f"Checked {len(opts['order_ids'])}, reconciled {ok} orders."))
