from django.core.management.base import BaseCommand, CommandError

from apps.orders.domain import ConfigurationError, DocumentStoreError
from apps.orders import providers
from apps.orders.repository import UNIQUE_ID


class Command(BaseCommand):
    help = "Write a minimal probe document to the orders collection to check store credentials and schema"

    def handle(self, *args, **opts):
        store = providers.get_order_service().repository.store
        probe = {"buyerId": "test_user", "amountMinorUnits": 100, "currency": "INR", "status": "test"}
        try:
            store.ensure_configured()
            doc = store.create_document(UNIQUE_ID, probe)
        except (ConfigurationError, DocumentStoreError) as e:
            raise CommandError(f"order store check failed: {e}")
        self.stdout.write(self.style.SUCCESS(f"Probe document created: {doc.get('$id')}"))
