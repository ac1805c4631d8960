"""
Management command to compare wallet balances with the transaction ledger.
Run: python manage.py reconcile_wallets [--fix-missing]
"""

from django.core.management.base import BaseCommand, CommandError

from settlement.ledger import Wallet, ledger


class Command(BaseCommand):
    help = "Report wallets whose balance differs from the sum of their transactions"

    def add_arguments(self, parser):
        parser.add_argument(
            "--fix-missing",
            action="store_true",
            help="Create the platform wallet if it does not exist yet",
        )

    def handle(self, *args, **options):
        if options["fix_missing"]:
            _, created = ledger.get_or_create_platform_wallet()
            if created:
                self.stdout.write(self.style.WARNING("Created missing platform wallet"))

        checked = Wallet.objects.count()
        drifts = list(ledger.iter_drifts())

        for drift in drifts:
            self.stdout.write(
                self.style.ERROR(
                    f"{drift.owner_id}/{drift.role}: stored {drift.stored_balance}, "
                    f"ledger {drift.computed_balance} (drift {drift.drift:+d})"
                )
            )

        if drifts:
            raise CommandError(f"{len(drifts)} of {checked} wallets out of balance")

        self.stdout.write(self.style.SUCCESS(f"All {checked} wallets reconcile"))
