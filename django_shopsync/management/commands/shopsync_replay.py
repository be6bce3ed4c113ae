import logging

from django.core.management.base import BaseCommand, CommandError

from django_shopsync.constants import Outcome
from django_shopsync.exceptions import NotReplayable
from django_shopsync.models import WebhookEventLog
from django_shopsync.services import EventLogger, WebhookProcessor
from django_shopsync.utils import normalize_shop_domain

logger = logging.getLogger(__name__)

REPLAYABLE_OUTCOMES = (Outcome.ERROR, Outcome.IGNORED)


class Command(BaseCommand):
    help = "Re-run logged webhook deliveries that ended in error or were ignored"

    def add_arguments(self, parser):
        parser.add_argument(
            "ids",
            nargs="*",
            type=int,
            help="Event log ids to replay (default: select by --outcome/--shop)",
        )
        parser.add_argument(
            "--outcome",
            choices=[str(o) for o in REPLAYABLE_OUTCOMES],
            default=str(Outcome.ERROR),
            help="Outcome to select when no ids are given",
        )
        parser.add_argument("--shop", help="Only replay deliveries from this shop")
        parser.add_argument(
            "--limit",
            type=int,
            default=100,
            help="Maximum number of deliveries to replay",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="List the deliveries without replaying them",
        )

    def handle(self, *args, **options):
        if options["limit"] < 1:
            raise CommandError("--limit must be at least 1")

        entries = WebhookEventLog.objects.order_by("created_at")
        if options["ids"]:
            entries = entries.filter(pk__in=options["ids"])
        else:
            entries = entries.filter(outcome=options["outcome"])
        if options["shop"]:
            entries = entries.filter(shop_domain=normalize_shop_domain(options["shop"]))
        entries = list(entries[: options["limit"]])

        mode = "(DRY RUN)" if options["dry_run"] else ""
        self.stdout.write(f"Webhook replay {mode}")
        self.stdout.write("=" * 40)
        self.stdout.write(f"Selected {len(entries)} deliveries")

        stats = {"replayed": 0, "skipped": 0, "errors": 0}

        for entry in entries:
            label = f"#{entry.pk} {entry.topic} {entry.shop_domain}"

            if options["dry_run"]:
                state = "replayable" if entry.is_replayable else "not replayable"
                self.stdout.write(f"  {label}: {entry.outcome}, {state}")
                continue

            try:
                result = WebhookProcessor.replay(entry)
            except NotReplayable as e:
                stats["skipped"] += 1
                self.stdout.write(self.style.WARNING(f"  {label}: {e.message}"))
                continue

            if result.outcome == Outcome.ERROR:
                stats["errors"] += 1
                self.stdout.write(self.style.ERROR(f"  {label}: {result.message}"))
            else:
                stats["replayed"] += 1
                self.stdout.write(f"  {label}: {result.outcome}")

        if options["dry_run"]:
            return

        # Background log writes must land before the process exits
        EventLogger.flush()

        self.stdout.write("")
        self.stdout.write(
            f"Replayed: {stats['replayed']}, skipped: {stats['skipped']}, "
            f"errors: {stats['errors']}"
        )
        logger.info("[django-shopsync] Replay command finished: %s", stats)

        if stats["errors"]:
            raise CommandError(f"{stats['errors']} deliveries failed again")
