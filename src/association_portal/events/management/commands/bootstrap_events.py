"""Management command to bootstrap events from a TOML configuration file."""

from typing import Any

from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError, CommandParser
from django.db import transaction

from association_portal.config_loader import load_events_config
from association_portal.events.models import Event

# Mapping from TOML short field names to Django model field names.
_EVENT_FIELD_MAP: dict[str, str] = {
    "title": "title",
    "description": "description",
    "location": "location",
    "start": "start_date",
    "end": "end_date",
    "price": "price",
    "member_price": "member_price",
    "non_member_price": "non_member_price",
    "max_attendees": "max_attendees",
    "status": "status",
    "is_public": "is_public",
    "registration_closed": "registration_closed",
}


def _map_fields(data: dict[str, Any], field_map: dict[str, str]) -> dict[str, Any]:
    """Map TOML config keys to Django model field names."""
    result: dict[str, Any] = {}
    for config_key, model_field in field_map.items():
        if config_key in data:
            result[model_field] = data[config_key]
    return result


class Command(BaseCommand):
    """Create or update events from a TOML configuration file.

    Usage::

        manage.py bootstrap_events --config events.toml
        manage.py bootstrap_events --config events.toml --update
        manage.py bootstrap_events --config events.toml --dry-run
    """

    help = "Create or update events from a TOML config file."

    def add_arguments(self, parser: CommandParser) -> None:
        """Define the command-line arguments accepted by this command."""
        parser.add_argument(
            "--config",
            required=True,
            help="Path to the events TOML configuration file.",
        )
        parser.add_argument(
            "--update",
            action="store_true",
            default=False,
            help="Update existing events matched by slug instead of skipping them.",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            default=False,
            help="Validate the config and print what would be created without saving.",
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the bootstrap command."""
        try:
            conf = load_events_config(options["config"])
        except (FileNotFoundError, TypeError, ValueError) as exc:
            raise CommandError(str(exc)) from exc

        events_data: list[dict[str, Any]] = conf["events"]

        if options["dry_run"]:
            self.stdout.write(self.style.NOTICE(f"Dry run: {len(events_data)} event(s) in {conf['timezone']}"))
            for event_data in events_data:
                self.stdout.write(f"  {event_data['slug']}: {event_data['title']} ({event_data['start']:%Y-%m-%d})")
            return

        try:
            created, updated, skipped = self._bootstrap(events_data, update=options["update"])
        except ValidationError as exc:
            raise CommandError(f"Invalid event data: {exc}") from exc

        self.stdout.write(self.style.SUCCESS(f"Done: {created} created, {updated} updated, {skipped} skipped."))

    @transaction.atomic
    def _bootstrap(self, events_data: list[dict[str, Any]], *, update: bool) -> tuple[int, int, int]:
        """Create or update Event rows; returns (created, updated, skipped)."""
        created = updated = skipped = 0
        for event_data in events_data:
            slug = event_data["slug"]
            fields = _map_fields(event_data, _EVENT_FIELD_MAP)
            existing = Event.objects.filter(slug=slug).first()

            if existing and update:
                for attr, value in fields.items():
                    setattr(existing, attr, value)
                existing.full_clean()
                existing.save()
                self.stdout.write(self.style.SUCCESS(f"  Updated event: {existing.title}"))
                updated += 1
            elif existing:
                self.stdout.write(self.style.WARNING(f"  Event '{slug}' already exists, skipping."))
                skipped += 1
            else:
                event = Event(slug=slug, **fields)
                event.full_clean()
                event.save()
                self.stdout.write(self.style.SUCCESS(f"  Created event: {event.title}"))
                created += 1
        return created, updated, skipped
