from django.core.management.base import BaseCommand, CommandError

from studylog.backfill import migrate, migrate_all


class Command(BaseCommand):
    help = "Rebuild daily study summaries from raw study sessions."

    def add_arguments(self, parser):
        parser.add_argument(
            "--user", dest="users", action="append", default=[],
            help="Only migrate this user id (repeatable). Defaults to every user with sessions.",
        )

    def handle(self, *args, **options):
        if options["users"]:
            results = [dict(migrate(u), user_id=u) for u in options["users"]]
        else:
            results = migrate_all()

        failed = 0
        for r in results:
            if r["success"]:
                self.stdout.write(f"{r['user_id']}: {r['migrated_count']} groups")
            else:
                failed += 1
                self.stderr.write(f"{r['user_id']}: failed ({r.get('error')})")

        if failed:
            raise CommandError(f"{failed} user(s) failed to migrate; re-run to retry.")
        self.stdout.write(self.style.SUCCESS(f"Migrated {len(results)} user(s)."))
