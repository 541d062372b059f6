from django.core.management.base import BaseCommand
from django.utils import timezone

from finance.services.notification_service import outstanding_obligations, send_due_reminders


class Command(BaseCommand):
    help = 'Sends push reminders to members with outstanding dues and levies'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Run without sending notifications (just show what would be sent)',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']

        self.stdout.write(self.style.SUCCESS('=' * 60))
        self.stdout.write(self.style.SUCCESS('Sending Due Reminder Notifications'))
        self.stdout.write(self.style.SUCCESS('=' * 60))
        self.stdout.write(f'Current Date: {timezone.localdate()}')
        if dry_run:
            self.stdout.write(self.style.WARNING('DRY RUN MODE - No notifications will be sent'))
            for items in outstanding_obligations().values():
                user = items[0][0]
                for _, name, balance in items:
                    self.stdout.write(f'  {user.email}: {name} ({balance})')
        self.stdout.write('')

        stats = send_due_reminders(dry_run=dry_run)

        self.stdout.write(self.style.SUCCESS('Summary'))
        self.stdout.write(f'  Members with outstanding items: {stats["members"]}')
        self.stdout.write(f'  Notifications sent: {stats["sent"]}')
        self.stdout.write(f'  Skipped: {stats["skipped"]}')
