import os

from django.core.management.base import BaseCommand

from finance.models import User, UserRole, SystemSetting


class Command(BaseCommand):
    help = 'Seeds the database with the system settings row and a super admin user'

    def add_arguments(self, parser):
        parser.add_argument('--email', default=os.getenv('SEED_ADMIN_EMAIL', 'admin@example.com'))
        parser.add_argument('--password', default=os.getenv('SEED_ADMIN_PASSWORD', '12345678'))

    def handle(self, *args, **options):
        self.stdout.write(self.style.SUCCESS('Starting seed data process...'))

        settings = SystemSetting.get_settings()
        self.stdout.write(self.style.SUCCESS(
            f'✓ System settings ready (loan interest rate: {settings.default_loan_interest_rate}%)'
        ))

        email = options['email'].lower()
        admin_user, user_created = User.objects.get_or_create(
            email=email,
            defaults={
                'first_name': 'Super',
                'last_name': 'Admin',
                'role': UserRole.SUPER_ADMIN,
                'is_staff': True,
                'is_superuser': True,
                'is_active': True,
            }
        )
        if user_created:
            self.stdout.write(self.style.SUCCESS(f'✓ Created super admin: {email}'))
        else:
            admin_user.role = UserRole.SUPER_ADMIN
            admin_user.is_staff = True
            admin_user.is_superuser = True
            admin_user.is_active = True
            self.stdout.write(self.style.WARNING(f'→ Super admin already exists, password reset: {email}'))
        admin_user.set_password(options['password'])
        admin_user.save()

        self.stdout.write(self.style.SUCCESS('Seed data process completed.'))
