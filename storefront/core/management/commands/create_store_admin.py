"""
Management command to create (or promote) a back-office user
Usage: python manage.py create_store_admin --email admin@rashakin.com --password <password> [--name "Store Admin"]
"""
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

User = get_user_model()


class Command(BaseCommand):
    help = "Creates a staff user for the store back-office, or promotes an existing account"

    def add_arguments(self, parser):
        parser.add_argument('--email', required=True, help='Admin email address')
        parser.add_argument('--password', help='Password (required when creating a new account)')
        parser.add_argument('--name', default='Store Admin', help='Display name')

    def handle(self, *args, **options):
        email = options['email'].strip().lower()
        password = options.get('password')

        user = User.objects.filter(email__iexact=email).first()
        if user:
            user.is_staff = True
            user.is_active = True
            if password:
                user.set_password(password)
            user.save()
            self.stdout.write(self.style.SUCCESS(f"Promoted existing user {email} to store admin"))
            return

        if not password:
            raise CommandError('--password is required when creating a new admin account')

        User.objects.create_user(email=email, password=password, name=options['name'], is_staff=True)
        self.stdout.write(self.style.SUCCESS(f"Created store admin {email}"))
