from django.core.management.base import BaseCommand
from django.db import transaction
from rest_framework.authtoken.models import Token

from accounts.models import CustomUser

DEV_USERS = [
    ('agent_user', 'agent'),
    ('manager_user', 'manager'),
    ('finance_user', 'finance'),
    ('client_user', 'client'),
]


class Command(BaseCommand):
    help = 'Create one local user per role, with an API token (development only)'

    def add_arguments(self, parser):
        parser.add_argument('--password', default='freight-dev', help='Password for every created user')
        parser.add_argument('--domain', default='example.com', help='Email domain for created users')

    @transaction.atomic
    def handle(self, *args, **options):
        for username, role in DEV_USERS:
            if CustomUser.objects.filter(username=username).exists():
                self.stdout.write(self.style.WARNING(f"User {username} already exists"))
                continue

            user = CustomUser.objects.create_user(
                username=username,
                email=f"{username}@{options['domain']}",
                password=options['password'],
                role=role,
                is_staff=role in ('manager', 'finance'),
            )
            token = Token.objects.create(user=user)
            self.stdout.write(self.style.SUCCESS(f"Created {role} user {username} (token {token.key})"))
