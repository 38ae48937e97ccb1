# care/management/commands/create_admin.py
from django.core.management.base import BaseCommand, CommandError

from care.models import AdminUser


class Command(BaseCommand):
    help = "Create (or reset) an API admin user. Use this to bootstrap the first super admin."

    def add_arguments(self, parser):
        parser.add_argument("--username", required=True)
        parser.add_argument("--email", required=True)
        parser.add_argument("--password", required=True)
        parser.add_argument("--role", default="super_admin", choices=[r for r, _ in AdminUser.ROLE_CHOICES])

    def handle(self, *args, **opts):
        if len(opts["password"]) < 6:
            raise CommandError("password must be at least 6 characters")
        email = opts["email"].strip().lower()
        admin = AdminUser.objects.filter(email=email).first()
        if admin is None:
            admin = AdminUser.objects.create_admin(
                opts["username"], email, opts["password"],
                role=opts["role"], permissions=list(AdminUser.PERMISSION_CHOICES),
            )
            self.stdout.write(self.style.SUCCESS(f"created: {admin.username} ({admin.role})"))
            return
        # existing admin: reset password, role and activation
        admin.set_password(opts["password"])
        admin.role = opts["role"]
        admin.is_active = True
        admin.save(update_fields=["password", "role", "is_active"])
        self.stdout.write(self.style.SUCCESS(f"updated: {admin.username} ({admin.role})"))
