"""
Application configuration for the care app.

The credential verifier and the review workflow are built once here,
with their stores and the notification relay passed in explicitly.
Views reach them through :func:`care.services.get_verifier` and
:func:`care.services.get_workflow`.
"""
from django.apps import AppConfig


class CareConfig(AppConfig):
    name = 'care'
    default_auto_field = 'django.db.models.BigAutoField'

    def ready(self) -> None:
        from .models import Account, PermissionRequest
        from .services.accounts import CredentialVerifier
        from .services.permission_requests import ReviewWorkflow
        from .services.relay import NotificationRelay

        self.relay = NotificationRelay()
        self.verifier = CredentialVerifier(accounts=Account.objects)
        self.workflow = ReviewWorkflow(
            requests=PermissionRequest.objects,
            accounts=Account.objects,
            relay=self.relay,
        )
