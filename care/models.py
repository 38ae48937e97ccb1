"""
Database models for the MommyCare backend.

Accounts and admin users form the identity store.  Permission requests
are stored as independent records that carry a denormalized snapshot
of the requester (id and email) rather than a foreign key, so deleting
an account leaves its requests in place.  Role-specific request details
and uploaded document references are kept as JSON documents.
"""
from __future__ import annotations

from datetime import timedelta

from django.conf import settings
from django.contrib.auth.base_user import AbstractBaseUser, BaseUserManager
from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models import F, Q
from django.utils import timezone


class AccountManager(BaseUserManager):
    """Manager for :class:`Account` keyed by e-mail instead of username."""

    use_in_migrations = True

    def create_user(self, email: str, password: str | None = None, **extra):
        if not email:
            raise ValueError('email is required')
        account = self.model(email=self.normalize_email(email).lower(), **extra)
        account.set_password(password)
        account.save(using=self._db)
        return account

    def create_superuser(self, email: str, password: str | None = None, **extra):
        extra.setdefault('role', Account.ROLE_ADMIN)
        extra.setdefault('is_staff', True)
        extra.setdefault('is_superuser', True)
        return self.create_user(email, password, **extra)


class Account(AbstractUser):
    """A registered platform participant.

    Roles: 'mom', 'doctor', 'midwife', 'service_provider' and 'admin'.
    No endpoint changes the role after creation; an approved permission
    request only flips ``is_approved``.
    """
    ROLE_MOM = 'mom'
    ROLE_DOCTOR = 'doctor'
    ROLE_MIDWIFE = 'midwife'
    ROLE_SERVICE_PROVIDER = 'service_provider'
    ROLE_ADMIN = 'admin'
    ROLE_CHOICES = [
        (ROLE_MOM, 'Mom'),
        (ROLE_DOCTOR, 'Doctor'),
        (ROLE_MIDWIFE, 'Midwife'),
        (ROLE_SERVICE_PROVIDER, 'Service provider'),
        (ROLE_ADMIN, 'Administrator'),
    ]
    REGISTRATION_ROLES = (ROLE_MOM, ROLE_DOCTOR, ROLE_MIDWIFE, ROLE_SERVICE_PROVIDER)

    GENDER_CHOICES = [
        ('male', 'Male'),
        ('female', 'Female'),
        ('other', 'Other'),
    ]

    username = None
    email = models.EmailField(unique=True)
    first_name = models.CharField(max_length=50)
    last_name = models.CharField(max_length=50)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_MOM, db_index=True)
    is_approved = models.BooleanField(default=False)

    # Optional profile extensions
    phone = models.CharField(max_length=32, blank=True)
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES, blank=True)
    date_of_birth = models.DateField(null=True, blank=True)
    avatar = models.CharField(max_length=512, blank=True)
    address = models.JSONField(default=dict, blank=True)
    preferences = models.JSONField(default=dict, blank=True)

    # Login throttling
    login_attempts = models.PositiveIntegerField(default=0)
    lock_until = models.DateTimeField(null=True, blank=True)
    password_changed_at = models.DateTimeField(null=True, blank=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['first_name', 'last_name']

    objects = AccountManager()

    class Meta:
        indexes = [
            models.Index(fields=['role', 'date_joined'], name='care_accoun_role_5c1f0e_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.email} ({self.role})"

    @property
    def is_locked(self) -> bool:
        return bool(self.lock_until and self.lock_until > timezone.now())

    def register_failed_login(self) -> None:
        """Count a failed login, locking the account at the threshold.

        A lock that has already expired is cleared and counting restarts
        at one.
        """
        now = timezone.now()
        rows = type(self).objects.filter(pk=self.pk)
        if not rows.filter(lock_until__lte=now).update(login_attempts=1, lock_until=None):
            rows.update(login_attempts=F('login_attempts') + 1)
            rows.filter(login_attempts__gte=settings.LOGIN_MAX_ATTEMPTS, lock_until__isnull=True).update(
                lock_until=now + timedelta(minutes=settings.LOGIN_LOCK_MINUTES))
        self.refresh_from_db(fields=['login_attempts', 'lock_until'])

    def register_successful_login(self) -> None:
        self.login_attempts = 0
        self.lock_until = None
        self.last_login = timezone.now()
        self.save(update_fields=['login_attempts', 'lock_until', 'last_login'])


class AdminUserManager(BaseUserManager):
    def create_admin(self, username: str, email: str, password: str, **extra) -> 'AdminUser':
        admin = self.model(username=username.strip(), email=self.normalize_email(email).lower(), **extra)
        admin.set_password(password)
        admin.save(using=self._db)
        return admin


class AdminUser(AbstractBaseUser):
    """An administrator authenticated through the separate admin flow.

    Admin users live outside ``AUTH_USER_MODEL``; their tokens carry an
    ``isAdmin`` claim and are only accepted by admin endpoints.
    """
    ROLE_CHOICES = [
        ('super_admin', 'Super administrator'),
        ('admin', 'Administrator'),
        ('moderator', 'Moderator'),
    ]
    PERMISSION_CHOICES = ['user_management', 'system_config', 'audit_logs', 'database_admin']

    username = models.CharField(max_length=30, unique=True)
    email = models.EmailField(unique=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='admin', db_index=True)
    permissions = models.JSONField(default=list, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = 'email'
    EMAIL_FIELD = 'email'
    REQUIRED_FIELDS = ['username']

    objects = AdminUserManager()

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class PermissionRequest(models.Model):
    """An applicant's bid to be recognised in an elevated role."""
    ROLE_CHOICES = [
        ('doctor', 'Doctor'),
        ('midwife', 'Midwife'),
        ('service_provider', 'Service provider'),
    ]
    ROLES = tuple(r for r, _ in ROLE_CHOICES)

    TYPE_CHOICES = [
        ('permission_request', 'Permission request'),
        ('verification_request', 'Verification request'),
        ('access_request', 'Access request'),
    ]

    STATUS_PENDING = 'pending'
    STATUS_UNDER_REVIEW = 'under_review'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_UNDER_REVIEW, 'Under review'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_REJECTED, 'Rejected'),
    ]
    STATUSES = tuple(s for s, _ in STATUS_CHOICES)
    IN_FLIGHT_STATUSES = (STATUS_PENDING, STATUS_UNDER_REVIEW)

    PRIORITY_CHOICES = [
        ('low', 'Low'),
        ('medium', 'Medium'),
        ('high', 'High'),
        ('urgent', 'Urgent'),
    ]
    PRIORITIES = tuple(p for p, _ in PRIORITY_CHOICES)

    # Snapshot of the requester; not a foreign key
    requester_id = models.BigIntegerField(db_index=True)
    requester_email = models.EmailField()
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, db_index=True)
    request_type = models.CharField(max_length=32, choices=TYPE_CHOICES, default='permission_request')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    details = models.JSONField(default=dict, blank=True)
    documents = models.JSONField(default=list, blank=True)

    reviewed_by_id = models.CharField(max_length=64, blank=True)
    reviewed_by_name = models.CharField(max_length=150, blank=True)
    reviewed_at = models.DateTimeField(null=True, blank=True)
    review_date = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True)

    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='medium', db_index=True)
    is_urgent = models.BooleanField(default=False)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at', '-id']
        constraints = [
            # One in-flight request per (requester, role)
            models.UniqueConstraint(
                fields=['requester_id', 'role'],
                condition=Q(status__in=['pending', 'under_review']),
                name='unique_in_flight_permission_request',
            ),
        ]

    def __str__(self) -> str:
        return f"{self.role} request #{self.pk} by {self.requester_email} [{self.status}]"

    @property
    def is_in_flight(self) -> bool:
        return self.status in self.IN_FLIGHT_STATUSES


class PermissionRequestNote(models.Model):
    """An append-only admin note on a permission request."""
    request = models.ForeignKey(PermissionRequest, related_name='notes', on_delete=models.CASCADE)
    admin_id = models.CharField(max_length=64)
    admin_name = models.CharField(max_length=150)
    text = models.TextField()
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['created_at', 'id']

    def __str__(self) -> str:
        return f"Note on {self.request_id} by {self.admin_name}"


class Appointment(models.Model):
    STATUS_CHOICES = [
        ('scheduled', 'Scheduled'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='appointments')
    doctor = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name='doctor_appointments'
    )
    service_provider = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name='provider_appointments'
    )
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default='scheduled', db_index=True)
    reason = models.CharField(max_length=255, blank=True)
    notes = models.TextField(blank=True)
    location = models.CharField(max_length=255, default='online')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['user', 'start_time'], name='care_appoin_user_id_0b7e2d_idx'),
            models.Index(fields=['doctor', 'start_time'], name='care_appoin_doctor__4f6a91_idx'),
        ]

    def __str__(self) -> str:
        return f"appt {self.id} u={self.user_id} @ {self.start_time:%F %T}"

    def participant_ids(self) -> list[int]:
        return [pid for pid in (self.user_id, self.doctor_id, self.service_provider_id) if pid]


class Message(models.Model):
    TYPE_CHOICES = [
        ('text', 'text'),
        ('image', 'image'),
        ('file', 'file'),
        ('audio', 'audio'),
        ('video', 'video'),
        ('location', 'location'),
    ]
    STATUS_SENT = 'sent'
    STATUS_DELIVERED = 'delivered'
    STATUS_READ = 'read'
    STATUS_CHOICES = [
        (STATUS_SENT, 'sent'),
        (STATUS_DELIVERED, 'delivered'),
        (STATUS_READ, 'read'),
        ('failed', 'failed'),
    ]
    PRIORITY_CHOICES = [
        ('low', 'low'),
        ('normal', 'normal'),
        ('high', 'high'),
        ('urgent', 'urgent'),
    ]

    sender = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='sent_messages')
    recipient = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='received_messages')
    content = models.TextField(max_length=1000)
    mtype = models.CharField(max_length=16, choices=TYPE_CHOICES, default='text')
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_SENT)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='normal')
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['sender', 'recipient'], name='care_messag_sender__8d3c52_idx'),
            models.Index(fields=['recipient', 'created_at'], name='care_messag_recipie_1a9e07_idx'),
        ]

    def __str__(self) -> str:
        return f"msg {self.id} {self.sender_id}->{self.recipient_id}"


class AuditEvent(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.CharField(max_length=64, blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='care_audite_action_6e2b4f_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='care_audite_object__c71d38_idx'),
        ]

    def __str__(self):
        return f"{self.action}:{self.user_id}@{self.created_at:%F %T}"
