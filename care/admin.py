"""
Django admin registrations for the care models.

Exposed under ``/django-admin/`` for inspecting data during
development.  The API's own admin users are managed through
``/api/admin`` and the ``create_admin`` command.
"""

from django.contrib import admin

from .models import (
    Account,
    AdminUser,
    Appointment,
    AuditEvent,
    Message,
    PermissionRequest,
    PermissionRequestNote,
)


@admin.register(Account)
class AccountAdmin(admin.ModelAdmin):
    list_display = ('email', 'role', 'is_active', 'is_approved', 'date_joined')
    list_filter = ('role', 'is_active', 'is_approved')
    search_fields = ('email', 'first_name', 'last_name')
    exclude = ('password',)


@admin.register(AdminUser)
class AdminUserAdmin(admin.ModelAdmin):
    list_display = ('username', 'email', 'role', 'is_active', 'created_at')
    list_filter = ('role', 'is_active')
    search_fields = ('username', 'email')
    exclude = ('password',)


class PermissionRequestNoteInline(admin.TabularInline):
    model = PermissionRequestNote
    extra = 0


@admin.register(PermissionRequest)
class PermissionRequestAdmin(admin.ModelAdmin):
    list_display = ('id', 'requester_email', 'role', 'status', 'priority', 'is_urgent', 'created_at')
    list_filter = ('role', 'status', 'priority', 'is_urgent')
    search_fields = ('requester_email',)
    inlines = [PermissionRequestNoteInline]


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'doctor', 'service_provider', 'start_time', 'status')
    list_filter = ('status',)


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ('id', 'sender', 'recipient', 'mtype', 'status', 'created_at')
    list_filter = ('status', 'mtype')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('action', 'user', 'object_type', 'object_id', 'created_at')
    list_filter = ('action', 'object_type')
