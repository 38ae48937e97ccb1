"""
URL mappings for the MommyCare backend API.

Trailing slashes are omitted to match the front-end.  Admin routes are
listed before the ``<role>`` routes so that ``/api/admin/...`` is never
taken for a role name.
"""
from django.urls import path, include

from .auth_views import (
    admin_change_password_view,
    admin_login_view,
    admin_logout_view,
    admin_me_view,
    admin_profile_view,
    admin_register_view,
    change_password_view,
    login_view,
    logout_view,
    me_view,
    profile_view,
    register_view,
)
from .views import admin_permissions, admin_users, appointments, health, messages, permission_requests


urlpatterns = [
    path('', include('django_prometheus.urls')),
    path('healthz', health.healthz),
    # Authentication
    path('api/auth/register', register_view),
    path('api/auth/login', login_view),
    path('api/auth/logout', logout_view),
    path('api/auth/me', me_view),
    path('api/auth/profile', profile_view),
    path('api/auth/password', change_password_view),
    # Admin authentication
    path('api/admin/login', admin_login_view),
    path('api/admin/register', admin_register_view),
    path('api/admin/me', admin_me_view),
    path('api/admin/logout', admin_logout_view),
    path('api/admin/profile', admin_profile_view),
    path('api/admin/password', admin_change_password_view),
    # Admin permission-request review
    path('api/admin/permission-requests', admin_permissions.list_requests),
    path('api/admin/permission-requests/stats', admin_permissions.stats),
    path('api/admin/permission-requests/bulk-update', admin_permissions.bulk_update),
    path('api/admin/permission-request/<int:request_id>', admin_permissions.request_detail),
    path('api/admin/permission-request/<int:request_id>/status', admin_permissions.set_status),
    path('api/admin/permission-request/<int:request_id>/notes', admin_permissions.add_note),
    # Admin user management
    path('api/admin/users', admin_users.list_users),
    path('api/admin/users/stats', admin_users.user_stats),
    path('api/admin/users/<int:user_id>', admin_users.user_detail),
    path('api/admin/users/<int:user_id>/status', admin_users.user_status),
    # Appointments
    path('api/appointments', appointments.appointments),
    path('api/appointments/<int:appointment_id>', appointments.appointment_detail),
    # Messages
    path('api/messages/send', messages.send_message),
    path('api/messages/read', messages.mark_read),
    path('api/messages/unread-count', messages.unread_count),
    path('api/messages/<int:other_user_id>', messages.conversation),
    # Requester permission requests; <role> is doctor, midwife or service_provider
    path('api/<str:role>/permission-request', permission_requests.submit_request),
    path('api/<str:role>/permission-requests', permission_requests.list_my_requests),
    path('api/<str:role>/permission-request/<int:request_id>', permission_requests.my_request_detail),
]
