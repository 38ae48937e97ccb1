"""
Service layer.

The long-lived service objects are built by :class:`care.apps.CareConfig`;
these accessors hand them to views.
"""
from django.apps import apps


def get_verifier():
    return apps.get_app_config('care').verifier


def get_workflow():
    return apps.get_app_config('care').workflow


def get_relay():
    return apps.get_app_config('care').relay
