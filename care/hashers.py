"""
Password hashing for accounts and admin users.

Django's bcrypt hasher fixes its cost factor as a class attribute.
The subclass below reads ``settings.BCRYPT_ROUNDS`` instead so the
cost can be tuned per deployment (and lowered in tests).  Hashes made
with a different cost are transparently upgraded on the next
successful password check.
"""
from __future__ import annotations

from django.conf import settings
from django.contrib.auth.hashers import BCryptSHA256PasswordHasher


class ConfigurableBCryptSHA256PasswordHasher(BCryptSHA256PasswordHasher):

    @property
    def rounds(self) -> int:  # type: ignore[override]
        return int(getattr(settings, 'BCRYPT_ROUNDS', 12))
