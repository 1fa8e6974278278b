"""
Authentication backend: login with username or e-mail.
"""
from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend
from django.db.models import Q


class EmailBackend(ModelBackend):
    """
    Storefront customers register with their e-mail, staff may still use the username.
    When several accounts share an e-mail, the first one whose password matches wins.
    """
    def authenticate(self, request, username=None, password=None, **kwargs):
        UserModel = get_user_model()
        if username is None:
            username = kwargs.get(UserModel.USERNAME_FIELD) or kwargs.get('email')
        if not username or password is None:
            return None

        login = username.strip()
        candidates = UserModel.objects.filter(
            Q(username__iexact=login) | Q(email__iexact=login)
        ).order_by('id')

        for user in candidates:
            if user.check_password(password) and self.user_can_authenticate(user):
                return user

        # Mitigate timing attacks against unknown logins
        if not candidates:
            UserModel().set_password(password)
        return None
