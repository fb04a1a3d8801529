import re

from django.core.exceptions import ValidationError
from django.core.validators import RegexValidator

PASSWORD_SPECIAL_CHARACTERS = '@$!%*?&'

username_validator = RegexValidator(
    regex=r'^[a-zA-Z0-9_]+$',
    message='Username can only contain letters, numbers, and underscores.',
)


class PasswordComplexityValidator:
    """
    Au moins 8 caractères, dont une minuscule, une majuscule, un chiffre
    et un caractère spécial parmi @$!%*?&.
    """

    def __init__(self, min_length=8):
        self.min_length = min_length

    def validate(self, password, user=None):
        if (
            len(password) < self.min_length
            or not re.search(r'[a-z]', password)
            or not re.search(r'[A-Z]', password)
            or not re.search(r'\d', password)
            or not any(char in PASSWORD_SPECIAL_CHARACTERS for char in password)
        ):
            raise ValidationError(self.get_help_text(), code='password_too_weak')

    def get_help_text(self):
        return (
            f'Password must be at least {self.min_length} characters and contain at least one '
            f'uppercase letter, one lowercase letter, one number and one special character '
            f'({PASSWORD_SPECIAL_CHARACTERS}).'
        )
