from django.db import models
from django.contrib.auth.models import AbstractUser
from django.conf import settings
from django.core.validators import RegexValidator


class UsernameValidator(RegexValidator):
    """Custom validator that allows spaces in usernames."""
    regex = r'^[\w\s.@+-]+$'
    message = 'Enter a valid username. This value may contain letters, numbers, spaces, and @/./+/-/_ characters.'
    flags = 0


class User(AbstractUser):
    """
    Base user model.
    Teachers, supervisors (sub-admins), AEFE staff and admins are all users.
    What they may do is decided by roles, supervision links and scopes.
    """
    username = models.CharField(
        max_length=150,
        unique=True,
        help_text='Required. 150 characters or fewer. Letters, numbers, spaces, and @/./+/-/_ characters.',
        validators=[UsernameValidator()],
        error_messages={
            'unique': 'A user with that username already exists.',
        },
    )

    roles = models.ManyToManyField(
        'Role',
        through='UserRole',
        related_name='users'
    )

    def __str__(self):
        return self.username

    def has_role(self, name: str) -> bool:
        return self.roles.filter(name__iexact=name).exists()


class Role(models.Model):
    """
    Logical role (TEACHER, SUBADMIN, AEFE, ADMIN).
    """
    TEACHER = 'TEACHER'
    SUBADMIN = 'SUBADMIN'
    AEFE = 'AEFE'
    ADMIN = 'ADMIN'

    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)

    def __str__(self):
        return self.name


class UserRole(models.Model):
    """
    Assigns a role to a user.
    A user can have multiple roles (TEACHER + SUBADMIN).
    """
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='user_roles'
    )
    role = models.ForeignKey(
        Role,
        on_delete=models.CASCADE,
        related_name='user_roles'
    )

    class Meta:
        unique_together = ('user', 'role')

    def __str__(self):
        return f"{self.user.username} -> {self.role.name}"


class BypassScope(models.Model):
    """Explicit grant letting a user act on gradebooks outside their
    supervision links.

    `value` holds the level name, class id or student id the grant covers;
    it is empty for ALL.
    """
    class ScopeType(models.TextChoices):
        ALL = 'ALL', 'All'
        LEVEL = 'LEVEL', 'Level'
        CLASS = 'CLASS', 'Class'
        STUDENT = 'STUDENT', 'Student'

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='bypass_scopes'
    )
    scope_type = models.CharField(max_length=10, choices=ScopeType.choices)
    value = models.CharField(max_length=100, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ('user', 'scope_type', 'value')

    def __str__(self):
        if self.scope_type == self.ScopeType.ALL:
            return f"{self.user.username}: ALL"
        return f"{self.user.username}: {self.scope_type}={self.value}"
