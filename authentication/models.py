from django.db import models
from django.contrib.auth.models import AbstractUser


class User(AbstractUser):
    THEME_CHOICES = [
        ('blue', 'Blue'),
        ('green', 'Green'),
        ('orange', 'Orange'),
    ]
    DEFAULT_THEME = 'blue'

    email = models.EmailField(unique=True)
    theme = models.CharField(max_length=10, choices=THEME_CHOICES, default=DEFAULT_THEME)
    created_at = models.DateTimeField(auto_now_add=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['username']

    def __str__(self):
        return self.email
