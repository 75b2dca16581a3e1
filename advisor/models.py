import uuid

from django.conf import settings
from django.db import models

from .client import ChatSession


class Conversation(models.Model):
    """A chat with the farm advisor; context is fixed when it starts"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    system_instruction = models.TextField()
    messages = models.JSONField(default=list, blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='conversations')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"Conversation {self.id} ({len(self.messages)} messages)"

    @classmethod
    def start(cls, session, user):
        return cls.objects.create(
            system_instruction=session.system_instruction,
            messages=list(session.messages),
            created_by=user,
        )

    def to_session(self):
        return ChatSession(system_instruction=self.system_instruction, messages=list(self.messages or []))

    def record(self, session):
        self.messages = list(session.messages)
        self.save(update_fields=['messages', 'updated_at'])
