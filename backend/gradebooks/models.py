import uuid

from django.conf import settings
from django.db import models
from django.db.models import Q


class GradebookTemplate(models.Model):
    """Gradebook layout: a list of pages, each holding typed blocks.

    pages format (expected): [
      {'title': str, 'blocks': [{'type': 'dropdown'|'language_toggle'|..., 'props': {...}}]}
    ]
    """
    name = models.CharField(max_length=200)
    pages = models.JSONField(default=list, blank=True)
    current_version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.name} v{self.current_version}"


class TemplateAssignment(models.Model):
    """One student's gradebook for one template.

    Every accepted mutation increments `data_version`; writers that read the
    record first must present the version they read (see
    `gradebooks.services.versioning`).
    """
    class Status(models.TextChoices):
        DRAFT = 'draft', 'Draft'
        IN_PROGRESS = 'in_progress', 'In progress'
        COMPLETED = 'completed', 'Completed'
        SIGNED = 'signed', 'Signed'

    template = models.ForeignKey(
        GradebookTemplate,
        on_delete=models.PROTECT,
        related_name='assignments'
    )
    template_version = models.PositiveIntegerField(default=1)
    student = models.ForeignKey(
        'academics.Student',
        on_delete=models.CASCADE,
        related_name='gradebook_assignments'
    )
    # school year the record is currently live in
    completion_school_year = models.ForeignKey(
        'academics.SchoolYear',
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='gradebook_assignments'
    )
    assigned_teachers = models.JSONField(default=list, blank=True)
    teacher_completions = models.JSONField(default=list, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT, db_index=True)
    assigned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='+'
    )
    assigned_at = models.DateTimeField(null=True, blank=True)

    is_completed = models.BooleanField(default=False)
    completed_at = models.DateTimeField(null=True, blank=True)
    completed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='+'
    )
    is_completed_sem1 = models.BooleanField(default=False)
    completed_at_sem1 = models.DateTimeField(null=True, blank=True)
    is_completed_sem2 = models.BooleanField(default=False)
    completed_at_sem2 = models.DateTimeField(null=True, blank=True)

    data = models.JSONField(default=dict, blank=True)
    data_version = models.PositiveIntegerField(default=1)

    # per-year archives keyed by school year id (as string)
    completion_history_by_year = models.JSONField(default=dict, blank=True)
    teacher_completions_by_year = models.JSONField(default=dict, blank=True)
    assigned_teachers_by_year = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = (('template', 'student'),)
        ordering = ('-updated_at',)

    def __str__(self):
        return f"{self.template} for {self.student} ({self.status} v{self.data_version})"


class TemplateSignature(models.Model):
    """A supervisor's signature. The only source of truth for signed state."""
    class SignatureType(models.TextChoices):
        STANDARD = 'standard', 'Standard'
        END_OF_YEAR = 'end_of_year', 'End of year'

    class Status(models.TextChoices):
        SIGNED = 'signed', 'Signed'
        EXPORTED = 'exported', 'Exported'

    assignment = models.ForeignKey(
        TemplateAssignment,
        on_delete=models.CASCADE,
        related_name='signatures'
    )
    signed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='gradebook_signatures'
    )
    signed_at = models.DateTimeField()
    type = models.CharField(max_length=20, choices=SignatureType.choices, default=SignatureType.STANDARD)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.SIGNED)
    # empty when the signature is not level specific
    level = models.CharField(max_length=32, blank=True, default='')
    school_year = models.ForeignKey(
        'academics.SchoolYear',
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='gradebook_signatures'
    )
    # NULL marks a legacy signature created before period ids existed
    signature_period_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    signature_url = models.CharField(max_length=500, blank=True, default='')

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['assignment', 'type', 'signature_period_id', 'level'],
                condition=Q(signature_period_id__isnull=False),
                name='uniq_signature_per_period',
            ),
        ]
        ordering = ('signed_at', 'id')

    def __str__(self):
        return f"{self.type} signature on {self.assignment_id} ({self.signature_period_id or 'legacy'})"


class SavedGradebook(models.Model):
    """Immutable snapshot of an assignment and its context."""
    class Reason(models.TextChoices):
        PROMOTION = 'promotion', 'Promotion'
        YEAR_END = 'year_end', 'Year end'
        SEM1 = 'sem1', 'Semester 1'
        TRANSFER = 'transfer', 'Transfer'
        MANUAL = 'manual', 'Manual'
        EXIT = 'exit', 'Exit'

    student = models.ForeignKey(
        'academics.Student',
        on_delete=models.CASCADE,
        related_name='saved_gradebooks'
    )
    school_year = models.ForeignKey(
        'academics.SchoolYear',
        on_delete=models.PROTECT,
        related_name='saved_gradebooks'
    )
    school_class = models.ForeignKey(
        'academics.SchoolClass',
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='saved_gradebooks'
    )
    level = models.CharField(max_length=32, blank=True, default='')
    template = models.ForeignKey(
        GradebookTemplate,
        on_delete=models.PROTECT,
        related_name='saved_gradebooks'
    )
    assignment = models.ForeignKey(
        TemplateAssignment,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='snapshots'
    )
    reason = models.CharField(max_length=20, choices=Reason.choices)
    data = models.JSONField(default=dict)
    meta = models.JSONField(default=dict)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ('-created_at',)

    def __str__(self):
        return f"{self.reason} snapshot of {self.student} ({self.school_year})"

    def save(self, *args, **kwargs):
        if self.pk is not None and not self._state.adding:
            raise ValueError('Saved gradebooks are write-once')
        super().save(*args, **kwargs)


class TemplateChangeLog(models.Model):
    assignment = models.ForeignKey(
        TemplateAssignment,
        on_delete=models.CASCADE,
        related_name='change_logs'
    )
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='+'
    )
    change_id = models.UUIDField(default=uuid.uuid4, editable=False, unique=True)
    change_type = models.CharField(max_length=32)
    key = models.CharField(max_length=128, blank=True, default='')
    before = models.JSONField(null=True, blank=True)
    after = models.JSONField(null=True, blank=True)
    data_version = models.PositiveIntegerField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ('created_at', 'id')

    def __str__(self):
        return f"{self.change_type} on {self.assignment_id} -> v{self.data_version}"
