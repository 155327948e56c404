from django.conf import settings
from django.db import models


class SchoolYear(models.Model):
    """Academic year. Exactly one row is expected to be active."""
    name = models.CharField(max_length=32, unique=True)
    start_date = models.DateField(null=True, blank=True)
    end_date = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=False, db_index=True)
    # 1 or 2; decides which semester period a standard signature belongs to
    active_semester = models.PositiveSmallIntegerField(default=1)
    sequence = models.PositiveIntegerField(null=True, blank=True)

    class Meta:
        ordering = ('start_date', 'id')

    def __str__(self):
        return self.name


class Level(models.Model):
    name = models.CharField(max_length=32, unique=True)
    order = models.PositiveIntegerField(unique=True)
    is_exit_level = models.BooleanField(default=False)

    class Meta:
        ordering = ('order',)

    def __str__(self):
        return self.name


class SchoolClass(models.Model):
    name = models.CharField(max_length=64)
    level = models.CharField(max_length=32, blank=True, default='')
    school_year = models.ForeignKey(
        SchoolYear,
        on_delete=models.CASCADE,
        related_name='classes'
    )

    class Meta:
        unique_together = (('school_year', 'name'),)
        verbose_name_plural = 'School classes'

    def __str__(self):
        return f"{self.name} ({self.school_year})"


class Student(models.Model):
    class Status(models.TextChoices):
        ACTIVE = 'active', 'Active'
        LEFT = 'left', 'Left'
        ARCHIVED = 'archived', 'Archived'

    logical_key = models.CharField(max_length=64, unique=True)
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    date_of_birth = models.DateField(null=True, blank=True)
    # cached current level; updated by promotions
    level = models.CharField(max_length=32, blank=True, default='')
    next_level = models.CharField(max_length=32, blank=True, default='')
    school_year = models.ForeignKey(
        SchoolYear,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='students'
    )
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.ACTIVE)
    # append-only list of promotion entries, at most one per school_year_id
    promotions = models.JSONField(default=list, blank=True)

    def __str__(self):
        return f"{self.first_name} {self.last_name}"

    def promotion_for_year(self, school_year_id):
        for entry in self.promotions or []:
            if str(entry.get('school_year_id')) == str(school_year_id):
                return entry
        return None


class Enrollment(models.Model):
    class Status(models.TextChoices):
        ACTIVE = 'active', 'Active'
        PROMOTED = 'promoted', 'Promoted'
        ARCHIVED = 'archived', 'Archived'
        LEFT = 'left', 'Left'

    class PromotionStatus(models.TextChoices):
        PENDING = 'pending', 'Pending'
        PROMOTED = 'promoted', 'Promoted'
        RETAINED = 'retained', 'Retained'
        LEFT = 'left', 'Left'

    student = models.ForeignKey(
        Student,
        on_delete=models.CASCADE,
        related_name='enrollments'
    )
    school_year = models.ForeignKey(
        SchoolYear,
        on_delete=models.CASCADE,
        related_name='enrollments'
    )
    school_class = models.ForeignKey(
        SchoolClass,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='enrollments'
    )
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.ACTIVE, db_index=True)
    promotion_status = models.CharField(max_length=16, choices=PromotionStatus.choices, default=PromotionStatus.PENDING)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['student', 'school_year'], name='uniq_enrollment_student_year'),
        ]

    def __str__(self):
        return f"{self.student} in {self.school_year} ({self.status})"


class TeacherClassAssignment(models.Model):
    teacher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='class_assignments'
    )
    school_class = models.ForeignKey(
        SchoolClass,
        on_delete=models.CASCADE,
        related_name='teacher_assignments'
    )
    school_year = models.ForeignKey(
        SchoolYear,
        on_delete=models.CASCADE,
        related_name='teacher_assignments'
    )
    # language codes the teacher may toggle; empty means unrestricted
    languages = models.JSONField(default=list, blank=True)
    is_prof_polyvalent = models.BooleanField(default=False)

    class Meta:
        unique_together = (('teacher', 'school_class'),)

    def __str__(self):
        return f"{self.teacher} -> {self.school_class}"


class SupervisorAssignment(models.Model):
    """A supervisor (sub-admin or AEFE) overseeing a teacher."""
    supervisor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='supervised_teachers'
    )
    teacher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='supervisors'
    )
    assigned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='+'
    )
    assigned_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = (('supervisor', 'teacher'),)

    def __str__(self):
        return f"{self.supervisor} supervises {self.teacher}"


class RoleScope(models.Model):
    """Levels a supervisor is responsible for, optionally for one year."""
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='role_scopes'
    )
    school_year = models.ForeignKey(
        SchoolYear,
        null=True,
        blank=True,
        on_delete=models.CASCADE,
        related_name='role_scopes'
    )
    levels = models.JSONField(default=list, blank=True)

    def __str__(self):
        return f"{self.user}: {', '.join(self.levels or [])}"
