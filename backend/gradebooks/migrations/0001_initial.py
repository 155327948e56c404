# Generated manually for the gradebook workflow schema

import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('academics', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='GradebookTemplate',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('pages', models.JSONField(blank=True, default=list)),
                ('current_version', models.PositiveIntegerField(default=1)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
        ),
        migrations.CreateModel(
            name='TemplateAssignment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('template_version', models.PositiveIntegerField(default=1)),
                ('assigned_teachers', models.JSONField(blank=True, default=list)),
                ('teacher_completions', models.JSONField(blank=True, default=list)),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('in_progress', 'In progress'), ('completed', 'Completed'), ('signed', 'Signed')], db_index=True, default='draft', max_length=20)),
                ('assigned_at', models.DateTimeField(blank=True, null=True)),
                ('is_completed', models.BooleanField(default=False)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('is_completed_sem1', models.BooleanField(default=False)),
                ('completed_at_sem1', models.DateTimeField(blank=True, null=True)),
                ('is_completed_sem2', models.BooleanField(default=False)),
                ('completed_at_sem2', models.DateTimeField(blank=True, null=True)),
                ('data', models.JSONField(blank=True, default=dict)),
                ('data_version', models.PositiveIntegerField(default=1)),
                ('completion_history_by_year', models.JSONField(blank=True, default=dict)),
                ('teacher_completions_by_year', models.JSONField(blank=True, default=dict)),
                ('assigned_teachers_by_year', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('assigned_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('completed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('completion_school_year', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='gradebook_assignments', to='academics.schoolyear')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='gradebook_assignments', to='academics.student')),
                ('template', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='assignments', to='gradebooks.gradebooktemplate')),
            ],
            options={
                'ordering': ('-updated_at',),
                'unique_together': {('template', 'student')},
            },
        ),
        migrations.CreateModel(
            name='TemplateSignature',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('signed_at', models.DateTimeField()),
                ('type', models.CharField(choices=[('standard', 'Standard'), ('end_of_year', 'End of year')], default='standard', max_length=20)),
                ('status', models.CharField(choices=[('signed', 'Signed'), ('exported', 'Exported')], default='signed', max_length=20)),
                ('level', models.CharField(blank=True, default='', max_length=32)),
                ('signature_period_id', models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                ('signature_url', models.CharField(blank=True, default='', max_length=500)),
                ('assignment', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='signatures', to='gradebooks.templateassignment')),
                ('school_year', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='gradebook_signatures', to='academics.schoolyear')),
                ('signed_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='gradebook_signatures', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ('signed_at', 'id'),
            },
        ),
        migrations.AddConstraint(
            model_name='templatesignature',
            constraint=models.UniqueConstraint(condition=models.Q(('signature_period_id__isnull', False)), fields=('assignment', 'type', 'signature_period_id', 'level'), name='uniq_signature_per_period'),
        ),
        migrations.CreateModel(
            name='SavedGradebook',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('level', models.CharField(blank=True, default='', max_length=32)),
                ('reason', models.CharField(choices=[('promotion', 'Promotion'), ('year_end', 'Year end'), ('sem1', 'Semester 1'), ('transfer', 'Transfer'), ('manual', 'Manual'), ('exit', 'Exit')], max_length=20)),
                ('data', models.JSONField(default=dict)),
                ('meta', models.JSONField(default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('assignment', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='snapshots', to='gradebooks.templateassignment')),
                ('school_class', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='saved_gradebooks', to='academics.schoolclass')),
                ('school_year', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='saved_gradebooks', to='academics.schoolyear')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='saved_gradebooks', to='academics.student')),
                ('template', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='saved_gradebooks', to='gradebooks.gradebooktemplate')),
            ],
            options={
                'ordering': ('-created_at',),
            },
        ),
        migrations.CreateModel(
            name='TemplateChangeLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('change_id', models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ('change_type', models.CharField(max_length=32)),
                ('key', models.CharField(blank=True, default='', max_length=128)),
                ('before', models.JSONField(blank=True, null=True)),
                ('after', models.JSONField(blank=True, null=True)),
                ('data_version', models.PositiveIntegerField()),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('assignment', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='change_logs', to='gradebooks.templateassignment')),
                ('changed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ('created_at', 'id'),
            },
        ),
    ]
