import json

from django.core.serializers.json import DjangoJSONEncoder
from rest_framework import serializers

from academics.models import Enrollment, Student
from gradebooks import models as gb_models


class TemplateAssignmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = gb_models.TemplateAssignment
        fields = (
            'id',
            'template',
            'template_version',
            'student',
            'completion_school_year',
            'assigned_teachers',
            'teacher_completions',
            'status',
            'assigned_by',
            'assigned_at',
            'is_completed',
            'completed_at',
            'completed_by',
            'is_completed_sem1',
            'completed_at_sem1',
            'is_completed_sem2',
            'completed_at_sem2',
            'data',
            'data_version',
            'completion_history_by_year',
            'teacher_completions_by_year',
            'assigned_teachers_by_year',
            'updated_at',
        )
        read_only_fields = fields


class TemplateSignatureSerializer(serializers.ModelSerializer):
    class Meta:
        model = gb_models.TemplateSignature
        fields = (
            'id',
            'assignment',
            'signed_by',
            'signed_at',
            'type',
            'status',
            'level',
            'school_year',
            'signature_period_id',
            'signature_url',
        )
        read_only_fields = fields


class StudentSnapshotSerializer(serializers.ModelSerializer):
    class Meta:
        model = Student
        fields = (
            'id',
            'logical_key',
            'first_name',
            'last_name',
            'date_of_birth',
            'level',
            'next_level',
            'school_year',
            'status',
            'promotions',
        )
        read_only_fields = fields


class EnrollmentSnapshotSerializer(serializers.ModelSerializer):
    class Meta:
        model = Enrollment
        fields = ('id', 'student', 'school_year', 'school_class', 'status', 'promotion_status')
        read_only_fields = fields


def detached(payload):
    """Deep, JSON-safe copy of serializer output.

    JSON fields come back from DRF as the live objects held by the model
    instance; round-tripping through JSON guarantees later edits of the
    source record cannot reach the copy.
    """
    return json.loads(json.dumps(payload, cls=DjangoJSONEncoder))


def serialize_assignment(assignment):
    return detached(TemplateAssignmentSerializer(assignment).data)
