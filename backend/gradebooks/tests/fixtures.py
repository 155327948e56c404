from datetime import date

from django.contrib.auth import get_user_model
from django.utils import timezone

from accounts.models import Role, UserRole
from academics.models import (
    Enrollment,
    SchoolClass,
    SchoolYear,
    Student,
    SupervisorAssignment,
    TeacherClassAssignment,
)
from academics.services.school_years import SchoolYearContext
from gradebooks import models as gb_models

PAGES = [
    {
        'title': 'Page 1',
        'blocks': [
            {'type': 'dropdown', 'props': {'dropdownNumber': 1, 'options': ['A', 'B', 'C']}},
            {'type': 'language_toggle', 'props': {'items': [{'code': 'fr'}, {'code': 'en'}]}},
            {'type': 'table', 'props': {'cells': [[{}, {}], [{}, {}]]}},
            {'type': 'text_input', 'props': {'maxLength': 20}},
        ],
    },
]

FORCE_COMPENSATING = {'FORCE_COMPENSATING_UNIT_OF_WORK': True}


class WorkflowFixtureMixin:
    """Two school years, one PS class, one student with a completed
    first-semester gradebook, a teacher and the teacher's supervisor."""

    def make_user(self, username, role=None):
        user = get_user_model().objects.create_user(username=username)
        if role is not None:
            role_obj, _ = Role.objects.get_or_create(name=role)
            UserRole.objects.create(user=user, role=role_obj)
        return user

    def setUp(self):
        self.teacher = self.make_user('teacher1', Role.TEACHER)
        self.supervisor = self.make_user('sub1', Role.SUBADMIN)
        self.other = self.make_user('sub2', Role.SUBADMIN)
        self.admin = self.make_user('admin1', Role.ADMIN)

        self.year = SchoolYear.objects.create(
            name='2024-2025',
            start_date=date(2024, 9, 2),
            end_date=date(2025, 7, 4),
            is_active=True,
            active_semester=1,
            sequence=1,
        )
        self.next_year = SchoolYear.objects.create(
            name='2025-2026',
            start_date=date(2025, 9, 1),
            end_date=date(2026, 7, 3),
            sequence=2,
        )
        self.school_class = SchoolClass.objects.create(name='PS-A', level='PS', school_year=self.year)
        self.student = Student.objects.create(
            logical_key='stu-1', first_name='Ana', last_name='Silva', level='PS', school_year=self.year,
        )
        self.enrollment = Enrollment.objects.create(
            student=self.student, school_year=self.year, school_class=self.school_class,
        )
        TeacherClassAssignment.objects.create(
            teacher=self.teacher, school_class=self.school_class, school_year=self.year, languages=['en'],
        )
        SupervisorAssignment.objects.create(supervisor=self.supervisor, teacher=self.teacher)

        self.template = gb_models.GradebookTemplate.objects.create(name='Carnet PS', pages=PAGES)
        self.assignment = gb_models.TemplateAssignment.objects.create(
            template=self.template,
            student=self.student,
            completion_school_year=self.year,
            assigned_teachers=[self.teacher.pk],
            status=gb_models.TemplateAssignment.Status.COMPLETED,
            is_completed_sem1=True,
            completed_at_sem1=timezone.now(),
            data={'dropdown_1': 'A', 'table_0_2_row_0': {'c0': 'ok'}},
        )
        self.context = SchoolYearContext.from_school_year(self.year)

    def reload(self):
        self.assignment.refresh_from_db()
        return self.assignment

    def complete_sem2(self):
        gb_models.TemplateAssignment.objects.filter(pk=self.assignment.pk).update(
            is_completed_sem2=True, completed_at_sem2=timezone.now(), is_completed=True,
        )
        return self.reload()
