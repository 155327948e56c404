from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from academics.models import SchoolYear
from gradebooks import models as gb_models
from gradebooks.exceptions import WorkflowError
from gradebooks.services import rollover_service


class Command(BaseCommand):
    help = 'Roll gradebook assignments over into a new school year (data is kept, workflow state is reset).'

    def add_arguments(self, parser):
        parser.add_argument('--to-year', type=int, required=True, help='Target school year id')
        parser.add_argument('--from-year', type=int, help='Only roll assignments currently live in this year')
        parser.add_argument('--by', help='Username recorded as assigner (default: none)')
        parser.add_argument('--snapshot', action='store_true', help='Save a year-end snapshot of each assignment first')
        parser.add_argument('--dry-run', action='store_true', help='List what would be rolled over without writing')

    def handle(self, *args, **options):
        target = SchoolYear.objects.filter(pk=options['to_year']).first()
        if target is None:
            raise CommandError(f"School year {options['to_year']} not found")

        from_year = None
        if options.get('from_year'):
            from_year = SchoolYear.objects.filter(pk=options['from_year']).first()
            if from_year is None:
                raise CommandError(f"School year {options['from_year']} not found")

        actor = None
        if options.get('by'):
            actor = get_user_model().objects.filter(username=options['by']).first()
            if actor is None:
                raise CommandError(f"User {options['by']} not found")

        qs = gb_models.TemplateAssignment.objects.exclude(completion_school_year=target)
        if from_year is not None:
            qs = qs.filter(completion_school_year=from_year)
        ids = list(qs.order_by('pk').values_list('pk', flat=True))

        if options['dry_run']:
            for pk in ids:
                self.stdout.write(f'Would roll over assignment {pk}')
            self.stdout.write(f'Done. Assignments to roll over: {len(ids)}')
            return

        try:
            versions = rollover_service.rollover_assignments(
                ids, target, actor, snapshot=options['snapshot'], from_year=from_year,
            )
        except WorkflowError as exc:
            raise CommandError(f'Rollover failed: {exc.message}') from exc

        for pk, version in sorted(versions.items()):
            self.stdout.write(f'Rolled over assignment {pk} (v{version})')
        self.stdout.write(f'Done. Assignments rolled over: {len(versions)}')
