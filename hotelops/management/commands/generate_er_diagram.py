from django.core.management.base import BaseCommand

from hotelops.diagram import render_er_diagram


class Command(BaseCommand):
    help = 'Draw an ER diagram of the hotel operations schema'

    def add_arguments(self, parser):
        parser.add_argument(
            '--output',
            default='hotelops_er_diagram.png',
            help='Image path; the format follows the extension (png, pdf, svg)',
        )

    def handle(self, *args, **options):
        entities, relationships = render_er_diagram(options['output'])
        self.stdout.write(self.style.SUCCESS(
            f"ER diagram written to {options['output']} "
            f"({len(entities)} entities, {len(relationships)} relationships)"
        ))
