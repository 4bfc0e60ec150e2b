#!/usr/bin/env python3
"""
Django management command to merge duplicate quiz submissions.

This command should be run hourly (e.g., via cron) to:
1. Group submissions by email address (case-insensitive)
2. Keep the most advanced submission in each group
3. Copy missing details from the others into it and delete them

Usage:
    python manage.py dedupe_submissions
    python manage.py dedupe_submissions --dry-run
    python manage.py dedupe_submissions --verbose
"""

from django.core.management.base import BaseCommand
from django.utils import timezone

from suitability_app.quiz.services import build_merger


class Command(BaseCommand):
    help = "Merge duplicate quiz submissions that share an email address"

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be done without actually doing it",
        )
        parser.add_argument(
            "--verbose",
            action="store_true",
            help="Show detailed output",
        )

    def handle(self, *args, **options):
        dry_run = options["dry_run"]
        verbose = options["verbose"]

        self.stdout.write(
            self.style.SUCCESS(f"Starting duplicate sweep at {timezone.now()}")
        )

        if dry_run:
            self.stdout.write(
                self.style.WARNING("DRY RUN MODE - No changes will be made")
            )

        merger = build_merger()

        if verbose:
            groups = merger.find_duplicate_groups()
            self.stdout.write(f"Found {len(groups)} emails with duplicate submissions")
            for email, total in groups[:10]:
                self.stdout.write(f"  - {email}: {total} submissions")

        report = merger.sweep(dry_run=dry_run)

        if dry_run:
            self.stdout.write(
                self.style.WARNING(
                    f"Would merge {report.groups} groups, "
                    f"deleting {report.deleted} duplicate submissions"
                )
            )
        else:
            self.stdout.write(
                self.style.SUCCESS(
                    f"Merged {report.merged} groups, "
                    f"deleted {report.deleted} duplicate submissions"
                )
            )

        for email in report.failed:
            self.stdout.write(self.style.ERROR(f"Could not merge submissions for {email}"))

        self.stdout.write(
            self.style.SUCCESS(f"Duplicate sweep completed at {timezone.now()}")
        )
