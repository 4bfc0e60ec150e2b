import decimal

import django.core.validators
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone

import suitability_app.quiz.models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="QuizQuestion",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("order", models.PositiveSmallIntegerField(unique=True)),
                ("text", models.CharField(max_length=500)),
                ("choices", models.JSONField(default=list)),
                ("explanation", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["order"],
            },
        ),
        migrations.CreateModel(
            name="Submission",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "token",
                    models.CharField(
                        default=suitability_app.quiz.models.generate_submission_token,
                        editable=False,
                        help_text="Correlation id echoed by the client on every step",
                        max_length=64,
                        unique=True,
                    ),
                ),
                (
                    "email",
                    models.EmailField(blank=True, db_index=True, max_length=254),
                ),
                ("phone", models.CharField(blank=True, max_length=20)),
                ("first_name", models.CharField(blank=True, max_length=100)),
                ("last_name", models.CharField(blank=True, max_length=100)),
                ("id_number", models.CharField(blank=True, max_length=20)),
                ("gender", models.CharField(blank=True, max_length=10)),
                ("birth_date", models.DateField(blank=True, null=True)),
                (
                    "citizenship",
                    models.CharField(default="ישראלית", max_length=50),
                ),
                ("address", models.TextField(blank=True)),
                ("marital_status", models.CharField(blank=True, max_length=20)),
                ("employment_status", models.CharField(blank=True, max_length=50)),
                ("education", models.CharField(blank=True, max_length=50)),
                ("profession", models.CharField(blank=True, max_length=100)),
                (
                    "selected_package",
                    models.CharField(
                        choices=[
                            ("trial", "Trial"),
                            ("monthly", "Monthly"),
                            ("yearly", "Yearly"),
                            ("none", "None"),
                        ],
                        default="none",
                        max_length=10,
                    ),
                ),
                (
                    "package_price",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0"),
                        max_digits=10,
                        validators=[
                            django.core.validators.MinValueValidator(
                                decimal.Decimal("0")
                            )
                        ],
                    ),
                ),
                ("package_source", models.CharField(blank=True, max_length=255)),
                (
                    "answers",
                    models.JSONField(
                        default=suitability_app.quiz.models.empty_answers
                    ),
                ),
                ("score", models.PositiveSmallIntegerField(default=0)),
                ("max_score", models.PositiveSmallIntegerField(default=40)),
                ("passed", models.BooleanField(default=False)),
                (
                    "band",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("pass", "Pass"),
                            ("borderline", "Borderline"),
                            ("fail", "Fail"),
                        ],
                        max_length=12,
                    ),
                ),
                ("current_step", models.PositiveSmallIntegerField(default=1)),
                ("completed", models.BooleanField(default=False)),
                ("final_declaration_accepted", models.BooleanField(default=False)),
                ("signature_data", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "submission_time",
                    models.DateTimeField(
                        db_index=True, default=django.utils.timezone.now
                    ),
                ),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("user_agent", models.TextField(blank=True)),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(
                        fields=["email", "submission_time"],
                        name="submission_email_time_idx",
                    ),
                    models.Index(
                        fields=["completed", "passed"],
                        name="submission_status_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            ("current_step__gte", 1), ("current_step__lte", 4)
                        ),
                        name="submission_step_in_range",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="SubmissionLock",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("email", models.CharField(max_length=254, unique=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
        ),
        migrations.CreateModel(
            name="SignatureRecord",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "email",
                    models.EmailField(blank=True, db_index=True, max_length=254),
                ),
                ("signature_data", models.TextField()),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("user_agent", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "submission",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="signatures",
                        to="quiz.submission",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at", "-id"],
            },
        ),
    ]
