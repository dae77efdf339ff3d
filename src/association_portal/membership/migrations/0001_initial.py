import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Membership",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "membership_type",
                    models.CharField(
                        choices=[
                            ("academic", "Academic"),
                            ("associate", "Associate"),
                            ("professional", "Professional"),
                            ("bccp", "BCCP"),
                        ],
                        default="professional",
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("active", "Active"), ("lapsed", "Lapsed")],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("annual_fee", models.DecimalField(decimal_places=2, max_digits=10)),
                ("membership_number", models.CharField(blank=True, default="", max_length=100)),
                ("is_existing_member", models.BooleanField(default=False)),
                (
                    "reference",
                    models.CharField(
                        help_text='Unique payment reference, e.g. "MEM-A1B2C3".',
                        max_length=100,
                        unique=True,
                    ),
                ),
                ("stripe_payment_intent_id", models.CharField(blank=True, default="", max_length=200)),
                ("stripe_client_secret", models.CharField(blank=True, default="", max_length=300)),
                ("join_date", models.DateTimeField(default=django.utils.timezone.now)),
                ("next_payment_date", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="membership",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
    ]
