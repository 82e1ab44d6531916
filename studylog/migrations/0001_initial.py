import django.db.models.deletion
from django.db import migrations, models

import studylog.models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Subject",
            fields=[
                ("id", models.CharField(default=studylog.models.new_subject_id, editable=False, max_length=64, primary_key=True, serialize=False)),
                ("user_id", models.CharField(db_index=True, max_length=64)),
                ("name", models.CharField(max_length=100)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("last_accessed_at", models.DateTimeField(blank=True, null=True)),
                ("access_count", models.PositiveIntegerField(default=0)),
            ],
            options={
                "indexes": [models.Index(fields=["user_id", "last_accessed_at"], name="idx_subject_user_access")],
            },
        ),
        migrations.CreateModel(
            name="StudySession",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("user_id", models.CharField(db_index=True, max_length=64)),
                ("time_minutes", models.PositiveIntegerField()),
                ("comment", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(db_index=True)),
                ("subject", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="sessions", to="studylog.subject")),
            ],
            options={
                "indexes": [models.Index(fields=["user_id", "created_at"], name="idx_session_user_created")],
            },
        ),
        migrations.CreateModel(
            name="DailySummary",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("user_id", models.CharField(max_length=64)),
                ("study_date", models.DateField()),
                ("total_study_time", models.PositiveIntegerField(default=0)),
                ("study_sessions_count", models.PositiveIntegerField(default=0)),
                ("first_study_time", models.DateTimeField()),
                ("last_study_time", models.DateTimeField()),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("subject", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="daily_summaries", to="studylog.subject")),
            ],
            options={
                "indexes": [models.Index(fields=["user_id", "study_date"], name="idx_summary_user_day")],
                "constraints": [models.UniqueConstraint(fields=("user_id", "subject", "study_date"), name="uq_user_subject_day")],
            },
        ),
    ]
