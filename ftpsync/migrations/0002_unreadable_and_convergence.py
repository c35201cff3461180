from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("ftpsync", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="syncrun",
            name="files_unresolvable",
            field=models.PositiveIntegerField(default=0),
        ),
        migrations.AddField(
            model_name="syncrun",
            name="converged",
            field=models.BooleanField(default=False),
        ),
        migrations.AlterField(
            model_name="syncevent",
            name="event_type",
            field=models.CharField(
                choices=[
                    ("confirmed", "Confirmed"),
                    ("download_failed", "Download Failed"),
                    ("upload_incomplete", "Upload Incomplete"),
                    ("hash_mismatch", "Hash Mismatch"),
                    ("unresolvable", "Unresolvable"),
                    ("unreadable", "Unreadable"),
                    ("source_unavailable", "Source Unavailable"),
                    ("error", "Error"),
                ],
                max_length=20,
            ),
        ),
    ]
