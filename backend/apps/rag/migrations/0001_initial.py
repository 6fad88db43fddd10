# Generated migration for Query and QueryResult models

from django.db import migrations, models
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='Query',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('owner_user_id', models.CharField(db_index=True, help_text='Identity of the asking user', max_length=255)),
                ('query_text', models.TextField()),
                ('context', models.TextField(blank=True, default='')),
                ('status', models.CharField(choices=[('processing', 'Processing'), ('completed', 'Completed'), ('failed', 'Failed')], db_index=True, default='processing', max_length=20)),
                ('error_message', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'queries',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['owner_user_id', 'created_at'], name='queries_owner_created_idx')],
            },
        ),
        migrations.CreateModel(
            name='QueryResult',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('result_text', models.TextField()),
                ('confidence_score', models.FloatField(help_text='Heuristic confidence in [0.1, 1.0]')),
                ('source_chunks', models.JSONField(default=list)),
                ('metadata', models.JSONField(default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('query', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='result', to='rag.query')),
            ],
            options={
                'db_table': 'query_results',
            },
        ),
    ]
