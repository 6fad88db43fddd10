# Generated migration for the Document model

from django.db import migrations, models
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='Document',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('owner_user_id', models.CharField(db_index=True, help_text='Identity of the uploading user', max_length=255)),
                ('filename', models.CharField(help_text='Original filename', max_length=255)),
                ('file_type', models.CharField(choices=[('pdf', 'PDF'), ('docx', 'Word document'), ('txt', 'Plain text')], help_text='Detected format', max_length=10)),
                ('size_bytes', models.PositiveBigIntegerField(help_text='File size in bytes')),
                ('storage_path', models.CharField(blank=True, default='', help_text='Path to staged file (relative to upload root)', max_length=500)),
                ('status', models.CharField(choices=[('uploaded', 'Uploaded'), ('processing', 'Processing'), ('processed', 'Processed'), ('failed', 'Processing failed'), ('deleted', 'Deleted')], db_index=True, default='uploaded', help_text='Current status in the ingestion pipeline', max_length=20)),
                ('error_message', models.TextField(blank=True, help_text='Failure reason if processing failed', null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'documents',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['owner_user_id', 'created_at'], name='documents_owner_created_idx')],
            },
        ),
    ]
