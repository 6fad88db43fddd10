"""
Django management command to ingest a local file.

Usage:
    python manage.py ingest_file path/to/policy.pdf --owner user-123
"""
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from apps.docs.storage import get_storage
from apps.docs.store import DjangoDocumentStore, StorageFailure
from apps.indexing.chunker import InvalidConfiguration
from apps.indexing.extractor import ExtractionError
from apps.indexing.pipeline import ingest_document, validate_upload


class Command(BaseCommand):
    help = 'Extract, chunk and store a local document for an owner'

    def add_arguments(self, parser):
        parser.add_argument('path', help='Path to a .pdf, .docx or .txt file')
        parser.add_argument(
            '--owner',
            required=True,
            help='Owner identity the document is stored under',
        )

    def handle(self, *args, **options):
        path = Path(options['path'])
        owner = options['owner'].strip()
        if not owner:
            raise CommandError('--owner must not be blank')
        if not path.is_file():
            raise CommandError(f'File not found: {path}')

        try:
            validate_upload(path.name, path.stat().st_size)
        except ExtractionError as e:
            raise CommandError(f'{e.code}: {e}')

        storage = get_storage()
        self.stdout.write(f'Ingesting {path.name} for {owner}...')
        try:
            with path.open('rb') as fh, storage.staged(path.suffix.lower(), fh) as staged:
                result = ingest_document(
                    owner_user_id=owner,
                    filename=path.name,
                    data=staged.read_bytes(),
                    storage_path=staged.storage_path,
                    store=DjangoDocumentStore(storage=storage),
                )
        except (ExtractionError, InvalidConfiguration, StorageFailure) as e:
            raise CommandError(f'{getattr(e, "code", "ERROR")}: {e}')

        self.stdout.write(self.style.SUCCESS(
            f'Document {result.document_id}: {result.chunks_count} chunks '
            f'from {result.text_length} characters'
        ))
