"""
URL configuration for the docs app.
"""
from django.urls import path
from . import views

app_name = 'docs'

urlpatterns = [
    path('upload', views.upload_document, name='upload'),
    path('upload-multiple', views.upload_multiple_documents, name='upload-multiple'),
    path('stats/summary', views.document_stats, name='stats'),
    path('', views.list_documents, name='list'),
    path('<uuid:document_id>', views.document_detail, name='detail'),
    path('<uuid:document_id>/chunks', views.list_chunks, name='chunks'),
]
