"""
Query URL routing.
"""
from django.urls import path

from apps.rag.views import QueryDetailView, QueryStatsView, QueryView, RecentQueriesView

urlpatterns = [
    path('', QueryView.as_view(), name='query-create'),
    path('recent', RecentQueriesView.as_view(), name='query-recent'),
    path('stats/summary', QueryStatsView.as_view(), name='query-stats'),
    path('<uuid:query_id>', QueryDetailView.as_view(), name='query-detail'),
]
