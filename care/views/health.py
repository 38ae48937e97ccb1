import logging

from django.db import connections
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def healthz(request):
    try:
        with connections['default'].cursor() as c:
            c.execute('SELECT 1')
            row = c.fetchone()
        return JsonResponse({'status': 'success', 'db': bool(row and row[0] == 1)})
    except Exception:
        logger.exception('Health check failed')
        return JsonResponse({'status': 'error', 'code': 'ServiceUnavailable',
                             'message': 'Database unavailable'}, status=503)
