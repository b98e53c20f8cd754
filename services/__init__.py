"""Пакет прикладных сервисов.

Подмодули не импортируются на уровне пакета, чтобы ``import services`` не
тянул pandas и openpyxl из экспорта.

Импортируйте нужные подмодули напрямую, например:
    from services import client_service as cs
    from services import time_tracking_service as tts
    from services.analytics_service import AnalyticsFilter
"""

__all__: list[str] = []
