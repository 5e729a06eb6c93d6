# ev_platform/shared/models/rider_ids.py
"""
Идентификаторы райдера.

У райдера два идентификатора:
- PublicRiderId: человекочитаемый, например "DEL-25-R000044"
- InternalRiderId: UUID записи в сервисе райдеров

В сопоставлениях хранится внутренний; публичный принимается только
на входе одиночного создания и сразу разрешается через сервис райдеров.
"""

from typing import NewType

PublicRiderId = NewType("PublicRiderId", str)
InternalRiderId = NewType("InternalRiderId", str)
