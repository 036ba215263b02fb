import asyncio
import logging
from typing import Dict, List, Optional

from pyfcm import FCMNotification

from marketchat.config import settings


logger = logging.getLogger(__name__)


class NoopPush:

    enabled = False

    async def send_fcm(self, tokens: List[str], title: str, body: str, data: Optional[Dict[str, str]] = None) -> None:
        return


class FcmPush:

    enabled = True

    def __init__(self, service_account_file: str, project_id: str) -> None:
        self._client = FCMNotification(service_account_file=service_account_file, project_id=project_id)

    async def send_fcm(self, tokens: List[str], title: str, body: str, data: Optional[Dict[str, str]] = None) -> None:
        for token in tokens:
            # pyfcm is synchronous
            await asyncio.to_thread(
                self._client.notify,
                fcm_token=token,
                notification_title=title,
                notification_body=body,
                data_payload=data or {},
            )


_push = None


async def get_push():
    global _push
    if _push is not None:
        return _push
    if not (settings.fcm_service_account_file and settings.fcm_project_id):
        _push = NoopPush()
        return _push
    _push = FcmPush(settings.fcm_service_account_file, settings.fcm_project_id)
    logger.info("Push notifications enabled for FCM project %s", settings.fcm_project_id)
    return _push
